import threading
import time
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from clinicdesk.core.exceptions import NotFound, ValidationError
from clinicdesk.db.base import Base
from clinicdesk.db.session import build_engine
from clinicdesk.schemas.customer import CustomerCreate, CustomerUpdate, VisitCreate
from clinicdesk.services import customer_service
from clinicdesk.services.invoice_service import InvoiceBuilder
from clinicdesk.services.record_store import RecordStore, CUSTOMERS, INVOICES, VISITS


def test_new_customer_starts_with_zero_counters(make_customer):
    customer = make_customer()
    assert customer.total_visits == 0
    assert customer.total_spent == Decimal("0.00")
    assert customer.last_visit is None


def test_update_customer(store, make_customer):
    customer = make_customer()
    updated = customer_service.update_customer(store, customer.id, CustomerUpdate(type="vip"))
    assert updated.type == "vip"
    assert updated.name == customer.name


def test_add_visit_updates_customer(store, make_customer):
    customer = make_customer()
    first = datetime(2024, 3, 1, 10, 0)
    second = datetime(2024, 3, 8, 11, 30)
    follow_up = datetime(2024, 4, 8, 11, 30)

    customer_service.add_visit(store, VisitCreate(customer_id=customer.id, date=first))
    customer_service.add_visit(
        store, VisitCreate(customer_id=customer.id, date=second, next_visit_date=follow_up)
    )

    refreshed = customer_service.get_customer(store, customer.id)
    assert refreshed.total_visits == 2
    assert refreshed.last_visit == second
    assert refreshed.next_visit == follow_up
    assert len(customer_service.customer_visits(store, customer.id)) == 2


def test_add_visit_defaults_date_to_now(store, make_customer):
    customer = make_customer()
    visit = customer_service.add_visit(store, VisitCreate(customer_id=customer.id))
    assert visit.date.date() == datetime.now().date()


def test_add_visit_for_unknown_customer(store):
    with pytest.raises(NotFound):
        customer_service.add_visit(store, VisitCreate(customer_id="missing"))
    assert customer_service.list_visits(store) == []


def test_add_to_total_spent(store, make_customer):
    customer = make_customer()
    customer_service.add_to_total_spent(store, customer.id, Decimal("118.00"))
    updated = customer_service.add_to_total_spent(store, customer.id, Decimal("59.50"))
    assert updated.total_spent == Decimal("177.50")


def test_add_to_total_spent_skips_deleted_customer(store, make_customer):
    customer = make_customer()
    customer_service.delete_customer(store, customer.id)
    assert customer_service.add_to_total_spent(store, customer.id, Decimal("10")) is None


def test_search_customers(store, make_customer):
    make_customer(name="Asha Verma", mobile="9000000001", type="vip")
    make_customer(name="Ravi Kumar", mobile="9000000002", email="ravi@example.com")

    assert [c.name for c in customer_service.search_customers(store, "ravi@")] == ["Ravi Kumar"]
    assert [c.name for c in customer_service.search_customers(store, "0001")] == ["Asha Verma"]
    assert [c.name for c in customer_service.search_customers(store, customer_type="vip")] == ["Asha Verma"]


def test_reconcile_repairs_drifted_counters(store, make_customer):
    customer = make_customer()
    customer_service.add_visit(store, VisitCreate(customer_id=customer.id, date=datetime(2024, 3, 1)))
    store.insert(INVOICES, {"invoice_number": "INV24030001", "customer_id": customer.id, "total": "118.00"})
    store.insert(INVOICES, {"invoice_number": "INV24030002", "customer_id": customer.id, "total": "20.50"})
    store.update(CUSTOMERS, customer.id, {"total_spent": "999.00", "total_visits": 7})

    assert customer_service.reconcile_customer_counters(store) == 1

    repaired = customer_service.get_customer(store, customer.id)
    assert repaired.total_spent == Decimal("138.50")
    assert repaired.total_visits == 1
    assert customer_service.reconcile_customer_counters(store) == 0


@pytest.mark.parametrize("patch", [{"email": None}, {"name": None}, {"type": None}])
def test_update_with_null_field_is_rejected_and_writes_nothing(store, make_customer, patch):
    customer = make_customer(email="asha@example.com")
    with pytest.raises(ValidationError):
        customer_service.update_customer(store, customer.id, CustomerUpdate(**patch))

    assert customer_service.get_customer(store, customer.id) == customer
    assert len(customer_service.list_customers(store)) == 1


def test_delete_customer_keeps_invoices_and_visits(store, make_item, make_customer):
    customer = make_customer()
    builder = InvoiceBuilder(store)
    builder.set_customer(customer.id)
    builder.add_line(make_item().id, 1)
    invoice = builder.commit()
    customer_service.add_visit(store, VisitCreate(customer_id=customer.id, date=datetime(2024, 3, 1)))
    invoices_before = store.get(INVOICES)
    visits_before = store.get(VISITS)

    customer_service.delete_customer(store, customer.id)

    assert store.find(CUSTOMERS, customer.id) is None
    assert store.get(INVOICES) == invoices_before
    assert store.get(VISITS) == visits_before
    assert store.find(INVOICES, invoice.id)["customer_id"] == customer.id
    assert [v.customer_id for v in customer_service.list_visits(store)] == [customer.id]


@pytest.fixture
def file_session_factory(tmp_path):
    """Separate connections per session, like the running server."""
    engine = build_engine(f"sqlite:///{tmp_path / 'shop.db'}")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    setup = factory()
    RecordStore(setup).initialize_defaults()
    setup.close()
    yield factory
    engine.dispose()


def test_reconcile_does_not_drop_customer_added_meanwhile(file_session_factory):
    setup = RecordStore(file_session_factory())
    drifted = customer_service.add_customer(setup, CustomerCreate(name="Asha", mobile="9000000001"))
    setup.update(CUSTOMERS, drifted.id, {"total_visits": 7})
    setup.db.close()

    reconcile_store = RecordStore(file_session_factory())
    writer_store = RecordStore(file_session_factory())
    about_to_write = threading.Event()

    def slow_put(collection, items):
        if collection == CUSTOMERS:
            about_to_write.set()
            time.sleep(0.3)
        RecordStore.put(reconcile_store, collection, items)

    reconcile_store.put = slow_put

    def add_customer():
        about_to_write.wait(timeout=5)
        customer_service.add_customer(writer_store, CustomerCreate(name="Ravi", mobile="9000000002"))

    reconciler = threading.Thread(target=customer_service.reconcile_customer_counters, args=(reconcile_store,))
    writer = threading.Thread(target=add_customer)
    reconciler.start()
    writer.start()
    reconciler.join(timeout=10)
    writer.join(timeout=10)
    reconcile_store.db.close()
    writer_store.db.close()

    check = RecordStore(file_session_factory())
    customers = {c.name: c for c in customer_service.list_customers(check)}
    check.db.close()
    assert set(customers) == {"Asha", "Ravi"}
    assert customers["Asha"].total_visits == 0
