"""Customers and visits.

total_spent and total_visits are maintained incrementally (invoice commit and
add_visit). reconcile_customer_counters rebuilds them from invoices and
visits when edits or deletions have let them drift.
"""
import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import List

import pydantic

from clinicdesk.core.exceptions import NotFound, ValidationError
from clinicdesk.core.money import to_money
from clinicdesk.schemas.customer import Customer, CustomerCreate, CustomerUpdate, Visit, VisitCreate
from clinicdesk.services.record_store import RecordStore, CUSTOMERS, VISITS, INVOICES

logger = logging.getLogger(__name__)


def list_customers(store: RecordStore) -> List[Customer]:
    return [Customer.model_validate(r) for r in store.get(CUSTOMERS)]


def get_customer(store: RecordStore, customer_id: str) -> Customer:
    record = store.find(CUSTOMERS, customer_id)
    if record is None:
        raise NotFound("Customer", customer_id)
    return Customer.model_validate(record)


def add_customer(store: RecordStore, data: CustomerCreate) -> Customer:
    values = {
        **data.model_dump(mode="json"),
        "last_visit": None,
        "next_visit": None,
        "total_visits": 0,
        "total_spent": "0.00",
    }
    customer = Customer.model_validate(store.insert(CUSTOMERS, values))
    logger.info(f"[CUSTOMERS] Added {customer.name}")
    return customer


def update_customer(store: RecordStore, customer_id: str, data: CustomerUpdate) -> Customer:
    patch = data.model_dump(mode="json", exclude_unset=True)
    with store.transaction():
        current = get_customer(store, customer_id)
        try:
            Customer.model_validate({**current.model_dump(mode="json"), **patch})
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid customer: {e}") from e
        return Customer.model_validate(store.update(CUSTOMERS, customer_id, patch))


def delete_customer(store: RecordStore, customer_id: str) -> None:
    """Remove the customer only. Their invoices and visits keep the dangling id."""
    store.delete(CUSTOMERS, customer_id)


def add_to_total_spent(store: RecordStore, customer_id: str, amount: Decimal) -> Customer | None:
    """Increment a customer's running spend. Returns None if the customer is gone."""
    with store.transaction():
        record = store.find(CUSTOMERS, customer_id)
        if record is None:
            logger.warning(f"[CUSTOMERS] Spend update skipped, customer {customer_id} no longer exists")
            return None
        new_total = to_money(Decimal(str(record.get("total_spent") or 0)) + amount)
        return Customer.model_validate(store.update(CUSTOMERS, customer_id, {"total_spent": str(new_total)}))


def search_customers(store: RecordStore, query: str | None = None, customer_type: str | None = None) -> List[Customer]:
    customers = list_customers(store)
    if query:
        term = query.lower()
        customers = [
            c for c in customers
            if term in c.name.lower() or term in c.mobile or term in c.email.lower()
        ]
    if customer_type:
        customers = [c for c in customers if c.type == customer_type]
    return customers


# ============================================================================
# VISITS
# ============================================================================

def list_visits(store: RecordStore) -> List[Visit]:
    return [Visit.model_validate(r) for r in store.get(VISITS)]


def customer_visits(store: RecordStore, customer_id: str) -> List[Visit]:
    return [v for v in list_visits(store) if v.customer_id == customer_id]


def add_visit(store: RecordStore, data: VisitCreate) -> Visit:
    """Record a visit and refresh the customer's visit fields in one transaction."""
    get_customer(store, data.customer_id)
    values = data.model_dump(mode="json")
    if values["date"] is None:
        values["date"] = datetime.now().isoformat()

    with store.transaction():
        visit = Visit.model_validate(store.insert(VISITS, values))
        store.update(CUSTOMERS, data.customer_id, {
            "last_visit": values["date"],
            "next_visit": values["next_visit_date"],
            "total_visits": len(customer_visits(store, data.customer_id)),
        })
    logger.info(f"[VISITS] Recorded {visit.type} visit for customer {visit.customer_id}")
    return visit


# ============================================================================
# RECONCILIATION
# ============================================================================

def reconcile_customer_counters(store: RecordStore) -> int:
    """
    Recompute the derived customer fields from their source records.

    total_spent  <- sum of invoice totals per customer
    total_visits <- number of visits per customer
    last_visit / next_visit <- latest visit's date / next_visit_date

    Returns the number of customers whose record changed. Runs as one store
    transaction, so concurrent writes to customers wait for it.
    """
    with store.transaction():
        spent = defaultdict(Decimal)
        for invoice in store.get(INVOICES):
            if invoice.get("customer_id"):
                spent[invoice["customer_id"]] += Decimal(str(invoice.get("total") or 0))

        visits_by_customer = defaultdict(list)
        for visit in list_visits(store):
            visits_by_customer[visit.customer_id].append(visit)

        customers = store.get(CUSTOMERS)
        changed = 0
        for record in customers:
            customer = Customer.model_validate(record)
            visits = sorted(visits_by_customer.get(customer.id, []), key=lambda v: v.date)
            latest = visits[-1] if visits else None
            expected = {
                "total_spent": to_money(spent.get(customer.id, Decimal(0))),
                "total_visits": len(visits),
                "last_visit": latest.date if latest else customer.last_visit,
                "next_visit": latest.next_visit_date if latest else customer.next_visit,
            }
            if any(getattr(customer, field) != value for field, value in expected.items()):
                record.update(
                    Customer.model_validate({**record, **expected}).model_dump(mode="json")
                )
                changed += 1

        if changed:
            store.put(CUSTOMERS, customers)

    if changed:
        logger.info(f"[RECONCILE] Repaired counters for {changed} customer(s)")
    return changed
