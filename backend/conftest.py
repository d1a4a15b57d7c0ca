"""Shared fixtures: in-memory database, Record Store, factories and API client."""
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clinicdesk.api.deps import get_db
from clinicdesk.db.base import Base
from clinicdesk.main import app
from clinicdesk.models import StoredCollection  # noqa: F401 - register models
from clinicdesk.schemas.customer import CustomerCreate
from clinicdesk.schemas.inventory import InventoryCreate
from clinicdesk.schemas.invoice import InvoiceDraft
from clinicdesk.services import customer_service, inventory_service
from clinicdesk.services.record_store import RecordStore


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def store(db):
    store = RecordStore(db)
    store.initialize_defaults()
    return store


@pytest.fixture
def make_item(store):
    def _make(**overrides):
        data = {
            "name": "Paracetamol 500mg",
            "category": "Medicine",
            "buy_price": Decimal("60.00"),
            "sell_price": Decimal("100.00"),
            "stock": 10,
            "unit": "Strips",
        }
        data.update(overrides)
        return inventory_service.add_item(store, InventoryCreate(**data))
    return _make


@pytest.fixture
def make_customer(store):
    def _make(**overrides):
        data = {"name": "Asha Verma", "mobile": "9876543210"}
        data.update(overrides)
        return customer_service.add_customer(store, CustomerCreate(**data))
    return _make


@pytest.fixture
def client(session_factory):
    """API client on the in-memory database. The lifespan is not run."""
    setup = session_factory()
    RecordStore(setup).initialize_defaults()
    setup.close()

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.invoice_draft = InvoiceDraft()
    app.state.subscription = None
    yield TestClient(app)
    app.dependency_overrides.clear()
    app.state.subscription = None
