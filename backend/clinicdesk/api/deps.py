"""FastAPI dependencies: DB session, Record Store and the per-request service objects.

The draft invoice is process-wide (app.state.invoice_draft); everything else
is built fresh for each request around that request's session.
"""
from typing import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from clinicdesk.db.session import SessionLocal
from clinicdesk.schemas.invoice import InvoiceDraft
from clinicdesk.services.analytics_service import AnalyticsAggregator
from clinicdesk.services.invoice_service import InvoiceBuilder
from clinicdesk.services.record_store import RecordStore
from clinicdesk.services.sync_service import RemoteSyncAdapter


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_store(db: Session = Depends(get_db)) -> RecordStore:
    return RecordStore(db)


def get_invoice_draft(request: Request) -> InvoiceDraft:
    state = request.app.state
    if getattr(state, "invoice_draft", None) is None:
        state.invoice_draft = InvoiceDraft()
    return state.invoice_draft


def get_invoice_builder(
    store: RecordStore = Depends(get_store),
    draft: InvoiceDraft = Depends(get_invoice_draft),
) -> InvoiceBuilder:
    return InvoiceBuilder(store, draft)


def get_analytics(store: RecordStore = Depends(get_store)) -> AnalyticsAggregator:
    return AnalyticsAggregator(store)


def get_sync_adapter(store: RecordStore = Depends(get_store)) -> RemoteSyncAdapter:
    return RemoteSyncAdapter(store)
