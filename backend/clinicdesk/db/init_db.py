"""Create all tables and seed default collections. Run on app startup."""
import logging

from clinicdesk.db.base import Base
from clinicdesk.db.session import engine, SessionLocal
from clinicdesk.models import record  # noqa: F401 - register models
from clinicdesk.services.record_store import RecordStore

logger = logging.getLogger(__name__)


def init_db():
    Base.metadata.create_all(bind=engine)

    # Settings, categories and units must exist before the first request
    db = SessionLocal()
    try:
        RecordStore(db).initialize_defaults()
    finally:
        db.close()
    logger.info("[DB] Tables ready, defaults in place")
