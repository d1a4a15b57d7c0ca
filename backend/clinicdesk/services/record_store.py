"""
Record Store: named JSON collections in the local key-value table.

Each collection (inventory, customers, invoices, visits, categories, units)
is one JSON array under "{namespace}_{collection}"; settings is a single
JSON object. Every write replaces the whole document.

Writes commit immediately unless they run inside transaction(), in which
case they are flushed and committed once at the end (or rolled back
together). Callers never retry on StorageError.
"""
import json
import logging
import secrets
import string
import threading
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinicdesk.core.config import settings
from clinicdesk.core.exceptions import NotFound, StorageError
from clinicdesk.models.record import StoredCollection
from clinicdesk.schemas.settings import ShopSettings

logger = logging.getLogger(__name__)

INVENTORY = "inventory"
CUSTOMERS = "customers"
INVOICES = "invoices"
VISITS = "visits"
SETTINGS = "settings"
CATEGORIES = "categories"
UNITS = "units"

COLLECTIONS = (INVENTORY, CUSTOMERS, INVOICES, VISITS, SETTINGS, CATEGORIES, UNITS)
# Collections holding entities with an "id"
ENTITY_COLLECTIONS = (INVENTORY, CUSTOMERS, INVOICES, VISITS)

DEFAULT_CATEGORIES = ["Medicine", "Equipment", "Supplies", "Consumables"]
DEFAULT_UNITS = ["Pieces", "Bottles", "Boxes", "Strips", "Tablets", "Capsules", "ML", "Grams", "KG"]

_ID_ALPHABET = string.ascii_lowercase + string.digits

_write_lock = threading.RLock()


def _base36(number: int) -> str:
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_ID_ALPHABET[26 + rem] if rem < 10 else _ID_ALPHABET[rem - 10])
    return "".join(reversed(digits)) or "0"


def generate_id() -> str:
    """Millisecond timestamp in base 36 plus a random suffix.

    Unique enough for a single writer; not guaranteed under concurrent writers.
    """
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return _base36(int(time.time() * 1000)) + suffix


def timestamp() -> str:
    return datetime.now().isoformat()


class RecordStore:
    def __init__(self, db: Session, namespace: str | None = None):
        self.db = db
        self.namespace = namespace or settings.STORAGE_NAMESPACE
        self._tx_depth = 0

    # ------------------------------------------------------------------
    # Raw keyed values
    # ------------------------------------------------------------------

    def collection_key(self, collection: str) -> str:
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {collection}")
        return f"{self.namespace}_{collection}"

    def get_value(self, key: str, default: Any = None) -> Any:
        try:
            row = self.db.get(StoredCollection, key)
        except SQLAlchemyError as e:
            logger.error(f"[STORE] Read failed for {key}: {e}")
            raise StorageError(f"Could not read {key}") from e
        if row is None:
            return default
        try:
            return json.loads(row.value)
        except ValueError:
            # Corrupt documents read as absent
            logger.error(f"[STORE] Stored value under {key} is not valid JSON; treating as absent")
            return default

    def set_value(self, key: str, value: Any) -> None:
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Could not serialize {key}: {e}") from e
        try:
            row = self.db.get(StoredCollection, key)
            if row is None:
                self.db.add(StoredCollection(key=key, value=payload))
            else:
                row.value = payload
            self._persist()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"[STORE] Write failed for {key}: {e}")
            raise StorageError(f"Could not save {key}") from e

    def remove_value(self, key: str) -> None:
        try:
            row = self.db.get(StoredCollection, key)
            if row is not None:
                self.db.delete(row)
                self._persist()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError(f"Could not remove {key}") from e

    def has_value(self, key: str) -> bool:
        return self.get_value(key) is not None

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def get(self, collection: str) -> Any:
        """Whole collection; [] ({} for settings) if never initialized."""
        empty = {} if collection == SETTINGS else []
        return self.get_value(self.collection_key(collection), empty)

    def put(self, collection: str, items: Any) -> None:
        self.set_value(self.collection_key(collection), items)

    def find(self, collection: str, entity_id: str) -> dict | None:
        return next((e for e in self.get(collection) if e.get("id") == entity_id), None)

    def insert(self, collection: str, entity: dict) -> dict:
        now = timestamp()
        stored = {**entity, "id": generate_id(), "created_at": now, "updated_at": now}
        with self.transaction():
            records = self.get(collection)
            records.append(stored)
            self.put(collection, records)
        return stored

    def update(self, collection: str, entity_id: str, patch: dict) -> dict:
        with self.transaction():
            records = self.get(collection)
            for index, record in enumerate(records):
                if record.get("id") == entity_id:
                    records[index] = {**record, **patch, "id": entity_id, "updated_at": timestamp()}
                    self.put(collection, records)
                    return records[index]
        raise NotFound(collection.rstrip("s").capitalize(), entity_id)

    def delete(self, collection: str, entity_id: str) -> None:
        with self.transaction():
            records = self.get(collection)
            remaining = [r for r in records if r.get("id") != entity_id]
            if len(remaining) != len(records):
                self.put(collection, remaining)

    # ------------------------------------------------------------------
    # Transactions and lifecycle
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator["RecordStore"]:
        """
        Group writes: commit once at the end, roll everything back on error.

        The outermost transaction holds the process-wide write lock, so a
        read-modify-write of a collection never interleaves with another
        thread's (request handlers and the reconcile job run on separate
        threads and sessions).
        """
        if self._tx_depth == 0:
            _write_lock.acquire()
            # Documents read before the lock may be stale
            self.db.expire_all()
        self._tx_depth += 1
        try:
            yield self
        except Exception:
            self._tx_depth -= 1
            if self._tx_depth == 0:
                try:
                    self.db.rollback()
                finally:
                    _write_lock.release()
            raise
        self._tx_depth -= 1
        if self._tx_depth == 0:
            try:
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                raise StorageError("Could not commit changes") from e
            finally:
                _write_lock.release()

    def _persist(self) -> None:
        if self._tx_depth:
            self.db.flush()
        else:
            self.db.commit()

    def initialize_defaults(self) -> None:
        """Seed option lists, settings and empty collections for absent keys."""
        with self.transaction():
            if not self.has_value(self.collection_key(CATEGORIES)):
                self.put(CATEGORIES, list(DEFAULT_CATEGORIES))
            if not self.has_value(self.collection_key(UNITS)):
                self.put(UNITS, list(DEFAULT_UNITS))
            if not self.has_value(self.collection_key(SETTINGS)):
                self.put(SETTINGS, ShopSettings().model_dump(mode="json"))
            for collection in ENTITY_COLLECTIONS:
                if not self.has_value(self.collection_key(collection)):
                    self.put(collection, [])

    def clear(self) -> None:
        with self.transaction():
            for collection in COLLECTIONS:
                self.remove_value(self.collection_key(collection))
        self.initialize_defaults()
