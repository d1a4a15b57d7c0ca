"""Whole-shop export/import as a single JSON envelope."""
import json
import logging
from datetime import datetime

import pydantic

from clinicdesk.core.exceptions import ValidationError
from clinicdesk.schemas.customer import Customer, Visit
from clinicdesk.schemas.inventory import InventoryItem
from clinicdesk.schemas.invoice import Invoice
from clinicdesk.schemas.settings import ShopSettings
from clinicdesk.services.record_store import (
    RecordStore,
    CATEGORIES,
    COLLECTIONS,
    CUSTOMERS,
    INVENTORY,
    INVOICES,
    SETTINGS,
    UNITS,
    VISITS,
)

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0"

ENTITY_MODELS = {
    INVENTORY: InventoryItem,
    CUSTOMERS: Customer,
    INVOICES: Invoice,
    VISITS: Visit,
}


def export_all_data(store: RecordStore, now: datetime | None = None) -> str:
    data = {collection: store.get(collection) for collection in COLLECTIONS}
    data["exportDate"] = (now or datetime.now()).isoformat()
    data["version"] = EXPORT_VERSION
    return json.dumps(data, indent=2)


def _check_collection(collection: str, value) -> None:
    """Raise ValidationError unless value has the shape stored under collection."""
    if collection == SETTINGS:
        if not isinstance(value, dict):
            raise ValidationError("Invalid data format: settings must be an object")
        try:
            ShopSettings.model_validate(value)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid data format: settings: {e}") from e
        return

    if not isinstance(value, list):
        raise ValidationError(f"Invalid data format: {collection} must be a list")

    if collection in (CATEGORIES, UNITS):
        if not all(isinstance(name, str) for name in value):
            raise ValidationError(f"Invalid data format: {collection} must hold names")
        return

    model = ENTITY_MODELS[collection]
    for index, record in enumerate(value):
        try:
            model.model_validate(record)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid data format: {collection}[{index}]: {e}") from e


def import_all_data(store: RecordStore, payload: str) -> list[str]:
    """
    Replace local collections with those present in an export envelope.

    The envelope must carry a "version", and every collection in it must
    have the stored shape; otherwise nothing is written. Collections missing
    from it are left as they are. All writes land in one transaction.

    Returns the names of the collections that were imported.
    """
    try:
        data = json.loads(payload)
    except ValueError as e:
        raise ValidationError(f"Invalid data format: {e}") from e
    if not isinstance(data, dict) or not data.get("version"):
        raise ValidationError("Invalid data format: missing version")

    imported = [c for c in COLLECTIONS if data.get(c) is not None]
    for collection in imported:
        _check_collection(collection, data[collection])

    with store.transaction():
        for collection in imported:
            store.put(collection, data[collection])
    logger.info(f"[BACKUP] Imported {', '.join(imported) or 'nothing'} (version {data['version']})")
    return imported


def clear_all_data(store: RecordStore) -> None:
    store.clear()
    logger.warning("[BACKUP] All local data cleared and defaults restored")
