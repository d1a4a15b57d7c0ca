"""Inventory read/update. Used by routes and by the invoice builder when stock moves."""
import logging
from datetime import date, timedelta
from typing import List, Optional

import pydantic

from clinicdesk.core.exceptions import InsufficientStock, NotFound, ValidationError
from clinicdesk.schemas.inventory import InventoryItem, InventoryCreate, InventoryUpdate
from clinicdesk.services.record_store import RecordStore, INVENTORY, SETTINGS

logger = logging.getLogger(__name__)

NEAR_EXPIRY_DAYS = 30


def list_items(store: RecordStore) -> List[InventoryItem]:
    return [InventoryItem.model_validate(r) for r in store.get(INVENTORY)]


def get_item(store: RecordStore, item_id: str) -> InventoryItem:
    record = store.find(INVENTORY, item_id)
    if record is None:
        raise NotFound("Item", item_id)
    return InventoryItem.model_validate(record)


def add_item(store: RecordStore, data: InventoryCreate) -> InventoryItem:
    values = data.model_dump(mode="json")
    if values["low_stock_threshold"] is None:
        values["low_stock_threshold"] = store.get(SETTINGS).get("default_low_stock_threshold", 10)
    item = InventoryItem.model_validate(store.insert(INVENTORY, values))
    logger.info(f"[INVENTORY] Added {item.name} ({item.stock} {item.unit})")
    return item


def update_item(store: RecordStore, item_id: str, data: InventoryUpdate) -> InventoryItem:
    patch = data.model_dump(mode="json", exclude_unset=True)
    with store.transaction():
        current = get_item(store, item_id)
        try:
            InventoryItem.model_validate({**current.model_dump(mode="json"), **patch})
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid item: {e}") from e
        return InventoryItem.model_validate(store.update(INVENTORY, item_id, patch))


def delete_item(store: RecordStore, item_id: str) -> None:
    store.delete(INVENTORY, item_id)


def adjust_stock(store: RecordStore, item_id: str, quantity: int, operation: str = "subtract") -> InventoryItem:
    """Move stock by quantity. Subtracting below zero is an error, never a clamp."""
    if operation not in ("subtract", "add"):
        raise ValueError(f"Unknown stock operation: {operation}")
    with store.transaction():
        item = get_item(store, item_id)
        if operation == "subtract":
            if item.stock < quantity:
                raise InsufficientStock(item.name, item.stock, quantity)
            new_stock = item.stock - quantity
        else:
            new_stock = item.stock + quantity
        return InventoryItem.model_validate(store.update(INVENTORY, item_id, {"stock": new_stock}))


def days_until_expiry(item: InventoryItem, today: date) -> Optional[int]:
    if item.exp_date is None:
        return None
    return (item.exp_date - today).days


def is_expired(item: InventoryItem, today: date) -> bool:
    return item.exp_date is not None and item.exp_date < today


def is_near_expiry(item: InventoryItem, today: date) -> bool:
    """Expires today or within the next 30 days; already-expired items excluded."""
    days = days_until_expiry(item, today)
    return days is not None and 0 <= days <= NEAR_EXPIRY_DAYS


def is_low_stock(item: InventoryItem) -> bool:
    return item.stock <= item.low_stock_threshold


def item_status(item: InventoryItem, today: date | None = None) -> str:
    today = today or date.today()
    if is_expired(item, today):
        return "expired"
    if is_near_expiry(item, today):
        return "near-expiry"
    if is_low_stock(item):
        return "low-stock"
    return "in-stock"


def search_inventory(
    store: RecordStore,
    query: str | None = None,
    category: str | None = None,
    expiry_days: int | None = None,
    today: date | None = None,
) -> List[InventoryItem]:
    """Text search over name/category/supplier/batch, then optional filters."""
    items = list_items(store)

    if query:
        term = query.lower()
        items = [
            i for i in items
            if term in i.name.lower()
            or term in i.category.lower()
            or term in i.supplier.lower()
            or term in i.batch_no.lower()
        ]

    if category:
        items = [i for i in items if i.category == category]

    if expiry_days is not None:
        cutoff = (today or date.today()) + timedelta(days=expiry_days)
        items = [i for i in items if i.exp_date is not None and i.exp_date <= cutoff]

    return items
