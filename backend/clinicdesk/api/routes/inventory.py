"""Inventory CRUD, stock adjustment, search and CSV export."""
from datetime import date
from typing import List
import csv
import io

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import StreamingResponse

from clinicdesk.api.deps import get_store
from clinicdesk.schemas.inventory import InventoryItem, InventoryCreate, InventoryUpdate, StockAdjustment
from clinicdesk.services import inventory_service
from clinicdesk.services.record_store import RecordStore

router = APIRouter()


@router.get("", response_model=List[InventoryItem])
def list_inventory(
    search: str | None = Query(None),
    category: str | None = Query(None),
    expiry_days: int | None = Query(None, ge=0, description="Only items expiring within N days"),
    store: RecordStore = Depends(get_store),
):
    return inventory_service.search_inventory(store, search, category, expiry_days)


@router.get("/export")
def export_inventory_csv(store: RecordStore = Depends(get_store)):
    """Download inventory as CSV."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow([
        "Name", "Category", "Buy Price", "Sell Price", "Stock", "Unit",
        "Batch No", "Supplier", "Mfg Date", "Exp Date", "Status",
    ])

    today = date.today()
    for item in inventory_service.list_items(store):
        writer.writerow([
            item.name,
            item.category,
            f"{item.buy_price:.2f}",
            f"{item.sell_price:.2f}",
            item.stock,
            item.unit,
            item.batch_no,
            item.supplier,
            item.mfg_date.isoformat() if item.mfg_date else "",
            item.exp_date.isoformat() if item.exp_date else "",
            inventory_service.item_status(item, today),
        ])

    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=inventory_{today}.csv"}
    )


@router.post("", response_model=InventoryItem, status_code=status.HTTP_201_CREATED)
def create_item(data: InventoryCreate, store: RecordStore = Depends(get_store)):
    return inventory_service.add_item(store, data)


@router.get("/{item_id}", response_model=InventoryItem)
def get_item(item_id: str, store: RecordStore = Depends(get_store)):
    return inventory_service.get_item(store, item_id)


@router.get("/{item_id}/status")
def get_item_status(item_id: str, store: RecordStore = Depends(get_store)):
    item = inventory_service.get_item(store, item_id)
    return {"id": item.id, "status": inventory_service.item_status(item)}


@router.patch("/{item_id}", response_model=InventoryItem)
def update_item(item_id: str, data: InventoryUpdate, store: RecordStore = Depends(get_store)):
    return inventory_service.update_item(store, item_id, data)


@router.post("/{item_id}/stock", response_model=InventoryItem)
def adjust_stock(item_id: str, data: StockAdjustment, store: RecordStore = Depends(get_store)):
    return inventory_service.adjust_stock(store, item_id, data.quantity, data.operation)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_item(item_id: str, store: RecordStore = Depends(get_store)):
    inventory_service.delete_item(store, item_id)
