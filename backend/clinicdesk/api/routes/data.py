"""Backup, restore and maintenance of local data."""
from datetime import date

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from clinicdesk.api.deps import get_store
from clinicdesk.services import backup_service
from clinicdesk.services.customer_service import reconcile_customer_counters
from clinicdesk.services.record_store import RecordStore

router = APIRouter()


@router.get("/export")
def export_data(store: RecordStore = Depends(get_store)):
    return Response(
        content=backup_service.export_all_data(store),
        media_type="application/json",
        headers={"Content-Disposition": f"attachment; filename=clinicdesk_backup_{date.today()}.json"}
    )


@router.post("/import")
async def import_data(request: Request, store: RecordStore = Depends(get_store)):
    """Restore from an export file sent as the raw request body."""
    payload = (await request.body()).decode("utf-8", errors="replace")
    # Blocking store work runs in the threadpool
    imported = await run_in_threadpool(backup_service.import_all_data, store, payload)
    return {"imported": imported}


@router.post("/clear")
def clear_data(store: RecordStore = Depends(get_store)):
    backup_service.clear_all_data(store)
    return {"status": "cleared"}


@router.post("/reconcile")
def reconcile(store: RecordStore = Depends(get_store)):
    """Rebuild customer spend and visit counters from invoices and visits."""
    return {"customers_updated": reconcile_customer_counters(store)}
