"""
Remote sync and subscription endpoints.

These stay reachable while the subscription gate is closed so the clinic can
re-check its subscription and configure its database.
"""
import logging

from fastapi import APIRouter, Depends, Request, status

from clinicdesk.api.deps import get_sync_adapter
from clinicdesk.core.exceptions import SubscriptionCheckFailed
from clinicdesk.schemas.sync import ConnectionStatus, FirebaseConfig, SubscriptionStatus
from clinicdesk.services.sync_service import RemoteSyncAdapter

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/status", response_model=ConnectionStatus)
def connection_status(request: Request, adapter: RemoteSyncAdapter = Depends(get_sync_adapter)):
    return adapter.connection_status(getattr(request.app.state, "subscription", None))


@router.post("/subscription/check", response_model=SubscriptionStatus)
def check_subscription(request: Request, adapter: RemoteSyncAdapter = Depends(get_sync_adapter)):
    """Re-run the subscription check and update the gate with the result."""
    try:
        result = adapter.check_subscription()
    except SubscriptionCheckFailed as e:
        request.app.state.subscription = SubscriptionStatus(
            clinic_id=adapter.clinic_id, valid=False, reason=str(e)
        )
        raise
    request.app.state.subscription = result
    return result


@router.post("/config")
def configure_remote(config: FirebaseConfig, adapter: RemoteSyncAdapter = Depends(get_sync_adapter)):
    """Test a clinic database config and cache it if the database answers."""
    parsed = adapter.test_config(config.model_dump(by_alias=True))
    return {"connected": True, "project_id": parsed.project_id}


@router.delete("/config", status_code=status.HTTP_204_NO_CONTENT)
def clear_config(adapter: RemoteSyncAdapter = Depends(get_sync_adapter)):
    adapter.clear_cached_config()


@router.post("/push")
def push(adapter: RemoteSyncAdapter = Depends(get_sync_adapter)):
    return {"pushed": adapter.push()}


@router.post("/pull")
def pull(adapter: RemoteSyncAdapter = Depends(get_sync_adapter)):
    return {"pulled": adapter.pull()}
