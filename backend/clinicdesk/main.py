"""
ClinicDesk Backend: inventory, billing, customers and reports for one clinic shop.

ARCHITECTURE:
- FastAPI routers over domain services
- Record Store: JSON collections in a SQL key-value table (SQLite by default)
- One process-wide draft invoice at the billing counter
- Optional remote mirror and subscription check against Firebase RTDB

SUBSCRIPTION GATE:
- When enabled, the subscription is checked at startup
- While it is invalid (or could not be checked) every route except /health
  and /sync/* answers 402
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clinicdesk.api.routes import analytics, billing, customers, data, inventory, invoices, sync, visits
from clinicdesk.api.routes import settings as settings_routes
from clinicdesk.core.config import settings
from clinicdesk.core.exceptions import ClinicDeskError, SubscriptionCheckFailed, to_http_exception
from clinicdesk.db.init_db import init_db
from clinicdesk.db.session import SessionLocal
from clinicdesk.schemas.invoice import InvoiceDraft
from clinicdesk.schemas.sync import SubscriptionStatus
from clinicdesk.services.reconcile_scheduler import start_reconcile_scheduler, stop_reconcile_scheduler
from clinicdesk.services.record_store import RecordStore
from clinicdesk.services.sync_service import RemoteSyncAdapter

logger = logging.getLogger(__name__)

UNGATED_PATHS = ("/health", "/sync", "/docs", "/openapi.json")


def is_ungated(path: str) -> bool:
    """Exact match or a sub-path: /sync/status passes, /syncanything does not."""
    return any(path == p or path.startswith(p + "/") for p in UNGATED_PATHS)


def check_subscription_at_startup() -> SubscriptionStatus:
    db = SessionLocal()
    try:
        adapter = RemoteSyncAdapter(RecordStore(db))
        try:
            return adapter.check_subscription()
        except SubscriptionCheckFailed as e:
            return SubscriptionStatus(clinic_id=adapter.clinic_id, valid=False, reason=str(e))
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    1. Initialize database tables and default collections
    2. Check the subscription (if enabled)
    3. Start the counter reconciliation scheduler (if an interval is set)

    Shutdown:
    1. Stop the scheduler
    """
    logger.info("[STARTUP] Initializing database...")
    init_db()

    app.state.invoice_draft = InvoiceDraft()
    app.state.subscription = None
    if settings.SUBSCRIPTION_CHECK_ENABLED:
        app.state.subscription = check_subscription_at_startup()
        if not app.state.subscription.valid:
            logger.warning(f"[STARTUP] Subscription invalid: {app.state.subscription.reason}")
    else:
        logger.info("[STARTUP] Subscription check disabled")

    start_reconcile_scheduler()

    yield

    stop_reconcile_scheduler()


app = FastAPI(
    title="ClinicDesk API",
    description="Inventory, billing, customers and reports for a medical shop.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Accept",
        "Origin",
    ],
    max_age=600,
    expose_headers=["Content-Type", "Content-Disposition"],
)


@app.middleware("http")
async def subscription_gate(request: Request, call_next):
    subscription = getattr(request.app.state, "subscription", None)
    if (
        subscription is not None
        and not subscription.valid
        and not is_ungated(request.url.path)
    ):
        return JSONResponse(
            status_code=402,
            content={"detail": subscription.reason or "Subscription is not valid"},
        )
    return await call_next(request)


@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-XSS-Protection"] = "1; mode=block"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


@app.exception_handler(ClinicDeskError)
async def clinicdesk_error_handler(request: Request, exc: ClinicDeskError):
    http_exc = to_http_exception(exc)
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


app.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
app.include_router(customers.router, prefix="/customers", tags=["customers"])
app.include_router(visits.router, prefix="/visits", tags=["visits"])
app.include_router(billing.router, prefix="/billing", tags=["billing"])
app.include_router(invoices.router, prefix="/invoices", tags=["invoices"])
app.include_router(analytics.router, prefix="/analytics", tags=["analytics"])
app.include_router(settings_routes.router, prefix="/settings", tags=["settings"])
app.include_router(data.router, prefix="/data", tags=["data"])
app.include_router(sync.router, prefix="/sync", tags=["sync"])


@app.get("/health")
def health():
    return {"status": "ok", "environment": settings.ENVIRONMENT}
