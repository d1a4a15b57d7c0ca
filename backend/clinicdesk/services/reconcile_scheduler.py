"""
Background reconciliation of customer counters.

total_spent and total_visits are kept incrementally and drift when invoices
or visits are edited or removed outside the normal flows (imports, pulls,
deletions). This loop rebuilds them every RECONCILE_INTERVAL_SECONDS.
Disabled when the interval is 0.
"""
import asyncio
import logging

from clinicdesk.core.config import settings
from clinicdesk.db.session import SessionLocal
from clinicdesk.services.customer_service import reconcile_customer_counters
from clinicdesk.services.record_store import RecordStore

logger = logging.getLogger(__name__)

STARTUP_DELAY_SECONDS = 10

_scheduler_running = False
_scheduler_task: asyncio.Task | None = None


def run_reconciliation() -> int:
    """One pass on a fresh session. Returns the number of customers repaired."""
    db = SessionLocal()
    try:
        changed = reconcile_customer_counters(RecordStore(db))
        if not changed:
            logger.debug("[RECONCILE] Counters already consistent")
        return changed
    finally:
        db.close()


async def _reconcile_loop(interval: int):
    global _scheduler_running
    _scheduler_running = True

    logger.info(f"[RECONCILE] Scheduler started. Interval: {interval}s")

    # Let the server finish starting first
    await asyncio.sleep(STARTUP_DELAY_SECONDS)

    while _scheduler_running:
        try:
            # Blocking DB work goes to the thread pool
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, run_reconciliation)
        except Exception as e:
            logger.error(f"[RECONCILE] Pass failed: {e}", exc_info=True)

        await asyncio.sleep(interval)


def start_reconcile_scheduler(interval: int | None = None) -> bool:
    """Start the loop from the FastAPI lifespan. Returns False when disabled."""
    global _scheduler_task
    interval = settings.RECONCILE_INTERVAL_SECONDS if interval is None else interval
    if interval <= 0:
        logger.info("[RECONCILE] Scheduler disabled")
        return False
    _scheduler_task = asyncio.create_task(_reconcile_loop(interval))
    return True


def stop_reconcile_scheduler():
    global _scheduler_running, _scheduler_task
    _scheduler_running = False
    if _scheduler_task is not None:
        _scheduler_task.cancel()
        _scheduler_task = None
        logger.info("[RECONCILE] Scheduler stopped")
