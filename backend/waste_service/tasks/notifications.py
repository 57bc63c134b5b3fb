from waste_service.core.celery_app import celery_app
from waste_service.db.session import SessionLocal
from waste_service.services import notifications as notification_service
from waste_service.tasks.sms import _dispose_engine, run_async
import logging

logger = logging.getLogger(__name__)


@celery_app.task
def dedupe_notifications():
    """Periodic reconciliation pass over (report, user) notification pairs."""

    async def _dedupe():
        try:
            async with SessionLocal() as session:
                return await notification_service.reconcile_duplicates(session)
        finally:
            await _dispose_engine()

    removed = run_async(_dedupe())
    if removed:
        logger.warning("Removed duplicate notifications", extra={"removed": removed})
    return removed
