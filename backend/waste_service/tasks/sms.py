from waste_service.core.celery_app import celery_app
from waste_service.core.errors import GatewayError
from waste_service.db.session import SessionLocal, engine
from waste_service.models import DeliveryStatus
from waste_service.services import sms as sms_service
import asyncio
import logging

logger = logging.getLogger(__name__)


def run_async(coro):
    """Helper to run async functions in sync context"""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _dispose_engine():
    # Pooled connections belong to the loop that opened them
    await engine.dispose()


@celery_app.task(bind=True, max_retries=3)
def deliver_sms(self, sms_id: int):
    """Send an archived SMS; an unreachable gateway is retried, then recorded as failed."""

    async def _deliver():
        try:
            async with SessionLocal() as session:
                record = await sms_service.get_message(session, sms_id)
                if record.delivery_status != DeliveryStatus.queued:
                    logger.info("SMS already delivered, skipping", extra={"sms_id": sms_id})
                    return record.delivery_status.value
                record = await sms_service.deliver(
                    session,
                    record,
                    sms_service.get_gateway(),
                    raise_unreachable=self.request.retries < self.max_retries,
                )
                return record.delivery_status.value
        finally:
            await _dispose_engine()

    try:
        return run_async(_deliver())
    except GatewayError as exc:
        logger.warning(f"SMS gateway unreachable, retrying: {exc}", extra={"sms_id": sms_id})
        raise self.retry(exc=exc, countdown=60)
