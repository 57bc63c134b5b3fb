"""
SMS broadcasts to residents.

Every broadcast is archived in ``sms_archive`` together with its delivery
outcome. Sending is one POST to the EngageSpark gateway, either inline or
handed to the ``deliver_sms`` Celery task.
"""
import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, time, timezone
from typing import Any, Dict, List, Optional

import httpx
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from waste_service.core.config import settings
from waste_service.core.errors import GatewayError, NotFoundError, ValidationError
from waste_service.core.retry import with_retry
from waste_service.db.ops import run_store_op
from waste_service.models import ActivityCategory, DeliveryStatus, Resident, SmsMessage
from waste_service.schemas.sms import SmsBroadcastCreate
from waste_service.services import activity as activity_log
from waste_service.utils.geo import normalize_purok
from waste_service.utils.time import as_utc, local_zone, utcnow

logger = logging.getLogger(__name__)

MESSAGE_TEMPLATES = {
    "reminder": "Reminder: Waste collection will happen today. Please place your garbage outside before 6:00 AM.",
    "delay": "Notice: Waste collection is delayed due to unforeseen circumstances. We apologize for the inconvenience.",
    "education": "Eco Tip: Segregate your biodegradable and non-biodegradable waste to help keep our barangay clean.",
    "emergency": "Emergency Alert: Please be advised of an urgent waste-related announcement from the barangay.",
}


@dataclass
class GatewayResult:
    success: bool
    payload: Dict[str, Any] = field(default_factory=dict)


# ============ Gateways ============

class SMSGateway(ABC):
    """Base class for SMS gateways"""

    @abstractmethod
    async def send(self, recipients: List[str], message: str) -> GatewayResult:
        pass


def _parse_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("Non-JSON response from SMS gateway", extra={"status_code": response.status_code})
        return {"raw": response.text}
    return data if isinstance(data, dict) else {"data": data}


class EngageSparkGateway(SMSGateway):
    """EngageSpark SMS API"""

    def __init__(
        self,
        api_url: str,
        api_key: Optional[str],
        org_id: Optional[str],
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.org_id = org_id
        self.timeout = timeout
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.org_id)

    async def send(self, recipients: List[str], message: str) -> GatewayResult:
        """
        POST one message to all recipients.

        Transport failures are retried; once retries run out they raise
        ``GatewayError``. HTTP error responses are returned as unsuccessful
        results, not raised.
        """
        if not self.configured:
            return GatewayResult(False, {"error": "SMS gateway is not configured"})
        if not recipients:
            return GatewayResult(False, {"error": "No recipients"})

        async def _post() -> httpx.Response:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                return await client.post(
                    self.api_url,
                    headers={
                        "Authorization": f"Token {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "organizationId": self.org_id,
                        "recipients": recipients,
                        "messageText": message,
                    },
                )

        try:
            response = await with_retry(
                _post,
                attempts=settings.store_retry_attempts,
                timeout=self.timeout,
                retry_on=(httpx.TransportError,),
                backoff=settings.retry_backoff_seconds,
                description="sms send",
            )
        except (httpx.TransportError, asyncio.TimeoutError) as exc:
            raise GatewayError(f"SMS gateway unreachable: {exc.__class__.__name__}") from exc

        payload = _parse_body(response)
        if not response.is_success:
            logger.warning(
                "SMS gateway rejected message",
                extra={"status_code": response.status_code, "recipients": len(recipients)},
            )
            return GatewayResult(False, {"status_code": response.status_code, "error": payload})
        return GatewayResult(True, payload)


def get_gateway() -> SMSGateway:
    return EngageSparkGateway(
        settings.sms_gateway_url,
        settings.sms_api_key,
        settings.sms_org_id,
        timeout=settings.sms_timeout_seconds,
    )


# ============ Broadcasts ============

async def resolve_recipients(session: AsyncSession, group: str) -> List[str]:
    """Mobile numbers for ``all`` residents or for one purok label."""

    async def _read() -> List[Resident]:
        result = await session.execute(
            select(Resident).where(Resident.mobile.is_not(None)).order_by(Resident.id)
        )
        return list(result.scalars().all())

    residents = await run_store_op(session, _read, description="sms recipients")
    wanted = normalize_purok(group).lower()
    numbers = []
    for resident in residents:
        if wanted != "all" and normalize_purok(resident.purok).lower() != wanted:
            continue
        number = resident.mobile.strip()
        if number and number not in numbers:
            numbers.append(number)
    return numbers


async def deliver(
    session: AsyncSession,
    record: SmsMessage,
    gateway: SMSGateway,
    raise_unreachable: bool = False,
) -> SmsMessage:
    """Send an archived message and record the outcome on its row.

    With ``raise_unreachable`` an unreachable gateway raises ``GatewayError``
    and leaves the row queued, so the caller can retry.
    """
    try:
        result = await gateway.send(list(record.recipients or []), record.message)
    except GatewayError as e:
        if raise_unreachable:
            raise
        result = GatewayResult(False, {"error": e.message})

    async def _write() -> SmsMessage:
        record.delivery_status = DeliveryStatus.sent if result.success else DeliveryStatus.failed
        record.gateway_response = result.payload
        record.sent_at = utcnow() if result.success else None
        await session.commit()
        return record

    record = await run_store_op(session, _write, description="sms outcome")
    log = logger.info if result.success else logger.warning
    log("SMS delivery finished", extra={"sms_id": record.id, "delivery_status": record.delivery_status.value})
    return record


async def broadcast(
    session: AsyncSession,
    data: SmsBroadcastCreate,
    gateway: Optional[SMSGateway] = None,
    queue: Optional[bool] = None,
) -> SmsMessage:
    """Archive a broadcast, then send it inline or queue it for the worker."""
    message = (data.message or MESSAGE_TEMPLATES.get(data.message_type or "", "")).strip()
    if not message:
        raise ValidationError("Please enter a message before sending")

    recipients = await resolve_recipients(session, data.recipient_group)
    if not recipients:
        raise ValidationError(f"No residents with a mobile number in group {data.recipient_group!r}")

    async def _write() -> SmsMessage:
        record = SmsMessage(
            recipient_group=data.recipient_group,
            message_type=data.message_type,
            message=message,
            recipients=recipients,
            scheduled_for=data.scheduled_for,
            delivery_status=DeliveryStatus.queued,
        )
        session.add(record)
        await session.commit()
        return record

    record = await run_store_op(session, _write, description="sms archive")
    await activity_log.append_quietly(
        session,
        f"Sent {data.message_type or 'custom'} SMS to {data.recipient_group}",
        ActivityCategory.message,
    )

    use_queue = settings.sms_use_queue if queue is None else queue
    if use_queue:
        from waste_service.tasks.sms import deliver_sms

        if data.scheduled_for and as_utc(data.scheduled_for) > utcnow():
            deliver_sms.apply_async(args=[record.id], eta=as_utc(data.scheduled_for))
        else:
            deliver_sms.delay(record.id)
        logger.info("SMS queued", extra={"sms_id": record.id, "recipients": len(recipients)})
        return record

    return await deliver(session, record, gateway or get_gateway())


async def get_message(session: AsyncSession, sms_id: int) -> SmsMessage:
    async def _read() -> Optional[SmsMessage]:
        return await session.get(SmsMessage, sms_id, populate_existing=True)

    record = await run_store_op(session, _read, description="sms get")
    if record is None:
        raise NotFoundError("SMS message not found")
    return record


async def list_messages(session: AsyncSession, archived: Optional[bool] = None) -> List[SmsMessage]:
    stmt = select(SmsMessage).order_by(SmsMessage.created_at.desc(), SmsMessage.id.desc())
    if archived is not None:
        stmt = stmt.where(SmsMessage.archived.is_(archived))

    async def _read() -> List[SmsMessage]:
        result = await session.execute(stmt.execution_options(populate_existing=True))
        return list(result.scalars().all())

    return await run_store_op(session, _read, description="sms list")


async def set_archived(session: AsyncSession, sms_id: int, archived: bool) -> SmsMessage:
    record = await get_message(session, sms_id)

    async def _write() -> SmsMessage:
        record.archived = archived
        await session.commit()
        return record

    return await run_store_op(session, _write, description="sms archive flag")


async def stats(session: AsyncSession, now: Optional[datetime] = None) -> Dict[str, int]:
    """Messages sent since local midnight, and all archived messages."""
    local_now = as_utc(now or utcnow()).astimezone(local_zone())
    midnight = datetime.combine(local_now.date(), time.min, tzinfo=local_zone()).astimezone(timezone.utc)

    async def _read() -> Dict[str, int]:
        sent_today = await session.scalar(
            select(func.count(SmsMessage.id)).where(SmsMessage.sent_at >= midnight)
        )
        total = await session.scalar(select(func.count(SmsMessage.id)))
        return {"sent_today": sent_today or 0, "total": total or 0}

    return await run_store_op(session, _read, description="sms stats")
