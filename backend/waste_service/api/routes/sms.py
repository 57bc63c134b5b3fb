from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from waste_service.api.deps import get_db, get_sms_gateway, require_roles
from waste_service.core.security import Principal, UserRole
from waste_service.schemas.sms import SmsArchiveUpdate, SmsBroadcastCreate, SmsMessageRead, SmsStats
from waste_service.services import sms as sms_service
from waste_service.services.sms import SMSGateway

router = APIRouter(prefix="/sms", tags=["SMS"])


@router.post("", response_model=SmsMessageRead, status_code=status.HTTP_201_CREATED)
async def send_broadcast(
    payload: SmsBroadcastCreate,
    session: AsyncSession = Depends(get_db),
    gateway: SMSGateway = Depends(get_sms_gateway),
    _: Principal = Depends(require_roles(UserRole.official)),
) -> SmsMessageRead:
    record = await sms_service.broadcast(session, payload, gateway=gateway)
    return SmsMessageRead.model_validate(record)


@router.get("", response_model=list[SmsMessageRead])
async def sms_history(
    archived: bool | None = None,
    session: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_roles(UserRole.official)),
) -> list[SmsMessageRead]:
    records = await sms_service.list_messages(session, archived=archived)
    return [SmsMessageRead.model_validate(record) for record in records]


@router.get("/stats", response_model=SmsStats)
async def sms_stats(
    session: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_roles(UserRole.official)),
) -> SmsStats:
    return SmsStats(**await sms_service.stats(session))


@router.patch("/{sms_id}/archive", response_model=SmsMessageRead)
async def set_archived(
    sms_id: int,
    payload: SmsArchiveUpdate,
    session: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_roles(UserRole.official)),
) -> SmsMessageRead:
    record = await sms_service.set_archived(session, sms_id, payload.archived)
    return SmsMessageRead.model_validate(record)
