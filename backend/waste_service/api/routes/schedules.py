import datetime as dt

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from waste_service.api.deps import get_change_feed, get_current_user, get_db, require_roles
from waste_service.core.security import Principal, UserRole
from waste_service.models import ScheduleStatus
from waste_service.realtime import ChangeFeed
from waste_service.schemas.schedule import ScheduleCreate, ScheduleRead, ScheduleStatusUpdate, TransitionRead
from waste_service.services import schedules as schedule_service
from waste_service.services import transitions
from waste_service.utils.time import utcnow

router = APIRouter(prefix="/schedules", tags=["Schedules"])


@router.get("", response_model=list[ScheduleRead])
async def list_schedules(
    status_filter: ScheduleStatus | None = Query(default=None, alias="status"),
    neighborhood: str | None = None,
    on_date: dt.date | None = None,
    session: AsyncSession = Depends(get_db),
    _: Principal = Depends(get_current_user),
) -> list[ScheduleRead]:
    schedules = await schedule_service.list_schedules(
        session, status=status_filter, neighborhood=neighborhood, on_date=on_date
    )
    return [ScheduleRead.model_validate(schedule) for schedule in schedules]


@router.post("", response_model=ScheduleRead, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    payload: ScheduleCreate,
    session: AsyncSession = Depends(get_db),
    feed: ChangeFeed | None = Depends(get_change_feed),
    _: Principal = Depends(require_roles(UserRole.official)),
) -> ScheduleRead:
    schedule = await schedule_service.create_schedule(session, payload, feed=feed)
    return ScheduleRead.model_validate(schedule)


@router.get("/ongoing", response_model=list[ScheduleRead])
async def ongoing_schedules(
    neighborhood: str | None = None,
    session: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
) -> list[ScheduleRead]:
    """Schedules inside their time window right now, whatever their stored status."""
    if neighborhood is None and current_user.role == UserRole.resident:
        neighborhood = await schedule_service.resident_purok(session, current_user.user_id)
    schedules = await transitions.ongoing_for_neighborhood(session, neighborhood, utcnow())
    return [ScheduleRead.model_validate(schedule) for schedule in schedules]


@router.get("/upcoming", response_model=list[ScheduleRead])
async def upcoming_schedules(
    session: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(require_roles(UserRole.resident)),
) -> list[ScheduleRead]:
    schedules = await schedule_service.upcoming_for_resident(session, current_user.user_id, utcnow())
    return [ScheduleRead.model_validate(schedule) for schedule in schedules]


@router.get("/{schedule_id}", response_model=ScheduleRead)
async def get_schedule(
    schedule_id: int,
    session: AsyncSession = Depends(get_db),
    _: Principal = Depends(get_current_user),
) -> ScheduleRead:
    schedule = await schedule_service.get_schedule(session, schedule_id)
    return ScheduleRead.model_validate(schedule)


@router.patch("/{schedule_id}/status", response_model=TransitionRead)
async def update_schedule_status(
    schedule_id: int,
    payload: ScheduleStatusUpdate,
    session: AsyncSession = Depends(get_db),
    feed: ChangeFeed | None = Depends(get_change_feed),
    current_user: Principal = Depends(require_roles(UserRole.official, UserRole.collector)),
) -> TransitionRead:
    result = await transitions.update_schedule_status(
        session,
        schedule_id,
        payload.status,
        expected_version=payload.expected_version,
        actor_id=current_user.user_id,
        feed=feed,
    )
    return TransitionRead(
        schedule=ScheduleRead.model_validate(result.schedule),
        previous_status=result.previous_status,
        changed=result.changed,
        activity_logged=result.activity_logged,
    )
