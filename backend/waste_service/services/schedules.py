"""
Schedule Store

Durable storage of collection schedules, always returned ordered by date and
then start time. Status changes go through ``services.transitions``.
"""
from __future__ import annotations

import datetime as dt
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from waste_service.core.errors import NotFoundError, ValidationError
from waste_service.db.ops import run_store_op
from waste_service.models import ActivityCategory, Resident, Schedule, ScheduleStatus
from waste_service.realtime import ChangeEvent, ChangeFeed, EventType, publish_safely, row_payload
from waste_service.schemas.schedule import ScheduleCreate
from waste_service.services import activity as activity_log
from waste_service.utils.geo import normalize_purok
from waste_service.utils.time import to_local_naive

logger = logging.getLogger(__name__)

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def day_of_week(value: dt.date) -> str:
    return DAY_NAMES[value.weekday()]


def _like_pattern(token: str) -> str:
    escaped = token.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def validate_schedule(data: ScheduleCreate) -> None:
    if not data.purok or not data.purok.strip():
        raise ValidationError("Neighborhood (purok) is required")
    if not normalize_purok(data.purok):
        raise ValidationError("Neighborhood (purok) must name a zone")
    if data.start_time >= data.end_time:
        raise ValidationError("Start time must be before end time")
    # The weekday is derived from the date; a supplied one may only confirm it
    if data.day and data.day.strip().lower() != day_of_week(data.date).lower():
        raise ValidationError(f"{data.date.isoformat()} is a {day_of_week(data.date)}, not {data.day.strip()}")


async def create_schedule(
    session: AsyncSession,
    data: ScheduleCreate,
    feed: ChangeFeed | None = None,
) -> Schedule:
    validate_schedule(data)

    async def _write() -> Schedule:
        schedule = Schedule(
            purok=data.purok.strip(),
            plan=data.plan or "A",
            day=day_of_week(data.date),
            date=data.date,
            start_time=data.start_time,
            end_time=data.end_time,
            waste_type=data.waste_type,
            status=data.status,
            route_points=[list(point) for point in data.route_points],
        )
        session.add(schedule)
        await session.commit()
        return schedule

    schedule = await run_store_op(session, _write, description="schedule create")
    logger.info("Schedule created", extra={"schedule_id": schedule.id, "purok": schedule.purok})

    await activity_log.append_quietly(
        session,
        f"Added new schedule for Purok {normalize_purok(schedule.purok)} on {schedule.date.isoformat()}",
        ActivityCategory.create,
        schedule_id=schedule.id,
        feed=feed,
    )
    await publish_safely(feed, ChangeEvent("schedules", EventType.insert, new=row_payload(schedule)))
    return schedule


async def get_schedule(session: AsyncSession, schedule_id: int) -> Schedule:
    async def _read() -> Schedule | None:
        return await session.get(Schedule, schedule_id, populate_existing=True)

    schedule = await run_store_op(session, _read, description="schedule get")
    if not schedule:
        raise NotFoundError("Schedule not found")
    return schedule


async def list_schedules(
    session: AsyncSession,
    status: ScheduleStatus | None = None,
    neighborhood: str | None = None,
    on_date: dt.date | None = None,
    date_from: dt.date | None = None,
) -> list[Schedule]:
    stmt = select(Schedule)
    if status is not None:
        stmt = stmt.where(Schedule.status == status)
    token = normalize_purok(neighborhood)
    if token:
        stmt = stmt.where(Schedule.purok.ilike(_like_pattern(token), escape="\\"))
    if on_date is not None:
        stmt = stmt.where(Schedule.date == on_date)
    if date_from is not None:
        stmt = stmt.where(Schedule.date >= date_from)
    stmt = stmt.order_by(Schedule.date.asc(), Schedule.start_time.asc(), Schedule.id.asc())
    stmt = stmt.execution_options(populate_existing=True)

    async def _read() -> list[Schedule]:
        result = await session.execute(stmt)
        return list(result.scalars().all())

    return await run_store_op(session, _read, description="schedule list")


async def resident_purok(session: AsyncSession, resident_id: str) -> str | None:
    async def _read() -> Resident | None:
        return await session.get(Resident, resident_id)

    resident = await run_store_op(session, _read, description="resident lookup")
    return resident.purok if resident else None


async def upcoming_for_resident(
    session: AsyncSession,
    resident_id: str,
    now: dt.datetime,
) -> list[Schedule]:
    """Schedules in the resident's purok that have not started yet."""
    purok = await resident_purok(session, resident_id)
    if not normalize_purok(purok):
        return []
    local_now = to_local_naive(now)
    schedules = await list_schedules(session, neighborhood=purok, date_from=local_now.date())
    return [
        schedule
        for schedule in schedules
        if dt.datetime.combine(schedule.date, schedule.start_time) >= local_now
    ]
