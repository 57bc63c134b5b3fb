"""
Status Transition Engine

Every schedule status change made by an official or collector passes through
``update_schedule_status``: the persisted status is written first, then an
activity record is appended and a change event published. Any status may move
to any other status (officials reset mistaken completions); the activity log
is the audit trail.

Two notions of "ongoing" exist and are kept apart:

- the persisted ``Schedule.status``
- ``is_currently_ongoing(schedule, now)``, derived from the wall clock and the
  scheduled window, computed fresh on each call
"""
from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from waste_service.core.errors import ConflictError, NotFoundError
from waste_service.db.ops import run_store_op
from waste_service.models import ActivityCategory, Schedule, ScheduleStatus
from waste_service.realtime import ChangeEvent, ChangeFeed, EventType, publish_safely, row_payload
from waste_service.services import activity as activity_log
from waste_service.services.schedules import get_schedule, list_schedules
from waste_service.utils.time import to_local_naive, utcnow

logger = logging.getLogger(__name__)


class TimeWindow(Protocol):
    date: dt.date
    start_time: dt.time
    end_time: dt.time


@dataclass
class TransitionResult:
    schedule: Schedule
    previous_status: ScheduleStatus
    changed: bool
    activity_logged: bool


def classify_transition(purok: str, status: ScheduleStatus) -> tuple[str, ActivityCategory]:
    if status is ScheduleStatus.completed:
        return f"Marked {purok} collection as completed", ActivityCategory.complete
    if status is ScheduleStatus.ongoing:
        return f"Started collection for {purok}", ActivityCategory.update
    return f"Reset {purok} collection to not started", ActivityCategory.reset


def is_currently_ongoing(schedule: TimeWindow, now: dt.datetime, tz: dt.tzinfo | None = None) -> bool:
    """True while ``now`` lies inside ``[date + start_time, date + end_time]``.

    Aware ``now`` values are converted to the service zone first; naive ones
    are taken as local wall-clock time. The persisted status is ignored.
    """
    local_now = to_local_naive(now, tz)
    start = dt.datetime.combine(schedule.date, schedule.start_time)
    end = dt.datetime.combine(schedule.date, schedule.end_time)
    return start <= local_now <= end


async def update_schedule_status(
    session: AsyncSession,
    schedule_id: int,
    status: ScheduleStatus,
    expected_version: int | None = None,
    actor_id: str | None = None,
    feed: ChangeFeed | None = None,
) -> TransitionResult:
    """
    Persist a new status for a schedule.

    Setting the status a schedule already has is a no-op: nothing is written,
    logged or published. Without ``expected_version`` concurrent writers are
    last-write-wins; with it, a stale version raises ``ConflictError``.
    """
    schedule = await get_schedule(session, schedule_id)
    previous = schedule.status

    if expected_version is not None and expected_version != schedule.version:
        raise ConflictError(
            f"Schedule {schedule_id} is at version {schedule.version}, expected {expected_version}"
        )

    if previous == status:
        logger.info("Status unchanged, skipping write", extra={"schedule_id": schedule_id, "status": status.value})
        return TransitionResult(schedule=schedule, previous_status=previous, changed=False, activity_logged=False)

    async def _write() -> Schedule:
        stmt = (
            update(Schedule)
            .where(Schedule.id == schedule_id)
            .values(status=status, version=Schedule.version + 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if expected_version is not None:
            stmt = stmt.where(Schedule.version == expected_version)
        result = await session.execute(stmt)
        if result.rowcount == 0:
            await session.rollback()
            if expected_version is not None:
                raise ConflictError(f"Schedule {schedule_id} was modified concurrently")
            raise NotFoundError("Schedule not found")
        await session.commit()
        await session.refresh(schedule)
        return schedule

    # A failed write raises here, before any activity is recorded
    schedule = await run_store_op(session, _write, description="schedule status update")
    logger.info(
        "Schedule status changed",
        extra={"schedule_id": schedule_id, "from": previous.value, "to": status.value, "actor_id": actor_id},
    )

    action, category = classify_transition(schedule.purok, status)
    logged = await activity_log.append_quietly(session, action, category, schedule_id=schedule.id, feed=feed)

    await publish_safely(
        feed,
        ChangeEvent(
            "schedules",
            EventType.update,
            new=row_payload(schedule),
            old={"id": schedule.id, "status": previous.value},
        ),
    )
    return TransitionResult(schedule=schedule, previous_status=previous, changed=True, activity_logged=logged)


async def ongoing_for_neighborhood(
    session: AsyncSession,
    neighborhood: str | None,
    now: dt.datetime,
) -> list[Schedule]:
    """Today's schedules whose time window contains ``now``."""
    today = to_local_naive(now).date()
    schedules = await list_schedules(session, neighborhood=neighborhood, on_date=today)
    return [schedule for schedule in schedules if is_currently_ongoing(schedule, now)]


def count_window_ongoing(schedules: list[Schedule], now: dt.datetime) -> int:
    return sum(1 for schedule in schedules if is_currently_ongoing(schedule, now))
