"""
Activity Log Sink

Append-only "what happened" records for schedules and reports. Dashboards read
a recent window of them: the last ``activity_fetch_limit`` rows are fetched
and then filtered by age, so the row limit can cut the window shorter than
``activity_window_hours`` on a busy day.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from waste_service.core.config import settings
from waste_service.core.errors import TransientStoreError, ValidationError
from waste_service.db.ops import run_store_op, side_session
from waste_service.models import Activity, ActivityCategory
from waste_service.realtime import ChangeEvent, ChangeFeed, EventType, publish_safely, row_payload
from waste_service.utils.time import as_utc, utcnow

logger = logging.getLogger(__name__)


async def append(
    session: AsyncSession,
    action: str,
    category: ActivityCategory,
    schedule_id: Optional[int] = None,
    report_id: Optional[int] = None,
    feed: Optional[ChangeFeed] = None,
) -> Activity:
    """
    Record one activity and commit it.

    Raises:
        ValidationError: empty action text
        TransientStoreError: store unreachable after retries
    """
    text = (action or "").strip()
    if not text:
        raise ValidationError("Activity text must not be empty")

    async def _write() -> Activity:
        activity = Activity(
            action=text,
            type=category.value,
            schedule_id=schedule_id,
            report_id=report_id,
        )
        session.add(activity)
        await session.commit()
        return activity

    activity = await run_store_op(session, _write, description="activity append")
    await publish_safely(feed, ChangeEvent("activities", EventType.insert, new=row_payload(activity)))
    return activity


async def append_quietly(
    session: AsyncSession,
    action: str,
    category: ActivityCategory,
    schedule_id: Optional[int] = None,
    report_id: Optional[int] = None,
    feed: Optional[ChangeFeed] = None,
) -> bool:
    """Append as a secondary effect: failures are logged, never raised.

    Runs in its own session so a failed append cannot expire the caller's
    objects.
    """
    try:
        async with side_session(session) as side:
            await append(side, action, category, schedule_id=schedule_id, report_id=report_id, feed=feed)
        return True
    except (TransientStoreError, SQLAlchemyError) as e:
        logger.warning(
            f"Failed to log activity: {e}",
            extra={"category": category.value, "schedule_id": schedule_id, "report_id": report_id},
        )
        return False


async def recent(
    session: AsyncSession,
    window: Optional[timedelta] = None,
    limit: Optional[int] = None,
    now: Optional[datetime] = None,
) -> List[Activity]:
    """Activities newer than ``now - window``, newest first."""
    window = window if window is not None else timedelta(hours=settings.activity_window_hours)
    if limit is None:
        limit = settings.activity_fetch_limit
    cutoff = as_utc(now or utcnow()) - window

    async def _read() -> List[Activity]:
        result = await session.execute(
            select(Activity).order_by(Activity.created_at.desc(), Activity.id.desc()).limit(limit)
        )
        return list(result.scalars().all())

    rows = await run_store_op(session, _read, description="recent activities")
    return [row for row in rows if as_utc(row.created_at) >= cutoff]
