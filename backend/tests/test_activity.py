import datetime as dt

import pytest

from waste_service.core.errors import ValidationError
from waste_service.models import Activity, ActivityCategory
from waste_service.realtime import EventType
from waste_service.services import activity as activity_log
from waste_service.utils.time import utcnow


async def _seed(session, ages_in_hours):
    now = utcnow()
    for n, hours in enumerate(ages_in_hours):
        session.add(
            Activity(
                action=f"entry {n}",
                type=ActivityCategory.update.value,
                created_at=now - dt.timedelta(hours=hours),
            )
        )
    await session.commit()
    return now


async def test_append_rejects_empty_text(session):
    with pytest.raises(ValidationError):
        await activity_log.append(session, "   ", ActivityCategory.update)


async def test_append_publishes_insert(session, feed):
    subscription = await feed.subscribe("activities")
    activity = await activity_log.append(session, "Started collection for Purok 1", ActivityCategory.update, feed=feed)

    event = await subscription.get(timeout=1)
    assert event.event_type is EventType.insert
    assert event.new["id"] == activity.id
    assert event.new["type"] == "update"
    await subscription.close()


async def test_recent_filters_by_age_newest_first(session):
    now = await _seed(session, [1, 30, 5, 23.5])

    recent = await activity_log.recent(session, now=now)

    assert [a.action for a in recent] == ["entry 0", "entry 2", "entry 3"]


async def test_recent_row_limit_cuts_the_window_short(session):
    now = await _seed(session, [1, 2, 3, 4])

    recent = await activity_log.recent(session, limit=2, now=now)

    assert [a.action for a in recent] == ["entry 0", "entry 1"]


async def test_recent_with_custom_window(session):
    now = await _seed(session, [0.5, 2])

    recent = await activity_log.recent(session, window=dt.timedelta(hours=1), now=now)

    assert [a.action for a in recent] == ["entry 0"]


async def test_recent_with_zero_limit_returns_nothing(session):
    now = await _seed(session, [1, 2])

    assert await activity_log.recent(session, limit=0, now=now) == []
