import asyncio
import datetime as dt
from types import SimpleNamespace

import pytest
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from waste_service.core.config import settings
from waste_service.core.errors import NotFoundError, ValidationError
from waste_service.db.base import Base
from waste_service.models import Notification, Report
from waste_service.realtime import EventType
from waste_service.services import notifications as notification_service
from waste_service.tasks import notifications as notification_tasks

# notifications as created before uq_notifications_report_user existed
LEGACY_NOTIFICATIONS_DDL = """
CREATE TABLE notifications (
    id INTEGER NOT NULL PRIMARY KEY,
    report_id INTEGER NOT NULL REFERENCES reports (id) ON DELETE CASCADE,
    user_id VARCHAR(64) NOT NULL,
    message TEXT NOT NULL,
    status VARCHAR(32),
    "read" BOOLEAN NOT NULL DEFAULT 0,
    revision INTEGER NOT NULL DEFAULT 1,
    created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP
)
"""

T0 = dt.datetime(2026, 10, 19, 8, 0, tzinfo=dt.timezone.utc)


async def _use_legacy_notifications_table(conn):
    await conn.execute(text("DROP TABLE notifications"))
    await conn.execute(text(LEGACY_NOTIFICATIONS_DDL))


@pytest.fixture
async def report(session):
    report = Report(resident_id="resident-1", title="Overflowing bin", description="Bin at corner", file_urls=[])
    session.add(report)
    await session.commit()
    return report


async def _count(session, **filters):
    stmt = select(func.count(Notification.id))
    for column, value in filters.items():
        stmt = stmt.where(getattr(Notification, column) == value)
    return await session.scalar(stmt)


async def test_repeated_notify_keeps_one_row(session, feed, report):
    subscription = await feed.subscribe("notifications")

    for n in range(5):
        await notification_service.notify(session, report.id, "resident-1", f"update {n}", status="In Progress", feed=feed)

    assert await _count(session, report_id=report.id, user_id="resident-1") == 1
    rows = await notification_service.list_notifications(session, "resident-1")
    assert rows[0].message == "update 4"
    assert rows[0].revision == 5

    events = [await subscription.get(timeout=1) for _ in range(5)]
    assert [e.event_type for e in events] == [EventType.insert] + [EventType.update] * 4
    await subscription.close()


async def test_notify_resets_read_flag(session, report):
    first = await notification_service.notify(session, report.id, "resident-1", "first")
    await notification_service.mark_read(session, first.id, "resident-1")

    again = await notification_service.notify(session, report.id, "resident-1", "second")
    assert again.id == first.id
    assert again.read is False
    assert again.message == "second"


async def test_notify_separate_rows_per_recipient(session, report):
    await notification_service.notify(session, report.id, "resident-1", "hello")
    await notification_service.notify(session, report.id, "official-1", "hello")
    assert await _count(session, report_id=report.id) == 2


async def test_notify_rejects_empty_message(session, report):
    with pytest.raises(ValidationError):
        await notification_service.notify(session, report.id, "resident-1", "  ")


async def test_mark_read_checks_ownership(session, report):
    row = await notification_service.notify(session, report.id, "resident-1", "hi")
    with pytest.raises(NotFoundError):
        await notification_service.mark_read(session, row.id, "someone-else")


async def test_mark_all_read_is_idempotent(session, feed):
    for n in range(3):
        report = Report(resident_id="resident-1", title=f"r{n}", description="d", file_urls=[])
        session.add(report)
        await session.commit()
        await notification_service.notify(session, report.id, "resident-1", f"message {n}")

    subscription = await feed.subscribe("notifications", event_types=[EventType.update])
    assert await notification_service.mark_all_read(session, "resident-1", feed=feed) == 3
    assert await notification_service.mark_all_read(session, "resident-1", feed=feed) == 0

    assert await _count(session, user_id="resident-1", read=False) == 0
    assert subscription.pending() == 3
    event = await subscription.get(timeout=1)
    assert event.new["read"] is True
    await subscription.close()


async def test_clear_all_only_touches_owner(session, feed, report):
    await notification_service.notify(session, report.id, "resident-1", "mine")
    await notification_service.notify(session, report.id, "resident-2", "theirs")
    subscription = await feed.subscribe("notifications", event_types=[EventType.delete])

    assert await notification_service.clear_all(session, "resident-1", feed=feed) == 1

    assert await _count(session, user_id="resident-1") == 0
    assert await _count(session, user_id="resident-2") == 1
    event = await subscription.get(timeout=1)
    assert event.old["user_id"] == "resident-1"
    await subscription.close()


def test_find_duplicate_groups_keeps_newest_first():
    t0 = dt.datetime(2026, 10, 19, 8, 0, tzinfo=dt.timezone.utc)
    rows = [
        SimpleNamespace(id=1, report_id=10, user_id="u1", updated_at=t0),
        SimpleNamespace(id=2, report_id=10, user_id="u1", updated_at=t0 + dt.timedelta(minutes=5)),
        SimpleNamespace(id=3, report_id=11, user_id="u1", updated_at=t0),
        SimpleNamespace(id=4, report_id=10, user_id="u2", updated_at=t0),
    ]

    groups = notification_service.find_duplicate_groups(rows)

    assert list(groups) == [(10, "u1")]
    assert [row.id for row in groups[(10, "u1")]] == [2, 1]


async def test_reconcile_without_duplicates_removes_nothing(session, report):
    await notification_service.notify(session, report.id, "resident-1", "only one")
    assert await notification_service.reconcile_duplicates(session) == 0
    assert await _count(session) == 1


async def test_mark_read_publishes_only_on_change(session, feed, report):
    row = await notification_service.notify(session, report.id, "resident-1", "hi")
    subscription = await feed.subscribe("notifications", event_types=[EventType.update])

    await notification_service.mark_read(session, row.id, "resident-1", feed=feed)
    again = await notification_service.mark_read(session, row.id, "resident-1", feed=feed)

    assert again.read is True
    assert subscription.pending() == 1
    await subscription.close()


async def test_concurrent_notify_leaves_one_row(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "store_retry_attempts", 6)
    monkeypatch.setattr(settings, "retry_backoff_seconds", 0.05)
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'notify.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)

    try:
        async with factory() as setup:
            report = Report(resident_id="resident-1", title="Missed pickup", description="d", file_urls=[])
            setup.add(report)
            await setup.commit()

        async def send(n):
            async with factory() as session:
                return await notification_service.notify(session, report.id, "resident-1", f"update {n}")

        results = await asyncio.gather(*(send(n) for n in range(8)))

        assert len({row.id for row in results}) == 1
        assert sorted(row.revision for row in results) == list(range(1, 9))
        async with factory() as check:
            assert await _count(check, report_id=report.id, user_id="resident-1") == 1
            stored = await check.scalar(select(Notification.revision))
            assert stored == 8
    finally:
        await engine.dispose()


@pytest.fixture
async def legacy_table(engine):
    async with engine.begin() as conn:
        await _use_legacy_notifications_table(conn)


async def test_reconcile_keeps_newest_of_each_duplicate_group(session, report, legacy_table, caplog):
    session.add_all(
        [
            Notification(report_id=report.id, user_id="resident-1", message="old", updated_at=T0),
            Notification(report_id=report.id, user_id="resident-1", message="newest", updated_at=T0 + dt.timedelta(minutes=5)),
            Notification(report_id=report.id, user_id="resident-1", message="middle", updated_at=T0 + dt.timedelta(minutes=2)),
            Notification(report_id=report.id, user_id="resident-2", message="single", updated_at=T0),
        ]
    )
    await session.commit()

    with caplog.at_level("WARNING"):
        removed = await notification_service.reconcile_duplicates(session)

    assert removed == 2
    remaining = (
        await session.execute(select(Notification.user_id, Notification.message).order_by(Notification.user_id))
    ).all()
    assert [tuple(row) for row in remaining] == [("resident-1", "newest"), ("resident-2", "single")]
    assert f"3 notifications for report {report.id} and user resident-1" in caplog.text
    assert await notification_service.reconcile_duplicates(session) == 0


def test_dedupe_task_cleans_legacy_rows(tmp_path, monkeypatch):
    # Sync test: the task runs its own event loop
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'legacy.db'}", poolclass=NullPool)
    factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)

    async def seed():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
            await _use_legacy_notifications_table(conn)
        async with factory() as session:
            report = Report(resident_id="resident-1", title="Missed pickup", description="d", file_urls=[])
            session.add(report)
            await session.commit()
            session.add_all(
                [
                    Notification(
                        report_id=report.id,
                        user_id="resident-1",
                        message=f"m{n}",
                        updated_at=T0 + dt.timedelta(minutes=n),
                    )
                    for n in range(3)
                ]
            )
            await session.commit()

    async def messages():
        async with factory() as session:
            return list((await session.execute(select(Notification.message))).scalars())

    asyncio.run(seed())
    monkeypatch.setattr(notification_tasks, "SessionLocal", factory)
    try:
        assert notification_tasks.dedupe_notifications() == 2
        assert asyncio.run(messages()) == ["m2"]
    finally:
        asyncio.run(engine.dispose())
