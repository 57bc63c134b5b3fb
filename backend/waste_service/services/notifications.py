"""
Notification Fan-out

One notification row per (report, recipient). Every report-related change is
written with a single ``INSERT ... ON CONFLICT (report_id, user_id) DO UPDATE``
so concurrent calls cannot both insert.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from waste_service.core.errors import IntegrityViolation, NotFoundError, ValidationError
from waste_service.db.ops import dialect_insert, run_store_op
from waste_service.models import Notification
from waste_service.realtime import ChangeEvent, ChangeFeed, EventType, publish_safely, row_payload
from waste_service.utils.time import as_utc, utcnow

logger = logging.getLogger(__name__)


async def notify(
    session: AsyncSession,
    report_id: int,
    recipient_id: str,
    message: str,
    status: str | None = None,
    feed: ChangeFeed | None = None,
) -> Notification:
    """Insert or update in place the notification for ``(report_id, recipient_id)``.

    The row is always left unread. ``revision`` is 1 after an insert and grows
    with every later upsert, which decides the published event type.
    """
    if not recipient_id:
        raise ValidationError("Notification recipient is required")
    if not message or not message.strip():
        raise ValidationError("Notification message must not be empty")

    async def _write() -> Notification:
        now = utcnow()
        stmt = dialect_insert(session, Notification).values(
            report_id=report_id,
            user_id=recipient_id,
            message=message,
            status=status,
            read=False,
            revision=1,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["report_id", "user_id"],
            set_={
                "message": stmt.excluded.message,
                "status": stmt.excluded.status,
                "read": False,
                "updated_at": now,
                "revision": Notification.__table__.c.revision + 1,
            },
        ).returning(Notification)
        result = await session.scalars(stmt, execution_options={"populate_existing": True})
        notification = result.one()
        await session.commit()
        return notification

    notification = await run_store_op(session, _write, description="notification upsert")
    event_type = EventType.insert if notification.revision == 1 else EventType.update
    logger.info(
        "Notification upserted",
        extra={"report_id": report_id, "user_id": recipient_id, "revision": notification.revision},
    )
    await publish_safely(feed, ChangeEvent("notifications", event_type, new=row_payload(notification)))
    return notification


async def list_notifications(session: AsyncSession, user_id: str) -> list[Notification]:
    async def _read() -> list[Notification]:
        result = await session.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.updated_at.desc(), Notification.id.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    return await run_store_op(session, _read, description="notification list")


async def mark_read(
    session: AsyncSession,
    notification_id: int,
    user_id: str,
    feed: ChangeFeed | None = None,
) -> Notification:
    async def _write() -> tuple[Notification | None, bool]:
        notification = await session.get(Notification, notification_id, populate_existing=True)
        if notification is None or notification.user_id != user_id:
            return None, False
        if notification.read:
            return notification, False
        notification.read = True
        notification.updated_at = utcnow()
        await session.commit()
        return notification, True

    notification, changed = await run_store_op(session, _write, description="notification mark read")
    if notification is None:
        raise NotFoundError("Notification not found")
    if changed:
        await publish_safely(feed, ChangeEvent("notifications", EventType.update, new=row_payload(notification)))
    return notification


async def mark_all_read(session: AsyncSession, user_id: str, feed: ChangeFeed | None = None) -> int:
    """Mark every unread notification of ``user_id`` as read. Idempotent."""

    async def _write() -> list[int]:
        result = await session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True, updated_at=utcnow())
            .returning(Notification.id)
            .execution_options(synchronize_session=False)
        )
        ids = list(result.scalars().all())
        await session.commit()
        return ids

    ids = await run_store_op(session, _write, description="notification mark all read")
    for notification_id in ids:
        # Partial payload; subscribers holding the row patch it, others re-fetch
        await publish_safely(
            feed,
            ChangeEvent(
                "notifications",
                EventType.update,
                new={"id": notification_id, "user_id": user_id, "read": True},
            ),
        )
    return len(ids)


async def clear_all(session: AsyncSession, user_id: str, feed: ChangeFeed | None = None) -> int:
    """Hard-delete every notification of ``user_id``."""

    async def _write() -> list[tuple[int, int]]:
        result = await session.execute(
            delete(Notification)
            .where(Notification.user_id == user_id)
            .returning(Notification.id, Notification.report_id)
            .execution_options(synchronize_session=False)
        )
        rows = [(row.id, row.report_id) for row in result.all()]
        await session.commit()
        return rows

    rows = await run_store_op(session, _write, description="notification clear all")
    for notification_id, report_id in rows:
        await publish_safely(
            feed,
            ChangeEvent(
                "notifications",
                EventType.delete,
                old={"id": notification_id, "report_id": report_id, "user_id": user_id},
            ),
        )
    logger.info("Notifications cleared", extra={"user_id": user_id, "count": len(rows)})
    return len(rows)


def find_duplicate_groups(rows: Iterable[Notification]) -> dict[tuple[int, str], list[Notification]]:
    """Group rows by ``(report_id, user_id)``; only groups with more than one row.

    Each group is sorted newest first, so the first element is the keeper.
    """
    groups: dict[tuple[int, str], list[Notification]] = defaultdict(list)
    for row in rows:
        groups[(row.report_id, row.user_id)].append(row)
    return {
        key: sorted(items, key=lambda n: (as_utc(n.updated_at), n.id), reverse=True)
        for key, items in groups.items()
        if len(items) > 1
    }


async def reconcile_duplicates(session: AsyncSession) -> int:
    """Delete all but the newest row of every duplicated ``(report_id, user_id)`` pair.

    Returns the number of rows removed. Needed only for data written before
    the unique constraint existed.
    """

    async def _read() -> list[Notification]:
        result = await session.execute(select(Notification))
        return list(result.scalars().all())

    groups = find_duplicate_groups(await run_store_op(session, _read, description="notification scan"))
    if not groups:
        return 0

    doomed: list[int] = []
    for (report_id, user_id), items in groups.items():
        violation = IntegrityViolation(
            f"{len(items)} notifications for report {report_id} and user {user_id}"
        )
        logger.warning(
            violation.message,
            extra={"report_id": report_id, "user_id": user_id, "kept_id": items[0].id},
        )
        doomed.extend(item.id for item in items[1:])

    async def _write() -> int:
        result = await session.execute(
            delete(Notification)
            .where(Notification.id.in_(doomed))
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        return result.rowcount

    return await run_store_op(session, _write, description="notification dedup")
