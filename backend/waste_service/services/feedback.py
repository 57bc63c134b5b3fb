"""Resident feedback on resolved reports. One row per (report, resident)."""
from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession

from waste_service.core.errors import NotFoundError, ValidationError
from waste_service.db.ops import dialect_insert, run_store_op
from waste_service.models import Feedback, ReportStatusValue
from waste_service.realtime import ChangeEvent, ChangeFeed, EventType, publish_safely, row_payload
from waste_service.services.reports import get_report, get_status_row
from waste_service.utils.time import as_utc, utcnow

logger = logging.getLogger(__name__)


async def submit_feedback(
    session: AsyncSession,
    report_id: int,
    resident_id: str,
    rating: int | None = None,
    comment: str | None = None,
    feed: ChangeFeed | None = None,
) -> Feedback:
    """
    Rate or comment on a resolved report.

    A second submission by the same resident updates the existing row; a
    rating left out keeps the one already stored.

    Raises:
        NotFoundError: unknown report, or not one of the resident's
        ValidationError: report not resolved, or neither rating nor comment
    """
    comment = (comment or "").strip() or None
    if rating is None and comment is None:
        raise ValidationError("A rating or a comment is required")
    if rating is not None and not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5")

    report = await get_report(session, report_id)
    if report.resident_id != resident_id:
        raise NotFoundError("Report not found")

    status_row = await get_status_row(session, report_id)
    if status_row is None or status_row.status is not ReportStatusValue.resolved:
        raise ValidationError("Feedback can only be given on resolved reports")
    official_id = status_row.updated_by

    async def _write() -> Feedback:
        now = utcnow()
        table = Feedback.__table__
        stmt = dialect_insert(session, Feedback).values(
            report_id=report_id,
            resident_id=resident_id,
            official_id=official_id,
            rating=rating,
            comment=comment,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["report_id", "resident_id"],
            set_={
                "official_id": stmt.excluded.official_id,
                "rating": func.coalesce(stmt.excluded.rating, table.c.rating),
                "comment": func.coalesce(stmt.excluded.comment, table.c.comment),
                "updated_at": now,
            },
        ).returning(Feedback)
        result = await session.scalars(stmt, execution_options={"populate_existing": True})
        feedback = result.one()
        await session.commit()
        return feedback

    feedback = await run_store_op(session, _write, description="feedback upsert")
    logger.info("Feedback recorded", extra={"report_id": report_id, "resident_id": resident_id})
    # An insert stamps both timestamps with the same instant
    created = as_utc(feedback.created_at) == as_utc(feedback.updated_at)
    event_type = EventType.insert if created else EventType.update
    await publish_safely(feed, ChangeEvent("feedback", event_type, new=row_payload(feedback)))
    return feedback

