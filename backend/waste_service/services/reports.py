"""
Resident reports and their official status.

``report_status`` holds exactly one row per report, written by upsert; the
``reports`` row mirrors its status and response in the same transaction.
Activity logging and the resident notification follow the committed write
as secondary effects.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from waste_service.core.errors import NotFoundError, ServiceError, ValidationError
from waste_service.db.ops import dialect_insert, run_store_op, side_session
from waste_service.models import ActivityCategory, Report, ReportStatus, ReportStatusValue
from waste_service.realtime import ChangeEvent, ChangeFeed, EventType, publish_safely, row_payload
from waste_service.services import activity as activity_log
from waste_service.services import notifications
from waste_service.utils.time import utcnow

logger = logging.getLogger(__name__)

NOTIFICATION_TEMPLATES = {
    ReportStatusValue.resolved: 'Your report titled "{title}" has been marked as resolved: {response}',
    ReportStatusValue.in_progress: 'Official responded to your report titled "{title}": {response}',
    ReportStatusValue.pending: 'Your report titled "{title}" was moved back to pending: {response}',
}

ACTIVITY_MESSAGES = {
    ReportStatusValue.resolved: "Marked report as resolved",
    ReportStatusValue.in_progress: "Responded to report",
    ReportStatusValue.pending: "Reopened report",
}


@dataclass
class ReportUpdateOutcome:
    report: Report
    activity_logged: bool
    notified: bool


def notification_message(title: str, status: ReportStatusValue, response: str | None) -> str:
    return NOTIFICATION_TEMPLATES[status].format(title=title, response=response or "")


async def submit_report(
    session: AsyncSession,
    resident_id: str,
    title: str,
    description: str,
    location: str | None = None,
    file_urls: list[str] | None = None,
    feed: ChangeFeed | None = None,
) -> Report:
    title = (title or "").strip()
    description = (description or "").strip()
    if not title:
        raise ValidationError("Report title is required")
    if not description:
        raise ValidationError("Report description is required")

    async def _write() -> Report:
        report = Report(
            resident_id=resident_id,
            title=title,
            description=description,
            location=location,
            file_urls=list(file_urls or []),
            status=ReportStatusValue.pending,
        )
        session.add(report)
        await session.flush()
        session.add(ReportStatus(report_id=report.id, status=ReportStatusValue.pending, location=location))
        await session.commit()
        return report

    report = await run_store_op(session, _write, description="report submit")
    logger.info("Report submitted", extra={"report_id": report.id, "resident_id": resident_id})

    await activity_log.append_quietly(
        session,
        f"New report submitted: {title}",
        ActivityCategory.report,
        report_id=report.id,
        feed=feed,
    )
    await publish_safely(feed, ChangeEvent("reports", EventType.insert, new=row_payload(report)))
    return report


async def get_report(session: AsyncSession, report_id: int) -> Report:
    async def _read() -> Report | None:
        return await session.get(Report, report_id, populate_existing=True)

    report = await run_store_op(session, _read, description="report get")
    if report is None:
        raise NotFoundError("Report not found")
    return report


async def list_reports(session: AsyncSession, resident_id: str | None = None) -> list[Report]:
    stmt = (
        select(Report)
        .order_by(Report.created_at.desc(), Report.id.desc())
        .execution_options(populate_existing=True)
    )
    if resident_id is not None:
        stmt = stmt.where(Report.resident_id == resident_id)

    async def _read() -> list[Report]:
        result = await session.execute(stmt)
        return list(result.scalars().all())

    return await run_store_op(session, _read, description="report list")


async def get_status_row(session: AsyncSession, report_id: int) -> ReportStatus | None:
    async def _read() -> ReportStatus | None:
        result = await session.execute(
            select(ReportStatus)
            .where(ReportStatus.report_id == report_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    return await run_store_op(session, _read, description="report status get")


async def current_status(session: AsyncSession, report_id: int) -> ReportStatusValue:
    """A report without a status row is Pending."""
    row = await get_status_row(session, report_id)
    return row.status if row else ReportStatusValue.pending


async def update_report_status(
    session: AsyncSession,
    report_id: int,
    status: ReportStatusValue,
    response: str | None = None,
    official_id: str | None = None,
    feed: ChangeFeed | None = None,
) -> ReportUpdateOutcome:
    """
    Record an official's status change and response for a report.

    The status write is the primary effect. Activity and notification follow
    it and may fail without undoing it; the outcome says which of them
    happened.

    Raises:
        ValidationError: missing response on a non-resolving update
        NotFoundError: unknown report
    """
    response = (response or "").strip() or None
    if status is not ReportStatusValue.resolved and not response:
        raise ValidationError("A response is required unless the report is resolved")

    report = await get_report(session, report_id)
    location = report.location

    async def _write() -> Report:
        now = utcnow()
        stmt = dialect_insert(session, ReportStatus).values(
            report_id=report_id,
            status=status,
            official_response=response,
            updated_by=official_id,
            location=location,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["report_id"],
            set_={
                "status": stmt.excluded.status,
                "official_response": stmt.excluded.official_response,
                "updated_by": stmt.excluded.updated_by,
                "updated_at": now,
            },
        )
        await session.execute(stmt)
        report.status = status
        report.official_response = response
        report.updated_at = now
        await session.commit()
        await session.refresh(report)
        return report

    report = await run_store_op(session, _write, description="report status update")
    logger.info(
        "Report status updated",
        extra={"report_id": report_id, "status": status.value, "official_id": official_id},
    )

    logged = await activity_log.append_quietly(
        session,
        ACTIVITY_MESSAGES[status],
        ActivityCategory.report_update,
        report_id=report_id,
        feed=feed,
    )

    notified = True
    try:
        async with side_session(session) as side:
            await notifications.notify(
                side,
                report_id,
                report.resident_id,
                notification_message(report.title, status, response),
                status=status.value,
                feed=feed,
            )
    except (ServiceError, SQLAlchemyError) as e:
        notified = False
        logger.warning(
            f"Failed to notify resident: {e}",
            extra={"report_id": report_id, "user_id": report.resident_id},
        )

    await publish_safely(feed, ChangeEvent("reports", EventType.update, new=row_payload(report)))
    return ReportUpdateOutcome(report=report, activity_logged=logged, notified=notified)
