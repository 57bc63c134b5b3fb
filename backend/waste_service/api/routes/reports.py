from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from waste_service.api.deps import get_change_feed, get_current_user, get_db, require_roles
from waste_service.core.security import Principal, UserRole
from waste_service.realtime import ChangeFeed
from waste_service.schemas.report import (
    FeedbackCreate,
    FeedbackRead,
    ReportCreate,
    ReportRead,
    ReportStatusUpdate,
    ReportUpdateResult,
)
from waste_service.services import feedback as feedback_service
from waste_service.services import reports as report_service

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.post("", response_model=ReportRead, status_code=status.HTTP_201_CREATED)
async def submit_report(
    payload: ReportCreate,
    session: AsyncSession = Depends(get_db),
    feed: ChangeFeed | None = Depends(get_change_feed),
    current_user: Principal = Depends(require_roles(UserRole.resident)),
) -> ReportRead:
    report = await report_service.submit_report(
        session,
        current_user.user_id,
        payload.title,
        payload.description,
        location=payload.location,
        file_urls=payload.file_urls,
        feed=feed,
    )
    return ReportRead.model_validate(report)


@router.get("", response_model=list[ReportRead])
async def list_reports(
    session: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
) -> list[ReportRead]:
    # Residents only ever see their own reports
    resident_id = current_user.user_id if current_user.role == UserRole.resident else None
    reports = await report_service.list_reports(session, resident_id=resident_id)
    return [ReportRead.model_validate(report) for report in reports]


@router.patch("/{report_id}/status", response_model=ReportUpdateResult)
async def update_report_status(
    report_id: int,
    payload: ReportStatusUpdate,
    session: AsyncSession = Depends(get_db),
    feed: ChangeFeed | None = Depends(get_change_feed),
    current_user: Principal = Depends(require_roles(UserRole.official)),
) -> ReportUpdateResult:
    outcome = await report_service.update_report_status(
        session,
        report_id,
        payload.status,
        response=payload.response,
        official_id=current_user.user_id,
        feed=feed,
    )
    return ReportUpdateResult(
        report=ReportRead.model_validate(outcome.report),
        activity_logged=outcome.activity_logged,
        notified=outcome.notified,
    )


@router.post("/{report_id}/feedback", response_model=FeedbackRead)
async def submit_feedback(
    report_id: int,
    payload: FeedbackCreate,
    session: AsyncSession = Depends(get_db),
    feed: ChangeFeed | None = Depends(get_change_feed),
    current_user: Principal = Depends(require_roles(UserRole.resident)),
) -> FeedbackRead:
    feedback = await feedback_service.submit_feedback(
        session,
        report_id,
        current_user.user_id,
        rating=payload.rating,
        comment=payload.comment,
        feed=feed,
    )
    return FeedbackRead.model_validate(feedback)
