"""
Dashboard statistics for officials.

Persisted schedule status and the clock-derived "ongoing" are reported as
separate figures. ``active_routes`` is the one documented union of both:
schedules with route geometry that are persisted ongoing or inside their
time window right now.
"""
import logging
from collections import Counter
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from waste_service.db.ops import run_store_op
from waste_service.models import Report, ReportStatus, ReportStatusValue, Resident, Schedule, ScheduleStatus
from waste_service.schemas.dashboard import DashboardSummary, WeekdayEfficiency
from waste_service.schemas.notification import ActivityRead
from waste_service.services import activity as activity_log
from waste_service.services.schedules import list_schedules
from waste_service.services.transitions import count_window_ongoing, is_currently_ongoing
from waste_service.utils.time import utcnow

logger = logging.getLogger(__name__)

SHORT_DAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def _percent(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def efficiency_by_day(schedules: List[Schedule]) -> List[WeekdayEfficiency]:
    """Completed share of schedules per weekday, Monday first; empty days omitted."""
    totals: Counter = Counter()
    completed: Counter = Counter()
    for schedule in schedules:
        day = SHORT_DAYS[schedule.date.weekday()]
        totals[day] += 1
        if schedule.status == ScheduleStatus.completed:
            completed[day] += 1
    return [
        WeekdayEfficiency(
            day=day,
            total=totals[day],
            completed=completed[day],
            efficiency=_percent(completed[day], totals[day]),
        )
        for day in SHORT_DAYS
        if totals[day]
    ]


def count_active_routes(schedules: List[Schedule], now: datetime) -> int:
    return sum(
        1
        for schedule in schedules
        if schedule.route_points
        and (schedule.status == ScheduleStatus.ongoing or is_currently_ongoing(schedule, now))
    )


async def _report_figures(session: AsyncSession) -> Dict[str, int]:
    async def _read() -> Dict[str, int]:
        rows = await session.execute(
            select(Report.id, ReportStatus.status).outerjoin(ReportStatus, ReportStatus.report_id == Report.id)
        )
        # No status row counts as Pending
        pending = sum(1 for _, status in rows.all() if status in (None, ReportStatusValue.pending))
        reporters = await session.scalar(select(func.count(func.distinct(Report.resident_id))))
        residents = await session.scalar(select(func.count(Resident.id)))
        return {"pending": pending, "reporters": reporters or 0, "residents": residents or 0}

    return await run_store_op(session, _read, description="dashboard report figures")


async def collect_summary(session: AsyncSession, now: Optional[datetime] = None) -> DashboardSummary:
    now = now or utcnow()
    schedules = await list_schedules(session)

    persisted = Counter(schedule.status for schedule in schedules)
    status_counts = {status.value: persisted.get(status, 0) for status in ScheduleStatus}

    reports = await _report_figures(session)
    recent = await activity_log.recent(session, now=now)

    return DashboardSummary(
        status_counts=status_counts,
        completed_total=status_counts[ScheduleStatus.completed.value],
        window_ongoing=count_window_ongoing(schedules, now),
        active_routes=count_active_routes(schedules, now),
        pending_reports=reports["pending"],
        citizen_participation=_percent(reports["reporters"], reports["residents"]),
        efficiency_by_day=efficiency_by_day(schedules),
        average_efficiency=_percent(status_counts[ScheduleStatus.completed.value], len(schedules)),
        recent_activity=[ActivityRead.model_validate(item) for item in recent],
    )
