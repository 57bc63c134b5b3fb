from __future__ import annotations

from pydantic import BaseModel

from waste_service.schemas.notification import ActivityRead


class WeekdayEfficiency(BaseModel):
    day: str
    total: int
    completed: int
    efficiency: float


class DashboardSummary(BaseModel):
    # Persisted schedule status, straight from the store
    status_counts: dict[str, int]
    completed_total: int
    # Derived from the clock, independent of the persisted status
    window_ongoing: int
    # Routed schedules that are persisted-ongoing OR inside their window
    active_routes: int
    pending_reports: int
    citizen_participation: float
    efficiency_by_day: list[WeekdayEfficiency]
    average_efficiency: float
    recent_activity: list[ActivityRead]
