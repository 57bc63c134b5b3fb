from __future__ import annotations

import datetime as dt
from typing import Any

from pydantic import BaseModel, field_validator

from waste_service.models.schedule import ScheduleStatus, WasteType
from waste_service.utils.geo import parse_route_points


class ScheduleBase(BaseModel):
    purok: str
    plan: str = "A"
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    waste_type: WasteType
    route_points: list[tuple[float, float]] = []

    @field_validator("route_points", mode="before")
    @classmethod
    def coerce_route_points(cls, v: Any) -> list[tuple[float, float]]:
        return parse_route_points(v)


class ScheduleCreate(ScheduleBase):
    day: str | None = None
    status: ScheduleStatus = ScheduleStatus.not_started


class ScheduleRead(ScheduleBase):
    id: int
    day: str
    status: ScheduleStatus
    version: int
    created_at: dt.datetime
    updated_at: dt.datetime

    class Config:
        from_attributes = True


class ScheduleStatusUpdate(BaseModel):
    status: ScheduleStatus
    expected_version: int | None = None


class TransitionRead(BaseModel):
    schedule: ScheduleRead
    previous_status: ScheduleStatus
    changed: bool
    activity_logged: bool
