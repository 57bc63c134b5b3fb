from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, Field

from waste_service.models.report import ReportStatusValue


class ReportCreate(BaseModel):
    title: str
    description: str
    location: str | None = None
    file_urls: list[str] = []


class ReportRead(BaseModel):
    id: int
    resident_id: str
    title: str
    description: str
    location: str | None = None
    file_urls: list[str] = []
    status: ReportStatusValue
    official_response: str | None = None
    created_at: dt.datetime
    updated_at: dt.datetime

    class Config:
        from_attributes = True


class ReportStatusUpdate(BaseModel):
    status: ReportStatusValue
    response: str | None = None


class ReportUpdateResult(BaseModel):
    report: ReportRead
    activity_logged: bool
    notified: bool


class FeedbackCreate(BaseModel):
    rating: int | None = Field(default=None, ge=1, le=5)
    comment: str | None = None


class FeedbackRead(BaseModel):
    id: int
    report_id: int
    resident_id: str
    official_id: str | None = None
    rating: int | None = None
    comment: str | None = None
    created_at: dt.datetime
    updated_at: dt.datetime

    class Config:
        from_attributes = True
