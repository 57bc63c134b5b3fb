from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, Field

from waste_service.models.education import ContentStatus


class EducationCreate(BaseModel):
    title: str = Field(max_length=255)
    description: str = ""
    category: str = "General"
    audience: str = "all"
    publish_now: bool = False
    media_url: str | None = Field(default=None, max_length=1024)
    # Inferred from the media_url extension when left out
    media_type: str | None = None


class EducationRead(BaseModel):
    id: int
    title: str
    description: str
    category: str
    audience: str
    status: ContentStatus
    media_url: str | None = None
    media_type: str | None = None
    views: int
    created_by: str | None = None
    archived_at: dt.datetime | None = None
    created_at: dt.datetime
    updated_at: dt.datetime

    class Config:
        from_attributes = True


class EducationChangeRead(BaseModel):
    content: EducationRead
    previous_status: ContentStatus
    changed: bool
    activity_logged: bool
