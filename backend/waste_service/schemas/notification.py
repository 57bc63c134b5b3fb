from __future__ import annotations

import datetime as dt

from pydantic import BaseModel


class NotificationRead(BaseModel):
    id: int
    report_id: int
    user_id: str
    message: str
    status: str | None = None
    read: bool
    revision: int
    created_at: dt.datetime
    updated_at: dt.datetime

    class Config:
        from_attributes = True


class ActivityRead(BaseModel):
    id: int
    action: str
    type: str
    schedule_id: int | None = None
    report_id: int | None = None
    created_at: dt.datetime

    class Config:
        from_attributes = True
