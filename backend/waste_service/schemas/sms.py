from __future__ import annotations

import datetime as dt
from typing import Any

from pydantic import BaseModel, Field

from waste_service.models.sms import DeliveryStatus


class SmsBroadcastCreate(BaseModel):
    recipient_group: str = "all"
    message_type: str | None = None
    # Left out, the template for message_type is used
    message: str | None = Field(default=None, max_length=1600)
    scheduled_for: dt.datetime | None = None


class SmsArchiveUpdate(BaseModel):
    archived: bool


class SmsStats(BaseModel):
    sent_today: int
    total: int


class SmsMessageRead(BaseModel):
    id: int
    recipient_group: str
    message_type: str | None = None
    message: str
    recipients: list[str] = []
    scheduled_for: dt.datetime | None = None
    sent_at: dt.datetime | None = None
    delivery_status: DeliveryStatus
    gateway_response: dict[str, Any] | None = None
    archived: bool
    created_at: dt.datetime

    class Config:
        from_attributes = True
