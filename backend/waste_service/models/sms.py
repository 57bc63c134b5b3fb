import enum
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Enum, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from waste_service.db.base import Base
from waste_service.models.mixins import TimestampMixin, enum_values


class DeliveryStatus(str, enum.Enum):
    queued = "queued"
    sent = "sent"
    failed = "failed"


class SmsMessage(Base, TimestampMixin):
    __tablename__ = "sms_archive"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    recipient_group: Mapped[str] = mapped_column(String(64))
    message_type: Mapped[str | None] = mapped_column(String(64))
    message: Mapped[str] = mapped_column(Text)
    recipients: Mapped[list] = mapped_column(JSON, default=list)
    scheduled_for: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    delivery_status: Mapped[DeliveryStatus] = mapped_column(
        Enum(DeliveryStatus, name="deliverystatus", values_callable=enum_values),
        default=DeliveryStatus.queued,
    )
    gateway_response: Mapped[dict | None] = mapped_column(JSON)
    archived: Mapped[bool] = mapped_column(Boolean, default=False)
