import enum
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from waste_service.db.base import Base
from waste_service.utils.time import utcnow


class ActivityCategory(str, enum.Enum):
    create = "create"
    update = "update"
    complete = "complete"
    reset = "reset"
    report = "report"
    report_update = "report_update"
    message = "message"
    education = "education"


class Activity(Base):
    """Append-only; rows are never updated or deleted by the service."""

    __tablename__ = "activities"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    action: Mapped[str] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(32), index=True)
    schedule_id: Mapped[int | None] = mapped_column(ForeignKey("schedules.id", ondelete="SET NULL"))
    report_id: Mapped[int | None] = mapped_column(ForeignKey("reports.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True
    )
