from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from waste_service.db.base import Base
from waste_service.models.mixins import TimestampMixin


class Notification(Base, TimestampMixin):
    __tablename__ = "notifications"
    __table_args__ = (UniqueConstraint("report_id", "user_id", name="uq_notifications_report_user"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    report_id: Mapped[int] = mapped_column(ForeignKey("reports.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    message: Mapped[str] = mapped_column(Text)
    status: Mapped[str | None] = mapped_column(String(32))
    read: Mapped[bool] = mapped_column(Boolean, default=False)
    # 1 on insert, bumped by every upsert that hits the existing row
    revision: Mapped[int] = mapped_column(Integer, default=1)
