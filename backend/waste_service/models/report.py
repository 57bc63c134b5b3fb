import enum

from sqlalchemy import JSON, CheckConstraint, Enum, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from waste_service.db.base import Base
from waste_service.models.mixins import TimestampMixin, enum_values


class ReportStatusValue(str, enum.Enum):
    pending = "Pending"
    in_progress = "In Progress"
    resolved = "Resolved"


report_status_enum = Enum(ReportStatusValue, name="reportstatus", values_callable=enum_values)


class Report(Base, TimestampMixin):
    __tablename__ = "reports"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    resident_id: Mapped[str] = mapped_column(String(64), index=True)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text)
    location: Mapped[str | None] = mapped_column(String(512))
    file_urls: Mapped[list] = mapped_column(JSON, default=list)
    # Mirror of report_status, kept in the same transaction
    status: Mapped[ReportStatusValue] = mapped_column(report_status_enum, default=ReportStatusValue.pending)
    official_response: Mapped[str | None] = mapped_column(Text)


class ReportStatus(Base, TimestampMixin):
    """The single authoritative status row of a report."""

    __tablename__ = "report_status"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    report_id: Mapped[int] = mapped_column(ForeignKey("reports.id", ondelete="CASCADE"), unique=True)
    status: Mapped[ReportStatusValue] = mapped_column(report_status_enum, default=ReportStatusValue.pending)
    official_response: Mapped[str | None] = mapped_column(Text)
    updated_by: Mapped[str | None] = mapped_column(String(64))
    location: Mapped[str | None] = mapped_column(String(512))


class Feedback(Base, TimestampMixin):
    __tablename__ = "feedback"
    __table_args__ = (
        UniqueConstraint("report_id", "resident_id", name="uq_feedback_report_resident"),
        CheckConstraint("rating IS NULL OR (rating >= 1 AND rating <= 5)", name="ck_feedback_rating"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    report_id: Mapped[int] = mapped_column(ForeignKey("reports.id", ondelete="CASCADE"), index=True)
    resident_id: Mapped[str] = mapped_column(String(64), index=True)
    official_id: Mapped[str | None] = mapped_column(String(64))
    rating: Mapped[int | None] = mapped_column(Integer)
    comment: Mapped[str | None] = mapped_column(Text)
