"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


schedule_status = sa.Enum("not-started", "ongoing", "completed", name="schedulestatus")
waste_type = sa.Enum("Recyclable", "Non-Recyclable", "Toxic", "General", name="wastetype")
report_status = sa.Enum("Pending", "In Progress", "Resolved", name="reportstatus")
delivery_status = sa.Enum("queued", "sent", "failed", name="deliverystatus")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "residents",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("purok", sa.String(length=64), nullable=True, index=True),
        sa.Column("mobile", sa.String(length=32), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "schedules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("purok", sa.String(length=64), nullable=False, index=True),
        sa.Column("plan", sa.String(length=32), nullable=False, server_default="A"),
        sa.Column("day", sa.String(length=16), nullable=False),
        sa.Column("date", sa.Date(), nullable=False, index=True),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("waste_type", waste_type, nullable=False),
        sa.Column("status", schedule_status, nullable=False, server_default="not-started", index=True),
        sa.Column("route_points", sa.JSON(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.CheckConstraint("start_time < end_time", name="ck_schedules_time_window"),
    )

    op.create_table(
        "reports",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("resident_id", sa.String(length=64), nullable=False, index=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("location", sa.String(length=512), nullable=True),
        sa.Column("file_urls", sa.JSON(), nullable=False),
        sa.Column("status", report_status, nullable=False, server_default="Pending"),
        sa.Column("official_response", sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "report_status",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("report_id", sa.Integer(), sa.ForeignKey("reports.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("status", report_status, nullable=False, server_default="Pending"),
        sa.Column("official_response", sa.Text(), nullable=True),
        sa.Column("updated_by", sa.String(length=64), nullable=True),
        sa.Column("location", sa.String(length=512), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "feedback",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("report_id", sa.Integer(), sa.ForeignKey("reports.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("resident_id", sa.String(length=64), nullable=False, index=True),
        sa.Column("official_id", sa.String(length=64), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("report_id", "resident_id", name="uq_feedback_report_resident"),
        sa.CheckConstraint("rating IS NULL OR (rating >= 1 AND rating <= 5)", name="ck_feedback_rating"),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("report_id", sa.Integer(), sa.ForeignKey("reports.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("user_id", sa.String(length=64), nullable=False, index=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=True),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("revision", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.UniqueConstraint("report_id", "user_id", name="uq_notifications_report_user"),
    )

    op.create_table(
        "activities",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("action", sa.Text(), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False, index=True),
        sa.Column("schedule_id", sa.Integer(), sa.ForeignKey("schedules.id", ondelete="SET NULL"), nullable=True),
        sa.Column("report_id", sa.Integer(), sa.ForeignKey("reports.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, index=True),
    )

    op.create_table(
        "sms_archive",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("recipient_group", sa.String(length=64), nullable=False),
        sa.Column("message_type", sa.String(length=64), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("recipients", sa.JSON(), nullable=False),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivery_status", delivery_status, nullable=False, server_default="queued"),
        sa.Column("gateway_response", sa.JSON(), nullable=True),
        sa.Column("archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("sms_archive")
    op.drop_table("activities")
    op.drop_table("notifications")
    op.drop_table("feedback")
    op.drop_table("report_status")
    op.drop_table("reports")
    op.drop_table("schedules")
    op.drop_table("residents")
    bind = op.get_bind()
    for enum in (delivery_status, report_status, waste_type, schedule_status):
        enum.drop(bind, checkfirst=True)
