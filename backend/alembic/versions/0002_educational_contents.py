"""educational contents

Revision ID: 0002_educational_contents
Revises: 0001_initial
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0002_educational_contents"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


content_status = sa.Enum("Draft", "Published", "Archived", name="contentstatus")


def upgrade() -> None:
    op.create_table(
        "educational_contents",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("category", sa.String(length=64), nullable=False, server_default="General"),
        sa.Column("audience", sa.String(length=64), nullable=False, server_default="all"),
        sa.Column("status", content_status, nullable=False, server_default="Draft"),
        sa.Column("media_url", sa.String(length=1024), nullable=True),
        sa.Column("media_type", sa.String(length=16), nullable=True),
        sa.Column("views", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_educational_contents_status", "educational_contents", ["status"])


def downgrade() -> None:
    op.drop_index("ix_educational_contents_status", table_name="educational_contents")
    op.drop_table("educational_contents")
    content_status.drop(op.get_bind(), checkfirst=True)
