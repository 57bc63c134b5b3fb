import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from waste_service.db.base import Base
from waste_service.models.mixins import TimestampMixin, enum_values


class ContentStatus(str, enum.Enum):
    draft = "Draft"
    published = "Published"
    archived = "Archived"


class EducationalContent(Base, TimestampMixin):
    """Eco-education material published by officials for residents.

    Archiving is a status, not a move to another table; ``archived_at`` is set
    while the row is archived.
    """

    __tablename__ = "educational_contents"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text, default="")
    category: Mapped[str] = mapped_column(String(64), default="General")
    # "all" or a purok label
    audience: Mapped[str] = mapped_column(String(64), default="all")
    status: Mapped[ContentStatus] = mapped_column(
        Enum(ContentStatus, name="contentstatus", values_callable=enum_values),
        default=ContentStatus.draft,
        index=True,
    )
    media_url: Mapped[str | None] = mapped_column(String(1024))
    media_type: Mapped[str | None] = mapped_column(String(16))
    views: Mapped[int] = mapped_column(Integer, default=0)
    created_by: Mapped[str | None] = mapped_column(String(64))
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
