"""
Educational content

Officials write eco-education material as drafts or publish it directly.
Published content is visible to residents in its audience ("all" or one
purok). Archiving hides it and restoring publishes it again; both are status
changes on the same row.
"""
from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass
from urllib.parse import urlparse

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from waste_service.core.errors import ConflictError, NotFoundError, ValidationError
from waste_service.db.ops import run_store_op
from waste_service.models import ActivityCategory, ContentStatus, EducationalContent
from waste_service.realtime import ChangeEvent, ChangeFeed, EventType, publish_safely, row_payload
from waste_service.schemas.education import EducationCreate
from waste_service.services import activity as activity_log
from waste_service.utils.geo import normalize_purok
from waste_service.utils.time import utcnow

logger = logging.getLogger(__name__)

MEDIA_TYPES = {"image", "video", "pdf", "file"}

_EXTENSION_MEDIA = {
    ".png": "image",
    ".jpg": "image",
    ".jpeg": "image",
    ".gif": "image",
    ".webp": "image",
    ".mp4": "video",
    ".webm": "video",
    ".mov": "video",
    ".pdf": "pdf",
}

# action -> (statuses it may start from, resulting status, activity verb)
MOVES = {
    "publish": ({ContentStatus.draft}, ContentStatus.published, "Published"),
    "archive": ({ContentStatus.draft, ContentStatus.published}, ContentStatus.archived, "Archived"),
    "restore": ({ContentStatus.archived}, ContentStatus.published, "Restored"),
}


@dataclass
class ContentChange:
    content: EducationalContent
    previous_status: ContentStatus
    changed: bool
    activity_logged: bool


def media_type_for(url: str | None) -> str | None:
    if not url:
        return None
    extension = posixpath.splitext(urlparse(url).path)[1].lower()
    return _EXTENSION_MEDIA.get(extension, "file")


def visible_to(content: EducationalContent, purok: str | None) -> bool:
    """Published and addressed to everyone or to ``purok``."""
    if content.status is not ContentStatus.published:
        return False
    audience = normalize_purok(content.audience).lower()
    return audience == "all" or (bool(purok) and audience == normalize_purok(purok).lower())


async def create_content(
    session: AsyncSession,
    data: EducationCreate,
    official_id: str | None = None,
    feed: ChangeFeed | None = None,
) -> EducationalContent:
    title = data.title.strip()
    if not title:
        raise ValidationError("Please provide a title")
    media_type = data.media_type or media_type_for(data.media_url)
    if media_type is not None and media_type not in MEDIA_TYPES:
        raise ValidationError(f"Unsupported media type {media_type!r}")
    status = ContentStatus.published if data.publish_now else ContentStatus.draft

    async def _write() -> EducationalContent:
        content = EducationalContent(
            title=title,
            description=data.description.strip(),
            category=data.category.strip() or "General",
            audience=data.audience.strip() or "all",
            status=status,
            media_url=data.media_url,
            media_type=media_type,
            views=0,
            created_by=official_id,
        )
        session.add(content)
        await session.commit()
        return content

    content = await run_store_op(session, _write, description="education create")
    logger.info("Educational content saved", extra={"content_id": content.id, "status": status.value})

    verb = "Published" if status is ContentStatus.published else "Saved draft of"
    await activity_log.append_quietly(
        session, f"{verb} educational content: {title}", ActivityCategory.education, feed=feed
    )
    await publish_safely(feed, ChangeEvent("educational_contents", EventType.insert, new=row_payload(content)))
    return content


async def get_content(session: AsyncSession, content_id: int) -> EducationalContent:
    async def _read() -> EducationalContent | None:
        return await session.get(EducationalContent, content_id, populate_existing=True)

    content = await run_store_op(session, _read, description="education get")
    if content is None:
        raise NotFoundError("Content not found")
    return content


async def list_contents(
    session: AsyncSession,
    status: ContentStatus | None = None,
    purok: str | None = None,
) -> list[EducationalContent]:
    """Newest first. With ``purok`` only content visible to that purok is kept."""
    stmt = select(EducationalContent).order_by(EducationalContent.created_at.desc(), EducationalContent.id.desc())
    if purok is not None:
        status = ContentStatus.published
    if status is not None:
        stmt = stmt.where(EducationalContent.status == status)

    async def _read() -> list[EducationalContent]:
        result = await session.execute(stmt.execution_options(populate_existing=True))
        return list(result.scalars().all())

    contents = await run_store_op(session, _read, description="education list")
    if purok is None:
        return contents
    return [content for content in contents if visible_to(content, purok)]


async def _move(session: AsyncSession, content_id: int, action: str, feed: ChangeFeed | None) -> ContentChange:
    sources, target, verb = MOVES[action]
    content = await get_content(session, content_id)
    previous = content.status

    if previous is target:
        return ContentChange(content=content, previous_status=previous, changed=False, activity_logged=False)
    if previous not in sources:
        raise ValidationError(f"Cannot {action} content that is {previous.value.lower()}")

    async def _write() -> EducationalContent:
        result = await session.execute(
            update(EducationalContent)
            .where(EducationalContent.id == content_id, EducationalContent.status == previous)
            .values(
                status=target,
                archived_at=utcnow() if target is ContentStatus.archived else None,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await session.rollback()
            raise ConflictError(f"Content {content_id} was modified concurrently")
        await session.commit()
        await session.refresh(content)
        return content

    content = await run_store_op(session, _write, description=f"education {action}")
    logger.info(
        "Educational content status changed",
        extra={"content_id": content_id, "from": previous.value, "to": target.value},
    )
    logged = await activity_log.append_quietly(
        session, f"{verb} educational content: {content.title}", ActivityCategory.education, feed=feed
    )
    await publish_safely(
        feed,
        ChangeEvent(
            "educational_contents",
            EventType.update,
            new=row_payload(content),
            old={"id": content.id, "status": previous.value},
        ),
    )
    return ContentChange(content=content, previous_status=previous, changed=True, activity_logged=logged)


async def publish_content(session: AsyncSession, content_id: int, feed: ChangeFeed | None = None) -> ContentChange:
    return await _move(session, content_id, "publish", feed)


async def archive_content(session: AsyncSession, content_id: int, feed: ChangeFeed | None = None) -> ContentChange:
    return await _move(session, content_id, "archive", feed)


async def restore_content(session: AsyncSession, content_id: int, feed: ChangeFeed | None = None) -> ContentChange:
    return await _move(session, content_id, "restore", feed)


async def record_view(session: AsyncSession, content_id: int) -> EducationalContent:
    """Count one resident view."""

    async def _write() -> EducationalContent | None:
        result = await session.scalars(
            update(EducationalContent)
            .where(EducationalContent.id == content_id)
            # A view is not an edit; keep updated_at
            .values(views=EducationalContent.views + 1, updated_at=EducationalContent.updated_at)
            .returning(EducationalContent),
            execution_options={"populate_existing": True, "synchronize_session": False},
        )
        content = result.one_or_none()
        await session.commit()
        return content

    content = await run_store_op(session, _write, description="education view")
    if content is None:
        raise NotFoundError("Content not found")
    return content
