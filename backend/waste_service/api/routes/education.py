from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from waste_service.api.deps import get_change_feed, get_current_user, get_db, require_roles
from waste_service.core.errors import NotFoundError
from waste_service.core.security import Principal, UserRole
from waste_service.models import ContentStatus
from waste_service.realtime import ChangeFeed
from waste_service.schemas.education import EducationChangeRead, EducationCreate, EducationRead
from waste_service.services import education as education_service
from waste_service.services.education import ContentChange
from waste_service.services.schedules import resident_purok

router = APIRouter(prefix="/education", tags=["Education"])


def _change_read(change: ContentChange) -> EducationChangeRead:
    return EducationChangeRead(
        content=EducationRead.model_validate(change.content),
        previous_status=change.previous_status,
        changed=change.changed,
        activity_logged=change.activity_logged,
    )


@router.post("", response_model=EducationRead, status_code=status.HTTP_201_CREATED)
async def create_content(
    payload: EducationCreate,
    session: AsyncSession = Depends(get_db),
    feed: ChangeFeed | None = Depends(get_change_feed),
    current_user: Principal = Depends(require_roles(UserRole.official)),
) -> EducationRead:
    content = await education_service.create_content(session, payload, official_id=current_user.user_id, feed=feed)
    return EducationRead.model_validate(content)


@router.get("", response_model=list[EducationRead])
async def list_contents(
    status_filter: ContentStatus | None = Query(default=None, alias="status"),
    session: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
) -> list[EducationRead]:
    """Officials see every status; everyone else sees what is published for them."""
    if current_user.role == UserRole.official:
        contents = await education_service.list_contents(session, status=status_filter)
    else:
        purok = await resident_purok(session, current_user.user_id)
        contents = await education_service.list_contents(session, purok=purok or "")
    return [EducationRead.model_validate(content) for content in contents]


@router.get("/{content_id}", response_model=EducationRead)
async def get_content(
    content_id: int,
    session: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
) -> EducationRead:
    content = await education_service.get_content(session, content_id)
    if current_user.role != UserRole.official:
        purok = await resident_purok(session, current_user.user_id)
        if not education_service.visible_to(content, purok):
            raise NotFoundError("Content not found")
        content = await education_service.record_view(session, content_id)
    return EducationRead.model_validate(content)


@router.post("/{content_id}/publish", response_model=EducationChangeRead)
async def publish_content(
    content_id: int,
    session: AsyncSession = Depends(get_db),
    feed: ChangeFeed | None = Depends(get_change_feed),
    _: Principal = Depends(require_roles(UserRole.official)),
) -> EducationChangeRead:
    return _change_read(await education_service.publish_content(session, content_id, feed=feed))


@router.post("/{content_id}/archive", response_model=EducationChangeRead)
async def archive_content(
    content_id: int,
    session: AsyncSession = Depends(get_db),
    feed: ChangeFeed | None = Depends(get_change_feed),
    _: Principal = Depends(require_roles(UserRole.official)),
) -> EducationChangeRead:
    return _change_read(await education_service.archive_content(session, content_id, feed=feed))


@router.post("/{content_id}/restore", response_model=EducationChangeRead)
async def restore_content(
    content_id: int,
    session: AsyncSession = Depends(get_db),
    feed: ChangeFeed | None = Depends(get_change_feed),
    _: Principal = Depends(require_roles(UserRole.official)),
) -> EducationChangeRead:
    return _change_read(await education_service.restore_content(session, content_id, feed=feed))
