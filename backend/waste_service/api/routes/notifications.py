from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from waste_service.api.deps import get_change_feed, get_current_user, get_db
from waste_service.core.security import Principal
from waste_service.realtime import ChangeFeed
from waste_service.schemas.notification import NotificationRead
from waste_service.services import notifications as notification_service

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=list[NotificationRead])
async def list_notifications(
    session: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
) -> list[NotificationRead]:
    notifications = await notification_service.list_notifications(session, current_user.user_id)
    return [NotificationRead.model_validate(n) for n in notifications]


@router.post("/read-all")
async def mark_all_read(
    session: AsyncSession = Depends(get_db),
    feed: ChangeFeed | None = Depends(get_change_feed),
    current_user: Principal = Depends(get_current_user),
) -> dict:
    updated = await notification_service.mark_all_read(session, current_user.user_id, feed=feed)
    return {"updated": updated}


@router.post("/{notification_id}/read", response_model=NotificationRead)
async def mark_read(
    notification_id: int,
    session: AsyncSession = Depends(get_db),
    feed: ChangeFeed | None = Depends(get_change_feed),
    current_user: Principal = Depends(get_current_user),
) -> NotificationRead:
    notification = await notification_service.mark_read(
        session, notification_id, current_user.user_id, feed=feed
    )
    return NotificationRead.model_validate(notification)


@router.delete("")
async def clear_all(
    session: AsyncSession = Depends(get_db),
    feed: ChangeFeed | None = Depends(get_change_feed),
    current_user: Principal = Depends(get_current_user),
) -> dict:
    deleted = await notification_service.clear_all(session, current_user.user_id, feed=feed)
    return {"deleted": deleted}
