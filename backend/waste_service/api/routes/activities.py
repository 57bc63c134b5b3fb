from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from waste_service.api.deps import get_db, require_roles
from waste_service.core.security import Principal, UserRole
from waste_service.schemas.notification import ActivityRead
from waste_service.services import activity as activity_log

router = APIRouter(prefix="/activities", tags=["Activities"])


@router.get("/recent", response_model=list[ActivityRead])
async def recent_activities(
    limit: int | None = Query(default=None, ge=1, le=200),
    session: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_roles(UserRole.official, UserRole.collector)),
) -> list[ActivityRead]:
    activities = await activity_log.recent(session, limit=limit)
    return [ActivityRead.model_validate(activity) for activity in activities]
