from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from waste_service.api.deps import get_db, require_roles
from waste_service.core.security import Principal, UserRole
from waste_service.schemas.dashboard import DashboardSummary
from waste_service.services.dashboard import collect_summary

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/summary", response_model=DashboardSummary)
async def dashboard_summary(
    session: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_roles(UserRole.official)),
) -> DashboardSummary:
    return await collect_summary(session)
