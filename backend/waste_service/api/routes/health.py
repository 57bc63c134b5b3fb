"""
Health check

Reports database reachability and whether the change feed and the SMS
gateway are configured. No authentication required.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from waste_service.api.deps import get_db
from waste_service.core.config import settings
from waste_service.utils.time import utcnow

router = APIRouter(tags=["Health"])


async def check_database(db: AsyncSession) -> Dict[str, Any]:
    """Test database connectivity"""
    try:
        await db.execute(text("SELECT 1"))
        return {"status": "healthy", "message": "Database connection successful"}
    except SQLAlchemyError as e:
        return {"status": "error", "message": f"Database error: {e.__class__.__name__}"}


def check_change_feed(request: Request) -> Dict[str, Any]:
    feed = getattr(request.app.state, "change_feed", None)
    if feed is None:
        return {"status": "not_configured", "backend": settings.realtime_backend}
    return {"status": "configured", "backend": settings.realtime_backend}


def check_sms_gateway() -> Dict[str, Any]:
    if settings.sms_api_key and settings.sms_org_id:
        return {"status": "configured", "message": "EngageSpark credentials present"}
    return {"status": "not_configured", "message": "SMS gateway credentials missing"}


@router.get("/health")
async def health_check(request: Request, db: AsyncSession = Depends(get_db)):
    results = {
        "database": await check_database(db),
        "change_feed": check_change_feed(request),
        "sms_gateway": check_sms_gateway(),
    }
    overall = "degraded" if results["database"]["status"] == "error" else "ok"
    return {
        "status": overall,
        "checks": results,
        "timestamp": utcnow().isoformat(),
    }
