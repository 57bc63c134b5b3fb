import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from waste_service.api.routes import (
    activities,
    dashboard,
    education,
    health,
    notifications,
    realtime,
    reports,
    schedules,
    sms,
)
from waste_service.core.config import settings
from waste_service.core.errors import ServiceError, TransientStoreError
from waste_service.core.logging import configure_logging
from waste_service.middleware.request_id import RequestIDMiddleware
from waste_service.realtime import build_change_feed

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle manager"""
    configure_logging(settings.log_level, json_output=not settings.debug)
    # Tests may install their own feed before startup
    if getattr(app.state, "change_feed", None) is None:
        app.state.change_feed = build_change_feed(settings)
    logger.info("Service started", extra={"realtime_backend": settings.realtime_backend})
    yield
    await app.state.change_feed.close()


app = FastAPI(
    title=settings.project_name,
    description="Waste-collection scheduling, resident reports and notifications",
    version="1.0.0",
    docs_url=f"{settings.api_prefix}/docs",
    redoc_url=f"{settings.api_prefix}/redoc",
    openapi_url=f"{settings.api_prefix}/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.backend_cors_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIDMiddleware)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if isinstance(exc, TransientStoreError):
        logger.warning(f"Store unavailable: {exc.message}", extra={"path": request.url.path})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(schedules.router, prefix=settings.api_prefix)
app.include_router(reports.router, prefix=settings.api_prefix)
app.include_router(notifications.router, prefix=settings.api_prefix)
app.include_router(activities.router, prefix=settings.api_prefix)
app.include_router(sms.router, prefix=settings.api_prefix)
app.include_router(dashboard.router, prefix=settings.api_prefix)
app.include_router(education.router, prefix=settings.api_prefix)
app.include_router(realtime.router, prefix=settings.api_prefix)
app.include_router(health.router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    """Root endpoint - redirect info"""
    return {
        "message": settings.project_name,
        "docs": f"{settings.api_prefix}/docs",
        "health": f"{settings.api_prefix}/health",
    }
