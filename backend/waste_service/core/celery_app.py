from celery import Celery
from waste_service.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "waste_service",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["waste_service.tasks.sms", "waste_service.tasks.notifications"]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes
    worker_prefetch_multiplier=1,
    beat_schedule={
        "dedupe-notifications-nightly": {
            "task": "waste_service.tasks.notifications.dedupe_notifications",
            "schedule": 24 * 60 * 60,
        },
    },
)
