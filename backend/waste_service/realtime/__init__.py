from waste_service.core.config import Settings
from waste_service.realtime.feed import (
    ChangeEvent,
    ChangeFeed,
    EventType,
    InMemoryChangeFeed,
    RowFilter,
    Subscription,
    publish_safely,
    row_payload,
)


def build_change_feed(settings: Settings) -> ChangeFeed:
    if settings.realtime_backend == "redis":
        from waste_service.realtime.redis_feed import RedisChangeFeed

        return RedisChangeFeed(
            settings.redis_url,
            channel_prefix=settings.realtime_channel_prefix,
            queue_size=settings.realtime_queue_size,
        )
    return InMemoryChangeFeed(queue_size=settings.realtime_queue_size)


__all__ = [
    "ChangeEvent",
    "ChangeFeed",
    "EventType",
    "InMemoryChangeFeed",
    "RowFilter",
    "Subscription",
    "build_change_feed",
    "publish_safely",
    "row_payload",
]
