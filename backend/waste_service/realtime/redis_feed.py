from __future__ import annotations

import asyncio
import json
import logging
from typing import Iterable

import redis.asyncio as redis

from waste_service.realtime.feed import ChangeEvent, ChangeFeed, EventType, RowFilter, Subscription

logger = logging.getLogger(__name__)


class RedisChangeFeed(ChangeFeed):
    """Cross-process distributor over Redis pub/sub, one channel per table.

    Pub/sub is fire-and-forget: a subscriber that is disconnected while an
    event is published misses it and has to re-fetch when it reconnects.
    """

    def __init__(self, url: str, channel_prefix: str = "changes", queue_size: int = 1000):
        self.client = redis.from_url(url, decode_responses=True)
        self.channel_prefix = channel_prefix
        self.queue_size = queue_size
        self._listeners: dict[Subscription, tuple[redis.client.PubSub, asyncio.Task]] = {}

    def channel_for(self, table: str) -> str:
        return f"{self.channel_prefix}:{table}"

    async def publish(self, event: ChangeEvent) -> None:
        await self.client.publish(self.channel_for(event.table), json.dumps(event.to_dict()))

    async def subscribe(
        self,
        table: str,
        event_types: Iterable[EventType] | None = None,
        row_filter: RowFilter | None = None,
    ) -> Subscription:
        subscription = Subscription(self, table, event_types, row_filter, maxsize=self.queue_size)
        pubsub = self.client.pubsub()
        await pubsub.subscribe(self.channel_for(table))
        task = asyncio.create_task(self._pump(pubsub, subscription))
        self._listeners[subscription] = (pubsub, task)
        return subscription

    async def _pump(self, pubsub, subscription: Subscription) -> None:
        async for message in pubsub.listen():
            if message.get("type") != "message":
                continue
            try:
                event = ChangeEvent.from_dict(json.loads(message["data"]))
            except (ValueError, KeyError, TypeError):
                logger.warning("Discarding malformed change event", extra={"table": subscription.table})
                continue
            if subscription.accepts(event):
                subscription.deliver(event)

    async def _release(self, subscription: Subscription) -> None:
        listener = self._listeners.pop(subscription, None)
        if listener is None:
            return
        pubsub, task = listener
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        await pubsub.unsubscribe()
        await pubsub.aclose()

    async def close(self) -> None:
        for subscription in list(self._listeners):
            await subscription.close()
        await self.client.aclose()
