"""
Change-feed contract and the in-process distributor.

Writers publish a ``ChangeEvent`` after their transaction commits. Readers
subscribe to a table, optionally narrowed to event types and a single
``column=eq.value`` row filter, and consume events as an async iterator.
Subscriptions hold a queue and must be closed by their owner.
"""
from __future__ import annotations

import asyncio
import datetime as dt
import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable

from sqlalchemy import inspect

from waste_service.utils.time import utcnow

logger = logging.getLogger(__name__)


class EventType(str, enum.Enum):
    insert = "INSERT"
    update = "UPDATE"
    delete = "DELETE"


@dataclass(frozen=True)
class RowFilter:
    column: str
    value: str

    @classmethod
    def parse(cls, expression: str) -> "RowFilter":
        column, sep, rest = expression.partition("=")
        op, dot, value = rest.partition(".")
        if not sep or not dot or op != "eq" or not column.strip():
            raise ValueError(f"Unsupported row filter: {expression!r}")
        return cls(column=column.strip(), value=value)

    def matches(self, row: dict[str, Any] | None) -> bool:
        if not row or self.column not in row:
            return False
        return str(row[self.column]) == self.value


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    event_type: EventType
    new: dict[str, Any] | None = None
    old: dict[str, Any] | None = None
    committed_at: dt.datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "table": self.table,
            "eventType": self.event_type.value,
            "new": self.new,
            "old": self.old,
            "committed_at": self.committed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChangeEvent":
        return cls(
            table=data["table"],
            event_type=EventType(data["eventType"]),
            new=data.get("new"),
            old=data.get("old"),
            committed_at=dt.datetime.fromisoformat(data["committed_at"]),
        )


def _jsonable(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (dt.datetime, dt.date, dt.time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {key: _jsonable(val) for key, val in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def row_payload(obj: Any) -> dict[str, Any]:
    """Column values of an ORM instance as a JSON-ready dict."""
    mapper = inspect(obj).mapper
    return {attr.key: _jsonable(getattr(obj, attr.key)) for attr in mapper.column_attrs}


class Subscription:
    def __init__(
        self,
        feed: "ChangeFeed",
        table: str,
        event_types: Iterable[EventType] | None = None,
        row_filter: RowFilter | None = None,
        maxsize: int = 1000,
    ):
        self.feed = feed
        self.table = table
        self.event_types = frozenset(event_types) if event_types else frozenset(EventType)
        self.row_filter = row_filter
        self.lagged = False
        self.closed = False
        self._queue: asyncio.Queue[ChangeEvent | None] = asyncio.Queue(maxsize=maxsize)

    def accepts(self, event: ChangeEvent) -> bool:
        if self.closed or event.table != self.table or event.event_type not in self.event_types:
            return False
        if self.row_filter is None:
            return True
        return self.row_filter.matches(event.new) or self.row_filter.matches(event.old)

    def deliver(self, event: ChangeEvent) -> None:
        if self._queue.full():
            # Drop the oldest event; the consumer must re-fetch to catch up
            self._queue.get_nowait()
            self.lagged = True
            logger.warning("Subscription lagged", extra={"table": self.table})
        self._queue.put_nowait(event)

    def clear_lag(self) -> None:
        self.lagged = False

    async def get(self, timeout: float | None = None) -> ChangeEvent | None:
        """Next event, or ``None`` once the subscription is closed."""
        if self.closed and self._queue.empty():
            return None
        if timeout is None:
            return await self._queue.get()
        return await asyncio.wait_for(self._queue.get(), timeout=timeout)

    def pending(self) -> int:
        return self._queue.qsize()

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self.feed._release(self)
        if self._queue.full():
            self._queue.get_nowait()
        # Wake a consumer blocked in get()
        self._queue.put_nowait(None)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


class ChangeFeed(ABC):
    """Publish/subscribe capability the services rely on."""

    @abstractmethod
    async def publish(self, event: ChangeEvent) -> None:
        pass

    @abstractmethod
    async def subscribe(
        self,
        table: str,
        event_types: Iterable[EventType] | None = None,
        row_filter: RowFilter | None = None,
    ) -> Subscription:
        pass

    @abstractmethod
    async def _release(self, subscription: Subscription) -> None:
        pass

    async def close(self) -> None:
        pass


class InMemoryChangeFeed(ChangeFeed):
    """Single-process distributor; each subscription gets its own bounded queue."""

    def __init__(self, queue_size: int = 1000):
        self.queue_size = queue_size
        self._subscriptions: set[Subscription] = set()

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    async def publish(self, event: ChangeEvent) -> None:
        for subscription in list(self._subscriptions):
            if subscription.accepts(event):
                subscription.deliver(event)

    async def subscribe(
        self,
        table: str,
        event_types: Iterable[EventType] | None = None,
        row_filter: RowFilter | None = None,
    ) -> Subscription:
        subscription = Subscription(self, table, event_types, row_filter, maxsize=self.queue_size)
        self._subscriptions.add(subscription)
        return subscription

    async def _release(self, subscription: Subscription) -> None:
        self._subscriptions.discard(subscription)

    async def close(self) -> None:
        for subscription in list(self._subscriptions):
            await subscription.close()


async def publish_safely(feed: ChangeFeed | None, event: ChangeEvent) -> bool:
    """Publish after a committed write. A failed publish never undoes the write."""
    if feed is None:
        return False
    try:
        await feed.publish(event)
        return True
    except Exception:
        logger.exception(
            "Failed to publish change event",
            extra={"table": event.table, "event_type": event.event_type.value},
        )
        return False
