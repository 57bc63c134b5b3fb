"""
Client-side reconciliation of change-feed events into a local view.

Events are applied by key only. A payload that cannot be trusted (missing key
or missing required columns) or a subscription that dropped events triggers a
full re-fetch instead of a patch.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Iterable

from waste_service.realtime.feed import ChangeEvent, EventType, Subscription

logger = logging.getLogger(__name__)

Row = dict[str, Any]


def _key_of(item: Any, key: str) -> Any:
    if isinstance(item, dict):
        return item.get(key)
    return getattr(item, key, None)


def dedupe_by_id(items: Iterable[Any], key: str = "id") -> list[Any]:
    """Unique by ``key``, keeping the first occurrence and the original order."""
    seen: OrderedDict[Any, Any] = OrderedDict()
    for item in items:
        item_key = _key_of(item, key)
        if item_key not in seen:
            seen[item_key] = item
    return list(seen.values())


class LiveCache:
    def __init__(
        self,
        fetch: Callable[[], Awaitable[list[Row]]],
        key: str = "id",
        required_fields: Iterable[str] = (),
        newest_first: bool = True,
    ):
        self.fetch = fetch
        self.key = key
        self.required_fields = frozenset(required_fields)
        self.newest_first = newest_first
        self.refetch_count = 0
        self._rows: OrderedDict[Any, Row] = OrderedDict()

    def __len__(self) -> int:
        return len(self._rows)

    def items(self) -> list[Row]:
        return list(self._rows.values())

    def get(self, key: Any) -> Row | None:
        return self._rows.get(key)

    async def refresh(self) -> None:
        rows = await self.fetch()
        self._rows = OrderedDict((row[self.key], dict(row)) for row in dedupe_by_id(rows, self.key))
        self.refetch_count += 1

    def _is_complete(self, row: Row | None) -> bool:
        return bool(row) and self.key in row and self.required_fields.issubset(row)

    async def apply(self, event: ChangeEvent, subscription: Subscription | None = None) -> None:
        if subscription is not None and subscription.lagged:
            subscription.clear_lag()
            await self.refresh()
            return

        if event.event_type is EventType.delete:
            old_key = _key_of(event.old or {}, self.key)
            if old_key is None:
                await self.refresh()
                return
            self._rows.pop(old_key, None)
            return

        if not self._is_complete(event.new):
            logger.debug("Ambiguous change payload, re-fetching", extra={"table": event.table})
            await self.refresh()
            return

        row = dict(event.new)
        row_key = row[self.key]
        if row_key in self._rows:
            self._rows[row_key] = {**self._rows[row_key], **row}
            return
        self._rows[row_key] = row
        if self.newest_first:
            self._rows.move_to_end(row_key, last=False)

    async def consume(self, subscription: Subscription) -> None:
        """Apply events until the subscription is closed."""
        async for event in subscription:
            await self.apply(event, subscription)
