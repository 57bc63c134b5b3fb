import asyncio

import pytest

from waste_service.api.routes.realtime import forward_events, parse_event_types
from waste_service.realtime import ChangeEvent, EventType, InMemoryChangeFeed, RowFilter
from waste_service.realtime.reconcile import LiveCache, dedupe_by_id


def _event(event_type=EventType.insert, table="notifications", new=None, old=None):
    return ChangeEvent(table, event_type, new=new, old=old)


def test_row_filter_parse_and_match():
    row_filter = RowFilter.parse("user_id=eq.abc")
    assert row_filter == RowFilter("user_id", "abc")
    assert row_filter.matches({"user_id": "abc"})
    assert not row_filter.matches({"user_id": "xyz"})
    assert not row_filter.matches(None)


@pytest.mark.parametrize("expression", ["user_id", "user_id=gt.5", "=eq.1", "user_id=eq"])
def test_row_filter_rejects_unsupported(expression):
    with pytest.raises(ValueError):
        RowFilter.parse(expression)


def test_change_event_dict_round_trip():
    event = _event(EventType.update, new={"id": 1, "read": True}, old={"id": 1})
    data = event.to_dict()
    assert data["eventType"] == "UPDATE"
    assert ChangeEvent.from_dict(data) == event


async def test_subscription_scoping():
    feed = InMemoryChangeFeed()
    mine = await feed.subscribe("notifications", row_filter=RowFilter("user_id", "u1"))
    deletes = await feed.subscribe("notifications", event_types=[EventType.delete])
    other_table = await feed.subscribe("schedules")

    await feed.publish(_event(new={"id": 1, "user_id": "u1"}))
    await feed.publish(_event(new={"id": 2, "user_id": "u2"}))
    await feed.publish(_event(EventType.delete, old={"id": 1, "user_id": "u1"}))

    assert mine.pending() == 2
    assert deletes.pending() == 1
    assert other_table.pending() == 0
    await feed.close()
    assert feed.subscription_count == 0


async def test_overflow_drops_oldest_and_flags_lag():
    feed = InMemoryChangeFeed(queue_size=2)
    subscription = await feed.subscribe("schedules")

    for n in range(3):
        await feed.publish(_event(table="schedules", new={"id": n}))

    assert subscription.lagged is True
    assert [(await subscription.get(timeout=1)).new["id"] for _ in range(2)] == [1, 2]
    await subscription.close()


async def test_closed_subscription_ends_iteration():
    feed = InMemoryChangeFeed()
    subscription = await feed.subscribe("schedules")
    await feed.publish(_event(table="schedules", new={"id": 1}))

    received = []

    async def consume():
        async for event in subscription:
            received.append(event.new["id"])

    task = asyncio.create_task(consume())
    await asyncio.sleep(0)
    await subscription.close()
    await asyncio.wait_for(task, timeout=1)

    assert received == [1]
    assert feed.subscription_count == 0
    await feed.publish(_event(table="schedules", new={"id": 2}))
    assert subscription.pending() <= 1


def test_dedupe_by_id_keeps_first_seen_order():
    items = [{"id": 2, "v": "a"}, {"id": 1, "v": "b"}, {"id": 2, "v": "c"}, {"id": 3, "v": "d"}]
    assert dedupe_by_id(items) == [{"id": 2, "v": "a"}, {"id": 1, "v": "b"}, {"id": 3, "v": "d"}]


class _Source:
    def __init__(self, rows):
        self.rows = rows
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return list(self.rows)


async def test_live_cache_patches_complete_payloads():
    source = _Source([{"id": 1, "message": "old", "read": False}])
    cache = LiveCache(source, required_fields=("message", "read"))
    await cache.refresh()

    await cache.apply(_event(EventType.update, new={"id": 1, "message": "new", "read": False}))
    await cache.apply(_event(EventType.insert, new={"id": 2, "message": "fresh", "read": False}))
    # Rapid duplicate insert must not create a second entry
    await cache.apply(_event(EventType.insert, new={"id": 2, "message": "fresh", "read": False}))

    assert [row["id"] for row in cache.items()] == [2, 1]
    assert cache.get(1)["message"] == "new"
    assert source.calls == 1


async def test_live_cache_refetches_on_ambiguous_payloads():
    source = _Source([{"id": 1, "message": "m", "read": True}])
    cache = LiveCache(source, required_fields=("message", "read"))
    await cache.refresh()

    await cache.apply(_event(EventType.update, new={"id": 1, "read": True}))
    await cache.apply(_event(EventType.delete, old={}))

    assert source.calls == 3


async def test_live_cache_refetches_after_lag():
    feed = InMemoryChangeFeed(queue_size=1)
    subscription = await feed.subscribe("notifications")
    source = _Source([{"id": 1, "message": "m", "read": False}])
    cache = LiveCache(source, required_fields=("message", "read"))

    await feed.publish(_event(new={"id": 1, "message": "m", "read": False}))
    await feed.publish(_event(new={"id": 5, "message": "x", "read": False}))
    event = await subscription.get(timeout=1)
    await cache.apply(event, subscription)

    assert source.calls == 1
    assert subscription.lagged is False
    assert [row["id"] for row in cache.items()] == [1]
    await subscription.close()


async def test_live_cache_removes_deleted_rows():
    source = _Source([{"id": 1, "message": "m", "read": False}, {"id": 2, "message": "n", "read": False}])
    cache = LiveCache(source)
    await cache.refresh()

    await cache.apply(_event(EventType.delete, old={"id": 1}))

    assert [row["id"] for row in cache.items()] == [2]


def test_parse_event_types():
    assert parse_event_types(None) is None
    assert parse_event_types("insert, UPDATE") == {EventType.insert, EventType.update}
    with pytest.raises(ValueError):
        parse_event_types("TRUNCATE")


class _FakeWebSocket:
    def __init__(self):
        self.frames = []

    async def send_json(self, data):
        self.frames.append(data)


async def test_forward_events_sends_resync_after_lag():
    feed = InMemoryChangeFeed(queue_size=1)
    subscription = await feed.subscribe("schedules")
    websocket = _FakeWebSocket()

    await feed.publish(_event(table="schedules", new={"id": 1}))
    await feed.publish(_event(table="schedules", new={"id": 2}))
    task = asyncio.create_task(forward_events(websocket, subscription))
    await asyncio.sleep(0.01)
    await subscription.close()
    sent = await asyncio.wait_for(task, timeout=1)

    assert sent == 1
    assert websocket.frames[0] == {"type": "resync", "table": "schedules"}
    assert websocket.frames[1]["type"] == "change"
    assert websocket.frames[1]["new"] == {"id": 2}
