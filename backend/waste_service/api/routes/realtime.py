"""
Change-feed WebSocket

``/realtime/ws?table=notifications&events=INSERT,UPDATE&filter=user_id=eq.abc&token=...``

Events are forwarded as JSON. When the subscription lagged (events were
dropped) a ``resync`` frame precedes the next event so the client re-fetches.
"""
import asyncio
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from waste_service.core.security import InvalidToken, UserRole, decode_access_token
from waste_service.realtime import EventType, RowFilter, Subscription

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/realtime", tags=["Realtime"])

WATCHABLE_TABLES = {"schedules", "activities", "reports", "notifications", "feedback", "educational_contents"}


def parse_event_types(raw: str | None) -> set[EventType] | None:
    if not raw:
        return None
    return {EventType(part.strip().upper()) for part in raw.split(",") if part.strip()}


async def forward_events(websocket, subscription: Subscription) -> int:
    """Send every event of ``subscription`` to ``websocket`` until it closes."""
    sent = 0
    async for event in subscription:
        if subscription.lagged:
            subscription.clear_lag()
            await websocket.send_json({"type": "resync", "table": subscription.table})
        await websocket.send_json({"type": "change", **event.to_dict()})
        sent += 1
    return sent


@router.websocket("/ws")
async def change_stream(
    websocket: WebSocket,
    table: str,
    events: str | None = None,
    filter_expr: str | None = Query(default=None, alias="filter"),
    token: str | None = None,
):
    feed = getattr(websocket.app.state, "change_feed", None)
    try:
        principal = decode_access_token(token or "")
        event_types = parse_event_types(events)
        row_filter = RowFilter.parse(filter_expr) if filter_expr else None
    except (InvalidToken, ValueError) as exc:
        logger.info(f"Rejected change-feed connection: {exc}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    if feed is None or table not in WATCHABLE_TABLES:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    # Residents and collectors only ever see their own notifications
    if table == "notifications" and principal.role != UserRole.official:
        row_filter = RowFilter("user_id", principal.user_id)

    await websocket.accept()
    subscription = await feed.subscribe(table, event_types=event_types, row_filter=row_filter)
    forwarder = asyncio.create_task(forward_events(websocket, subscription))
    logger.info("Change-feed client connected", extra={"table": table, "user_id": principal.user_id})
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await subscription.close()
        await asyncio.gather(forwarder, return_exceptions=True)
        logger.info("Change-feed client disconnected", extra={"table": table, "user_id": principal.user_id})
