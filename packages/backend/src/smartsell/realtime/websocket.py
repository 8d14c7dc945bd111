"""WebSocket endpoint, live metrics delivery to browser clients.

Each client connects to /ws/metrics and sends
{"type": "subscribe", "listingId": N} for the listing it shows. The
handler feeds socket events into the pure state machine in
realtime.connection and runs the effects it returns against the hub.

The connection is long-lived: one per listing card. When it goes away,
every subscription it held is dropped.
"""

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from smartsell.realtime.connection import (
    ConnectionState,
    Effect,
    Reject,
    Send,
    Subscribe,
    Unsubscribe,
    UnsubscribeAll,
    on_close,
    on_error,
    on_message,
    on_open,
    on_subscribe_rejected,
)
from smartsell.realtime.hub import MetricsHub, SubscriberLimitError
from smartsell.realtime.messages import encode
from smartsell.services.metrics_service import ListingNotFoundError, MetricsStoreError

logger = structlog.get_logger()
router = APIRouter()


class WebSocketSubscriber:
    """Adapts a Starlette WebSocket to the hub's Subscriber protocol."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send_text(self, data: str) -> None:
        await self.websocket.send_text(data)


async def _apply(
    effects: list[Effect],
    hub: MetricsHub,
    subscriber: WebSocketSubscriber,
) -> list[int]:
    """Run effects against the hub; returns listing ids it refused to subscribe."""
    rejected = []
    for effect in effects:
        if isinstance(effect, Send):
            if subscriber.is_open:
                await subscriber.send_text(encode(effect.message))
        elif isinstance(effect, Subscribe):
            try:
                await hub.subscribe(effect.listing_id, subscriber)
            except (ListingNotFoundError, SubscriberLimitError, MetricsStoreError) as e:
                logger.warning(
                    "ws.subscribe_rejected",
                    listing_id=effect.listing_id,
                    error=str(e),
                )
            if effect.listing_id not in hub.listings_for(subscriber):
                rejected.append(effect.listing_id)
        elif isinstance(effect, Unsubscribe):
            hub.unsubscribe_from(effect.listing_id, subscriber)
        elif isinstance(effect, UnsubscribeAll):
            hub.unsubscribe(subscriber)
        elif isinstance(effect, Reject):
            logger.warning("ws.malformed_message", reason=effect.reason)
    return rejected


async def _execute(
    state: ConnectionState,
    effects: list[Effect],
    hub: MetricsHub,
    subscriber: WebSocketSubscriber,
) -> ConnectionState:
    for listing_id in await _apply(effects, hub, subscriber):
        state, _ = on_subscribe_rejected(state, listing_id)
    return state


@router.websocket("/ws/metrics")
async def metrics_websocket(websocket: WebSocket):
    """WebSocket endpoint for live listing metrics."""
    hub: MetricsHub = websocket.app.state.metrics_hub
    subscriber = WebSocketSubscriber(websocket)

    await websocket.accept()
    logger.info("ws.connected")

    state = ConnectionState()
    state, effects = on_open(state)
    state = await _execute(state, effects, hub, subscriber)

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", 1000))
            raw = frame.get("text")
            if raw is None:
                raw = frame.get("bytes") or b""
            state, effects = on_message(state, raw)
            state = await _execute(state, effects, hub, subscriber)
    except WebSocketDisconnect:
        state, effects = on_close(state)
        state = await _execute(state, effects, hub, subscriber)
        logger.info("ws.disconnected")
    except Exception as e:
        state, effects = on_error(state, e)
        state = await _execute(state, effects, hub, subscriber)
        logger.warning("ws.error", error=str(e))
        raise
    finally:
        if websocket.client_state == WebSocketState.CONNECTED and (
            websocket.application_state == WebSocketState.CONNECTED
        ):
            await websocket.close()
