"""Per-connection state machine for the metrics WebSocket.

Each handler is a pure function (state, event) -> (new state, effects).
Nothing here touches a socket or the hub; the WebSocket endpoint executes
the returned effects. That keeps the protocol testable without a server.

    CONNECTING --open--> OPEN --subscribe--> OPEN(subscribed)
        |                  |                      |
        +-- close/error ---+-----> CLOSED <-------+

Messages received outside OPEN are ignored. Closing twice is a no-op.
listing_ids only holds subscriptions the hub accepted: the endpoint reports
a refused subscribe back through on_subscribe_rejected.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Union

from smartsell.realtime.messages import (
    MalformedMessageError,
    PingMessage,
    PongMessage,
    ServerMessage,
    SubscribeMessage,
    UnsubscribeMessage,
    parse_client_message,
)


class Phase(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class ConnectionState:
    phase: Phase = Phase.CONNECTING
    listing_ids: frozenset[int] = field(default_factory=frozenset)

    @property
    def subscribed(self) -> bool:
        return bool(self.listing_ids)


# ─── Effects ─────────────────────────────────────────────

@dataclass(frozen=True)
class Send:
    message: ServerMessage


@dataclass(frozen=True)
class Subscribe:
    listing_id: int


@dataclass(frozen=True)
class Unsubscribe:
    listing_id: int


@dataclass(frozen=True)
class UnsubscribeAll:
    pass


@dataclass(frozen=True)
class Reject:
    """A frame was dropped; log it and keep the connection."""
    reason: str


Effect = Union[Send, Subscribe, Unsubscribe, UnsubscribeAll, Reject]
Transition = tuple[ConnectionState, list[Effect]]


# ─── Handlers ────────────────────────────────────────────

def on_open(state: ConnectionState) -> Transition:
    if state.phase is not Phase.CONNECTING:
        return state, []
    return replace(state, phase=Phase.OPEN), [Send(PingMessage())]


def on_message(state: ConnectionState, raw: str | bytes) -> Transition:
    if state.phase is not Phase.OPEN:
        return state, []

    try:
        message = parse_client_message(raw)
    except MalformedMessageError as e:
        return state, [Reject(str(e))]

    if isinstance(message, SubscribeMessage):
        listing_ids = state.listing_ids | {message.listing_id}
        return replace(state, listing_ids=listing_ids), [Subscribe(message.listing_id)]
    if isinstance(message, UnsubscribeMessage):
        listing_ids = state.listing_ids - {message.listing_id}
        return replace(state, listing_ids=listing_ids), [Unsubscribe(message.listing_id)]
    if isinstance(message, PingMessage):
        return state, [Send(PongMessage())]
    return state, []


def on_subscribe_rejected(state: ConnectionState, listing_id: int) -> Transition:
    return replace(state, listing_ids=state.listing_ids - {listing_id}), []


def on_close(state: ConnectionState) -> Transition:
    if state.phase is Phase.CLOSED:
        return state, []
    return ConnectionState(phase=Phase.CLOSED), [UnsubscribeAll()]


def on_error(state: ConnectionState, error: BaseException) -> Transition:
    # An errored socket is unusable; treat it exactly like a close.
    return on_close(state)
