"""Wire messages exchanged over the metrics WebSocket.

Every message is a JSON object tagged by `type`. Client messages are parsed
into a discriminated union; anything that does not validate becomes a
MalformedMessageError instead of reaching the handler.

    client -> server   {"type": "subscribe",   "listingId": 42}
                       {"type": "unsubscribe", "listingId": 42}
                       {"type": "ping"}
    server -> client   {"type": "ping"}                       (on connect)
                       {"type": "pong"}
                       {"type": "metrics_update", "listingId": 42, "metrics": {...}}
"""

from typing import Annotated, Literal, Union

from pydantic import Field, PositiveInt, TypeAdapter, ValidationError

from smartsell.schemas.listing import CamelModel, ListingMetricsRead


class MalformedMessageError(Exception):
    """Raised when an incoming frame is not a valid client message."""
    pass


# ─── Client → server ─────────────────────────────────────

class SubscribeMessage(CamelModel):
    type: Literal["subscribe"] = "subscribe"
    listing_id: PositiveInt


class UnsubscribeMessage(CamelModel):
    type: Literal["unsubscribe"] = "unsubscribe"
    listing_id: PositiveInt


class PingMessage(CamelModel):
    type: Literal["ping"] = "ping"


ClientMessage = Annotated[
    Union[SubscribeMessage, UnsubscribeMessage, PingMessage],
    Field(discriminator="type"),
]

_client_message_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)


def parse_client_message(raw: str | bytes) -> ClientMessage:
    """Decode and validate one client frame."""
    try:
        return _client_message_adapter.validate_json(raw)
    except ValidationError as e:
        errors = e.errors(include_url=False)
        reason = errors[0]["msg"] if errors else str(e)
        raise MalformedMessageError(reason) from e


# ─── Server → client ─────────────────────────────────────

class PongMessage(CamelModel):
    type: Literal["pong"] = "pong"


class MetricsUpdateMessage(CamelModel):
    type: Literal["metrics_update"] = "metrics_update"
    listing_id: int
    metrics: ListingMetricsRead


ServerMessage = Union[PingMessage, PongMessage, MetricsUpdateMessage]

_server_message_adapter: TypeAdapter = TypeAdapter(
    Annotated[
        Union[PingMessage, PongMessage, MetricsUpdateMessage],
        Field(discriminator="type"),
    ]
)


def encode(message: ServerMessage) -> str:
    return message.model_dump_json(by_alias=True)


def parse_server_message(raw: str | bytes) -> ServerMessage:
    """Decode a server frame (used by Python clients of the socket)."""
    try:
        return _server_message_adapter.validate_json(raw)
    except ValidationError as e:
        raise MalformedMessageError(str(e)) from e
