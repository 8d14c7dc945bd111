"""Metrics hub: subscription registry + broadcast dispatcher.

One MetricsHub is built per process in create_app() and hung on
app.state.metrics_hub. It owns the map

    listing_id -> {subscriber, ...}

and pushes full metrics snapshots to every subscriber of a listing after
each counter change. Delivery is best-effort:
- each send gets `send_timeout` seconds, all sends run concurrently
- a closed, failing or slow subscriber is dropped from the registry in the
  same broadcast that discovers it, nobody else notices
- nothing is retried; the next mutation or the client's polling catches up

Broadcasts of one listing are serialised by a per-listing asyncio.Lock and
always re-read the row, so a subscriber sees snapshots in commit order.
"""

import asyncio
from collections import defaultdict
from typing import Optional, Protocol

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from smartsell.realtime.messages import MetricsUpdateMessage, encode
from smartsell.schemas.listing import ListingMetricsRead
from smartsell.services.metrics_service import MetricsService, MetricsStoreError

logger = structlog.get_logger()


class Subscriber(Protocol):
    """A live connection that can receive text frames."""

    @property
    def is_open(self) -> bool: ...

    async def send_text(self, data: str) -> None: ...


class DeliveryError(Exception):
    """Raised when a frame could not be delivered to one subscriber."""
    pass


class SubscriberLimitError(Exception):
    """Raised when a listing already has the maximum number of subscribers."""
    pass


class MetricsHub:
    """Process-scoped registry of metrics subscribers.

    Usage:
        hub = MetricsHub(async_session_factory)
        await hub.subscribe(42, subscriber)   # subscriber gets a snapshot now
        await hub.broadcast(42)               # after every counter change
        hub.unsubscribe(subscriber)           # on close / error
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        send_timeout: float = 1.0,
        max_subscribers_per_listing: int = 1000,
    ):
        self.session_factory = session_factory
        self.send_timeout = send_timeout
        self.max_subscribers_per_listing = max_subscribers_per_listing
        self._subscribers: dict[int, set[Subscriber]] = {}
        self._locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    # ─── Registry ────────────────────────────────────────

    async def subscribe(self, listing_id: int, subscriber: Subscriber) -> None:
        """Register interest in a listing and send it the current snapshot.

        Raises ListingNotFoundError for unknown listings (nothing is
        registered), SubscriberLimitError when the listing is full and
        MetricsStoreError when the snapshot cannot be read (the subscriber
        is left as it was before the call).
        """
        async with self.session_factory() as db:
            await MetricsService(db).get_or_create(listing_id)

        async with self._locks[listing_id]:
            subscribers = self._subscribers.get(listing_id, set())
            added = subscriber not in subscribers
            if added and len(subscribers) >= self.max_subscribers_per_listing:
                raise SubscriberLimitError(
                    f"Listing {listing_id} has {len(subscribers)} subscribers"
                )
            subscribers.add(subscriber)
            self._subscribers[listing_id] = subscribers
            logger.info(
                "ws.subscribed",
                listing_id=listing_id,
                subscribers=len(subscribers),
            )

            try:
                snapshot = await self._load_snapshot(listing_id)
            except MetricsStoreError:
                if added:
                    self.unsubscribe_from(listing_id, subscriber)
                raise
            delivered = True
            if snapshot is not None:
                delivered = await self._deliver(
                    listing_id,
                    subscriber,
                    encode(MetricsUpdateMessage(listing_id=listing_id, metrics=snapshot)),
                )

        if not delivered:
            self.unsubscribe(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        """Remove a subscriber from every listing. Safe to call repeatedly."""
        for listing_id in list(self._subscribers):
            self.unsubscribe_from(listing_id, subscriber)

    def unsubscribe_from(self, listing_id: int, subscriber: Subscriber) -> None:
        """Remove a subscriber from one listing. Safe to call repeatedly."""
        subscribers = self._subscribers.get(listing_id)
        if not subscribers or subscriber not in subscribers:
            return
        subscribers.discard(subscriber)
        if not subscribers:
            del self._subscribers[listing_id]

    def subscriber_count(self, listing_id: Optional[int] = None) -> int:
        if listing_id is not None:
            return len(self._subscribers.get(listing_id, ()))
        return sum(len(s) for s in self._subscribers.values())

    def listings_for(self, subscriber: Subscriber) -> set[int]:
        return {
            listing_id
            for listing_id, subscribers in self._subscribers.items()
            if subscriber in subscribers
        }

    # ─── Broadcast ───────────────────────────────────────

    async def broadcast(self, listing_id: int) -> int:
        """Push the listing's current snapshot to all of its subscribers.

        Returns the number of subscribers that received it. Never raises for
        delivery or store problems; those are logged and the caller's request
        carries on.
        """
        if not self._subscribers.get(listing_id):
            return 0

        async with self._locks[listing_id]:
            subscribers = list(self._subscribers.get(listing_id, ()))
            if not subscribers:
                return 0

            try:
                snapshot = await self._load_snapshot(listing_id)
            except MetricsStoreError as e:
                logger.warning(
                    "metrics.broadcast_failed", listing_id=listing_id, error=str(e)
                )
                return 0
            if snapshot is None:
                return 0

            message = encode(
                MetricsUpdateMessage(listing_id=listing_id, metrics=snapshot)
            )
            results = await asyncio.gather(
                *(self._deliver(listing_id, s, message) for s in subscribers)
            )

        for subscriber, delivered in zip(subscribers, results):
            if not delivered:
                self.unsubscribe(subscriber)
                logger.info("metrics.subscriber_pruned", listing_id=listing_id)

        return sum(results)

    # ─── Internals ───────────────────────────────────────

    async def _load_snapshot(self, listing_id: int) -> Optional[ListingMetricsRead]:
        async with self.session_factory() as db:
            metrics = await MetricsService(db).get(listing_id)
            if metrics is None:
                return None
            return ListingMetricsRead.model_validate(metrics)

    async def _deliver(self, listing_id: int, subscriber: Subscriber, message: str) -> bool:
        try:
            await self._send(subscriber, message)
        except DeliveryError as e:
            logger.warning(
                "metrics.delivery_failed", listing_id=listing_id, error=str(e)
            )
            return False
        return True

    async def _send(self, subscriber: Subscriber, message: str) -> None:
        if not subscriber.is_open:
            raise DeliveryError("connection is not open")
        try:
            await asyncio.wait_for(
                subscriber.send_text(message), timeout=self.send_timeout
            )
        except asyncio.TimeoutError as e:
            raise DeliveryError(f"send timed out after {self.send_timeout}s") from e
        except Exception as e:
            raise DeliveryError(str(e) or type(e).__name__) from e
