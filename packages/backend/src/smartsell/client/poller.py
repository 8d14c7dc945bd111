"""Polling fallback: keep a local copy of a listing's metrics fresh.

The live WebSocket is the fast path, but it may never connect, reconnect
slowly or drop frames silently. The poller re-reads the same snapshot
every `interval` seconds regardless, so the mirror is eventually correct.

Both sources feed one MetricsMirror. A snapshot is always the full record,
so reconciling is last-write-wins: a snapshot replaces the held one when
its counters advanced, or when they are equal and its lastUpdated is not
older. An older snapshot that arrives late (slow poll racing a live push)
is ignored.
"""

import asyncio
from typing import Callable, Optional

import httpx
import structlog

from smartsell.realtime.messages import (
    MalformedMessageError,
    MetricsUpdateMessage,
    parse_server_message,
)
from smartsell.schemas.listing import ListingMetricsRead

logger = structlog.get_logger()


def _counts(m: ListingMetricsRead) -> tuple[int, int, int]:
    return m.views, m.shares, m.clicks


def _is_newer(snapshot: ListingMetricsRead, current: ListingMetricsRead) -> bool:
    new, old = _counts(snapshot), _counts(current)
    if any(n < o for n, o in zip(new, old)):
        return False
    return new != old or snapshot.last_updated >= current.last_updated


class MetricsMirror:
    """Reconciled local view of one listing's metrics snapshot."""

    def __init__(self, listing_id: int):
        self.listing_id = listing_id
        self.snapshot: Optional[ListingMetricsRead] = None

    def apply(self, snapshot: ListingMetricsRead) -> bool:
        """Adopt `snapshot` unless it is older than what we hold.

        Counters only ever grow, so a snapshot with higher counts is newer
        even when its lastUpdated is not. Returns True when the mirror's
        content changed.
        """
        if snapshot.listing_id != self.listing_id:
            return False
        current = self.snapshot
        if current is not None and not _is_newer(snapshot, current):
            return False
        self.snapshot = snapshot
        return current != snapshot

    def apply_message(self, raw: str | bytes) -> bool:
        """Feed one frame from the metrics WebSocket."""
        try:
            message = parse_server_message(raw)
        except MalformedMessageError as e:
            logger.warning("mirror.malformed_message", error=str(e))
            return False
        if not isinstance(message, MetricsUpdateMessage):
            return False
        return self.apply(message.metrics)


class MetricsPoller:
    """Periodically GET /listings/{id}/metrics into a MetricsMirror.

    Usage:
        async with httpx.AsyncClient(base_url=api_url) as client:
            poller = MetricsPoller(client, listing_id=42, interval=5.0)
            asyncio.create_task(poller.run_loop())
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        listing_id: int,
        interval: float = 5.0,
        mirror: Optional[MetricsMirror] = None,
        on_change: Optional[Callable[[ListingMetricsRead], None]] = None,
    ):
        self.client = client
        self.listing_id = listing_id
        self.interval = interval
        self.mirror = mirror or MetricsMirror(listing_id)
        self.on_change = on_change
        self._running = False

    async def poll_once(self) -> ListingMetricsRead:
        """Fetch the snapshot and reconcile it. Raises httpx errors."""
        resp = await self.client.get(f"/api/v1/listings/{self.listing_id}/metrics")
        resp.raise_for_status()
        snapshot = ListingMetricsRead.model_validate(resp.json())
        if self.mirror.apply(snapshot) and self.on_change:
            self.on_change(self.mirror.snapshot)
        return snapshot

    async def run_loop(self, max_polls: Optional[int] = None) -> None:
        """Poll until stop() is called (or `max_polls` polls have run)."""
        self._running = True
        polls = 0
        logger.info(
            "poller.started", listing_id=self.listing_id, interval=self.interval
        )

        while self._running:
            try:
                await self.poll_once()
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(
                    "poller.fetch_failed", listing_id=self.listing_id, error=str(e)
                )
            polls += 1
            if max_polls is not None and polls >= max_polls:
                break
            await asyncio.sleep(self.interval)

        self._running = False

    def stop(self) -> None:
        """Signal the poller to stop after the current poll."""
        self._running = False
        logger.info("poller.stopping", listing_id=self.listing_id)
