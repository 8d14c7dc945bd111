"""Polling fallback tests: mirror reconciliation and the poll loop.

The backend is replaced by an httpx.MockTransport so every response the
poller sees is scripted by the test.
"""

import json

import httpx
import pytest

from smartsell.client.poller import MetricsMirror, MetricsPoller
from smartsell.schemas.listing import ListingMetricsRead


def _snapshot(views: int, at: str, listing_id: int = 42) -> ListingMetricsRead:
    return ListingMetricsRead(
        listing_id=listing_id, views=views, shares=0, clicks=0, last_updated=at
    )


def _payload(views: int, at: str, listing_id: int = 42) -> dict:
    return {
        "listingId": listing_id,
        "views": views,
        "shares": 0,
        "clicks": 0,
        "lastUpdated": at,
    }


# ═══════════════════════════════════════════════════════════
# MetricsMirror
# ═══════════════════════════════════════════════════════════


def test_mirror_adopts_first_snapshot():
    mirror = MetricsMirror(42)
    assert mirror.apply(_snapshot(1, "2026-05-01T10:00:00"))
    assert mirror.snapshot.views == 1


def test_mirror_ignores_older_snapshot():
    mirror = MetricsMirror(42)
    mirror.apply(_snapshot(5, "2026-05-01T10:00:05"))
    assert not mirror.apply(_snapshot(3, "2026-05-01T10:00:01"))
    assert mirror.snapshot.views == 5


def test_mirror_same_snapshot_is_not_a_change():
    mirror = MetricsMirror(42)
    mirror.apply(_snapshot(5, "2026-05-01T10:00:05"))
    assert not mirror.apply(_snapshot(5, "2026-05-01T10:00:05"))


def test_mirror_ignores_other_listings():
    mirror = MetricsMirror(42)
    assert not mirror.apply(_snapshot(9, "2026-05-01T10:00:00", listing_id=7))
    assert mirror.snapshot is None


def test_mirror_apply_message():
    mirror = MetricsMirror(42)
    frame = json.dumps(
        {
            "type": "metrics_update",
            "listingId": 42,
            "metrics": _payload(2, "2026-05-01T10:00:00"),
        }
    )
    assert mirror.apply_message(frame)
    assert mirror.snapshot.views == 2


@pytest.mark.parametrize("frame", ['{"type": "ping"}', '{"type": "pong"}', "garbage"])
def test_mirror_apply_message_skips_non_updates(frame):
    mirror = MetricsMirror(42)
    assert not mirror.apply_message(frame)
    assert mirror.snapshot is None


# ═══════════════════════════════════════════════════════════
# MetricsPoller
# ═══════════════════════════════════════════════════════════


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="http://smartsell.test"
    )


@pytest.mark.asyncio
async def test_poll_once_reads_metrics_endpoint():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, json=_payload(4, "2026-05-01T10:00:00"))

    changes = []
    async with _client(handler) as client:
        poller = MetricsPoller(client, 42, interval=0, on_change=changes.append)
        snapshot = await poller.poll_once()

    assert seen == ["/api/v1/listings/42/metrics"]
    assert snapshot.views == 4
    assert [c.views for c in changes] == [4]


@pytest.mark.asyncio
async def test_poll_once_raises_on_http_error():
    def handler(request):
        return httpx.Response(404, json={"detail": "Listing not found"})

    async with _client(handler) as client:
        with pytest.raises(httpx.HTTPStatusError):
            await MetricsPoller(client, 42).poll_once()


@pytest.mark.asyncio
async def test_run_loop_survives_failures_and_reports_changes():
    responses = iter(
        [
            httpx.Response(200, json=_payload(1, "2026-05-01T10:00:00")),
            httpx.Response(503, text="unavailable"),
            httpx.Response(200, text="not json"),
            httpx.Response(200, json=_payload(1, "2026-05-01T10:00:00")),
            httpx.Response(200, json=_payload(3, "2026-05-01T10:00:09")),
        ]
    )

    def handler(request):
        return next(responses)

    changes = []
    async with _client(handler) as client:
        poller = MetricsPoller(client, 42, interval=0, on_change=changes.append)
        await poller.run_loop(max_polls=5)

    assert [c.views for c in changes] == [1, 3]
    assert poller.mirror.snapshot.views == 3


@pytest.mark.asyncio
async def test_poller_and_live_frames_share_one_mirror():
    """A slow poll that lands after a newer live push does not roll it back."""
    mirror = MetricsMirror(42)
    mirror.apply_message(
        json.dumps(
            {
                "type": "metrics_update",
                "listingId": 42,
                "metrics": _payload(7, "2026-05-01T10:00:07"),
            }
        )
    )

    def handler(request):
        return httpx.Response(200, json=_payload(6, "2026-05-01T10:00:06"))

    async with _client(handler) as client:
        await MetricsPoller(client, 42, mirror=mirror).poll_once()

    assert mirror.snapshot.views == 7


@pytest.mark.asyncio
async def test_stop_ends_the_loop():
    calls = 0

    def handler(request):
        nonlocal calls
        calls += 1
        if calls == 2:
            poller.stop()
        return httpx.Response(200, json=_payload(calls, f"2026-05-01T10:00:0{calls}"))

    async with _client(handler) as client:
        poller = MetricsPoller(client, 42, interval=0)
        await poller.run_loop()

    assert calls == 2


def test_mirror_accepts_higher_counts_with_older_timestamp():
    """Counters only grow, so more views wins even if lastUpdated lags."""
    mirror = MetricsMirror(42)
    mirror.apply(_snapshot(1, "2026-01-01T00:00:02"))

    assert mirror.apply(_snapshot(2, "2026-01-01T00:00:01"))
    assert mirror.snapshot.views == 2
    # the same row re-polled later is not a change, and is not rolled back
    assert not mirror.apply(_snapshot(2, "2026-01-01T00:00:01"))
    assert mirror.snapshot.views == 2


def test_mirror_rejects_lower_counts_with_newer_timestamp():
    mirror = MetricsMirror(42)
    mirror.apply(_snapshot(5, "2026-01-01T00:00:01"))
    assert not mirror.apply(_snapshot(4, "2026-01-01T00:00:09"))
    assert mirror.snapshot.views == 5


@pytest.mark.asyncio
async def test_poller_recovers_row_with_lagging_timestamp():
    mirror = MetricsMirror(42)
    mirror.apply(_snapshot(1, "2026-01-01T00:00:02"))

    def handler(request):
        return httpx.Response(200, json=_payload(2, "2026-01-01T00:00:01"))

    async with _client(handler) as client:
        await MetricsPoller(client, 42, interval=0, mirror=mirror).run_loop(max_polls=2)

    assert mirror.snapshot.views == 2
