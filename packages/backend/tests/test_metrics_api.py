"""Metrics API tests: snapshot reads, counter routes, broadcast side effects.

Pattern: create listings straight in the database, then drive everything
through HTTP while a FakeSubscriber sits on the hub and records what a
WebSocket client would have received.
"""

import asyncio

import pytest

from smartsell.services.metrics_service import MetricsService, MetricsStoreError


def _counters(metrics: dict) -> dict:
    return {k: metrics[k] for k in ("views", "shares", "clicks")}


# ═══════════════════════════════════════════════════════════
# GET /listings/{id}/metrics
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_metrics_for_untouched_listing_are_zero(client, make_listing, session_factory):
    """First read creates the record as a side effect."""
    listing = await make_listing()

    resp = await client.get(f"/api/v1/listings/{listing.id}/metrics")
    assert resp.status_code == 200
    data = resp.json()
    assert data["listingId"] == listing.id
    assert _counters(data) == {"views": 0, "shares": 0, "clicks": 0}
    assert "lastUpdated" in data

    async with session_factory() as session:
        assert await MetricsService(session).get(listing.id) is not None


@pytest.mark.asyncio
async def test_metrics_read_is_stable(client, make_listing):
    listing = await make_listing()
    first = (await client.get(f"/api/v1/listings/{listing.id}/metrics")).json()
    second = (await client.get(f"/api/v1/listings/{listing.id}/metrics")).json()
    assert first == second


@pytest.mark.asyncio
async def test_metrics_for_unknown_listing_404(client):
    resp = await client.get("/api/v1/listings/4242/metrics")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Listing not found"


# ═══════════════════════════════════════════════════════════
# POST /listings/{id}/view|share|click
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "route,expected",
    [
        ("view", {"views": 1, "shares": 0, "clicks": 0}),
        ("share", {"views": 0, "shares": 1, "clicks": 0}),
        ("click", {"views": 0, "shares": 0, "clicks": 1}),
    ],
)
async def test_tracking_route_increments_its_counter(client, make_listing, route, expected):
    listing = await make_listing()
    resp = await client.post(f"/api/v1/listings/{listing.id}/{route}")
    assert resp.status_code == 200
    assert _counters(resp.json()) == expected


@pytest.mark.asyncio
@pytest.mark.parametrize("route", ["view", "share", "click"])
async def test_tracking_unknown_listing_404(client, route):
    resp = await client.post(f"/api/v1/listings/999/{route}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_concurrent_views_are_all_counted(client, make_listing):
    listing = await make_listing()

    responses = await asyncio.gather(
        *(client.post(f"/api/v1/listings/{listing.id}/view") for _ in range(20))
    )
    assert all(r.status_code == 200 for r in responses)

    final = (await client.get(f"/api/v1/listings/{listing.id}/metrics")).json()
    assert final["views"] == 20


@pytest.mark.asyncio
async def test_views_and_share_scenario_broadcasts_in_order(
    client, hub, make_listing, make_subscriber
):
    """view x3 then share x1 on listing 42, watched from before the first call."""
    await make_listing(listing_id=42)
    watcher = make_subscriber()
    await hub.subscribe(42, watcher)
    assert len(watcher.updates) == 1  # initial snapshot

    for route in ("view", "view", "view", "share"):
        resp = await client.post(f"/api/v1/listings/42/{route}")
        assert resp.status_code == 200

    final = (await client.get("/api/v1/listings/42/metrics")).json()
    assert _counters(final) == {"views": 3, "shares": 1, "clicks": 0}

    pushed = watcher.updates[1:]
    assert len(pushed) == 4
    assert [(m["metrics"]["views"], m["metrics"]["shares"]) for m in pushed] == [
        (1, 0),
        (2, 0),
        (3, 0),
        (3, 1),
    ]
    assert all(m["listingId"] == 42 for m in pushed)
    assert _counters(pushed[-1]["metrics"]) == _counters(final)


@pytest.mark.asyncio
async def test_mutation_on_one_listing_does_not_reach_another(
    client, hub, make_listing, make_subscriber
):
    first = await make_listing()
    second = await make_listing()
    watcher_1, watcher_2 = make_subscriber(), make_subscriber()
    await hub.subscribe(first.id, watcher_1)
    await hub.subscribe(second.id, watcher_2)

    await client.post(f"/api/v1/listings/{first.id}/click")

    assert len(watcher_1.updates) == 2
    assert len(watcher_2.updates) == 1
    assert watcher_2.updates[0]["listingId"] == second.id


@pytest.mark.asyncio
async def test_dead_subscriber_does_not_fail_the_request(
    client, hub, make_listing, make_subscriber
):
    listing = await make_listing()
    broken = make_subscriber()
    await hub.subscribe(listing.id, broken)
    broken.fail = True

    resp = await client.post(f"/api/v1/listings/{listing.id}/view")
    assert resp.status_code == 200
    assert resp.json()["views"] == 1
    assert hub.subscriber_count(listing.id) == 0


@pytest.mark.asyncio
async def test_store_failure_is_500_and_skips_broadcast(
    client, hub, make_listing, make_subscriber, monkeypatch
):
    listing = await make_listing()
    watcher = make_subscriber()
    await hub.subscribe(listing.id, watcher)

    async def broken(self, listing_id, field):
        raise MetricsStoreError("connection refused")

    monkeypatch.setattr(MetricsService, "increment", broken)

    resp = await client.post(f"/api/v1/listings/{listing.id}/view")
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Failed to track views"
    assert len(watcher.updates) == 1
