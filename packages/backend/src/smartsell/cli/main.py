"""SmartSell CLI: browse listings and watch their metrics from a terminal.

Usage:
    smartsell listings                      # List all listings
    smartsell metrics 42                    # Current metrics snapshot
    smartsell track 42 view                 # Record a view / share / click
    smartsell watch 42 --interval 5         # Follow metrics via polling
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import sys
from typing import Optional

import click
import httpx

from smartsell import __version__
from smartsell.client.poller import MetricsPoller
from smartsell.config import settings
from smartsell.schemas.listing import ListingMetricsRead

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _api_url() -> str:
    return settings.api_url.rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the SmartSell backend."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Offloads to a thread when an event loop is already running
    (e.g. CliRunner invoked from an async test).
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _fail(resp: httpx.Response) -> None:
    try:
        detail = resp.json().get("detail", resp.text)
    except ValueError:
        detail = resp.text
    click.secho(f"Error {resp.status_code}: {detail}", fg="red", err=True)
    sys.exit(1)


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k, "-"))[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


def _metrics_line(m: ListingMetricsRead) -> str:
    return (
        f"listing #{m.listing_id}: "
        f"views={m.views} shares={m.shares} clicks={m.clicks} "
        f"(updated {m.last_updated.isoformat()})"
    )


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="smartsell")
def main():
    """SmartSell: marketplace listings with live metrics."""


# ---------------------------------------------------------------------------
# smartsell listings
# ---------------------------------------------------------------------------


@main.command()
@click.option("--limit", "-n", default=50, show_default=True, help="Max listings to show")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def listings(limit: int, as_json: bool):
    """List listings, oldest first."""
    _run(_listings_impl(limit, as_json))


async def _listings_impl(limit: int, as_json: bool):
    async with _client() as c:
        r = await c.get("/api/v1/listings", params={"limit": limit})
        if r.is_error:
            _fail(r)
        rows = r.json()

    if as_json:
        click.echo(_pretty_json(rows))
        return
    if not rows:
        click.echo("No listings yet.")
        return
    _print_table(rows, [("ID", "id", 6), ("Title", "title", 40), ("Price", "price", 10)])


# ---------------------------------------------------------------------------
# smartsell metrics / track
# ---------------------------------------------------------------------------


@main.command()
@click.argument("listing_id", type=int)
def metrics(listing_id: int):
    """Show the current metrics snapshot for LISTING_ID."""
    _run(_metrics_impl(listing_id))


async def _metrics_impl(listing_id: int):
    async with _client() as c:
        r = await c.get(f"/api/v1/listings/{listing_id}/metrics")
        if r.is_error:
            _fail(r)
    click.echo(_metrics_line(ListingMetricsRead.model_validate(r.json())))


@main.command()
@click.argument("listing_id", type=int)
@click.argument("event", type=click.Choice(["view", "share", "click"]))
def track(listing_id: int, event: str):
    """Record a view, share or click on LISTING_ID."""
    _run(_track_impl(listing_id, event))


async def _track_impl(listing_id: int, event: str):
    async with _client() as c:
        r = await c.post(f"/api/v1/listings/{listing_id}/{event}")
        if r.is_error:
            _fail(r)
    click.echo(_metrics_line(ListingMetricsRead.model_validate(r.json())))


# ---------------------------------------------------------------------------
# smartsell watch
# ---------------------------------------------------------------------------


@main.command()
@click.argument("listing_id", type=int)
@click.option(
    "--interval", "-i",
    type=float,
    default=None,
    help="Seconds between polls (default: SMARTSELL_METRICS_POLL_INTERVAL)",
)
@click.option("--count", "-c", type=int, default=None, help="Stop after N polls")
def watch(listing_id: int, interval: Optional[float], count: Optional[int]):
    """Follow LISTING_ID's metrics, printing each change."""
    _run(_watch_impl(listing_id, interval or settings.metrics_poll_interval, count))


async def _watch_impl(listing_id: int, interval: float, count: Optional[int]):
    def on_change(snapshot: ListingMetricsRead) -> None:
        click.echo(_metrics_line(snapshot))

    async with _client() as c:
        poller = MetricsPoller(c, listing_id, interval=interval, on_change=on_change)
        await poller.run_loop(max_polls=count)


if __name__ == "__main__":
    main()
