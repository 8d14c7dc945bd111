"""Listing metrics API routes.

GET returns the snapshot (creating a zeroed one on first touch). The three
POST routes bump one counter atomically, then push the new snapshot to
every WebSocket subscriber of that listing before responding.

A broadcast problem never fails the request; a store problem always does,
and in that case no broadcast is attempted.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from smartsell.db.engine import get_db
from smartsell.realtime.hub import MetricsHub
from smartsell.schemas.listing import ListingMetricsRead
from smartsell.services.metrics_service import (
    ListingNotFoundError,
    MetricsService,
    MetricsStoreError,
)

logger = structlog.get_logger()
router = APIRouter()


def _svc(db: AsyncSession = Depends(get_db)) -> MetricsService:
    return MetricsService(db)


def get_metrics_hub(request: Request) -> MetricsHub:
    """The process-wide hub built by create_app()."""
    return request.app.state.metrics_hub


@router.get("/listings/{listing_id}/metrics", response_model=ListingMetricsRead)
async def get_listing_metrics(
    listing_id: int,
    svc: MetricsService = Depends(_svc),
):
    """Current metrics snapshot; also the polling fallback's endpoint."""
    try:
        return await svc.get_or_create(listing_id)
    except ListingNotFoundError:
        raise HTTPException(status_code=404, detail="Listing not found")
    except MetricsStoreError as e:
        logger.error("metrics.fetch_failed", listing_id=listing_id, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to fetch metrics")


async def _track(
    listing_id: int,
    field: str,
    svc: MetricsService,
    hub: MetricsHub,
):
    try:
        metrics = await svc.increment(listing_id, field)
    except ListingNotFoundError:
        raise HTTPException(status_code=404, detail="Listing not found")
    except MetricsStoreError as e:
        logger.error(
            "metrics.increment_failed",
            listing_id=listing_id,
            field=field,
            error=str(e),
        )
        raise HTTPException(status_code=500, detail=f"Failed to track {field}")

    snapshot = ListingMetricsRead.model_validate(metrics)
    await hub.broadcast(listing_id)
    return snapshot


@router.post("/listings/{listing_id}/view", response_model=ListingMetricsRead)
async def track_view(
    listing_id: int,
    svc: MetricsService = Depends(_svc),
    hub: MetricsHub = Depends(get_metrics_hub),
):
    return await _track(listing_id, "views", svc, hub)


@router.post("/listings/{listing_id}/share", response_model=ListingMetricsRead)
async def track_share(
    listing_id: int,
    svc: MetricsService = Depends(_svc),
    hub: MetricsHub = Depends(get_metrics_hub),
):
    return await _track(listing_id, "shares", svc, hub)


@router.post("/listings/{listing_id}/click", response_model=ListingMetricsRead)
async def track_click(
    listing_id: int,
    svc: MetricsService = Depends(_svc),
    hub: MetricsHub = Depends(get_metrics_hub),
):
    return await _track(listing_id, "clicks", svc, hub)
