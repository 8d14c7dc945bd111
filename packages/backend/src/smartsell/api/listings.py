"""Listing, upload and shipping API routes.

Routes translate HTTP to service calls and map service errors to status
codes; the services hold the logic.
"""

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from smartsell.config import settings
from smartsell.db.engine import get_db
from smartsell.schemas.listing import (
    ListingCreate,
    ListingRead,
    ShippingQuote,
    UploadRead,
)
from smartsell.services.listing_service import ListingService
from smartsell.services.shipping import ShippingUnavailableError, quote_for_listing
from smartsell.services.upload_service import UploadRejectedError, image_to_data_url

router = APIRouter()


def _svc(db: AsyncSession = Depends(get_db)) -> ListingService:
    return ListingService(db)


# ─── Listings ───────────────────────────────────────────

@router.post("/listings", response_model=ListingRead, status_code=201)
async def create_listing(body: ListingCreate, svc: ListingService = Depends(_svc)):
    """Create a listing and its zeroed metrics record."""
    return await svc.create_listing(body)


@router.get("/listings", response_model=list[ListingRead])
async def list_listings(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    svc: ListingService = Depends(_svc),
):
    """All listings, oldest first."""
    return await svc.list_listings(limit=limit, offset=offset)


@router.get("/listings/{listing_id}", response_model=ListingRead)
async def get_listing(listing_id: int, svc: ListingService = Depends(_svc)):
    listing = await svc.get_listing(listing_id)
    if not listing:
        raise HTTPException(status_code=404, detail="Listing not found")
    return listing


# ─── Shipping ───────────────────────────────────────────

@router.get("/listings/{listing_id}/shipping", response_model=ShippingQuote)
async def get_shipping_quote(
    listing_id: int,
    to_zip: str = Query(..., alias="toZip", pattern=r"^\d{5}$"),
    svc: ListingService = Depends(_svc),
):
    """Economy / standard / expedited rates to a destination ZIP."""
    listing = await svc.get_listing(listing_id)
    if not listing:
        raise HTTPException(status_code=404, detail="Listing not found")
    try:
        return quote_for_listing(listing, to_zip)
    except ShippingUnavailableError as e:
        raise HTTPException(status_code=422, detail=str(e))


# ─── Uploads ────────────────────────────────────────────

@router.post("/upload", response_model=UploadRead)
async def upload_image(image: UploadFile | None = File(None)):
    """Accept one image and return it inline as a data URL."""
    if image is None:
        raise HTTPException(status_code=400, detail="No file uploaded")

    # One byte past the limit is enough to detect an oversize file.
    data = await image.read(settings.upload_max_bytes + 1)
    try:
        url = image_to_data_url(image.content_type, data, settings.upload_max_bytes)
    except UploadRejectedError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return UploadRead(url=url)
