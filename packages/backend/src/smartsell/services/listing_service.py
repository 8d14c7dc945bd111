"""Listing service: create, read and list marketplace listings.

A new listing gets its zeroed metrics row in the same transaction, so the
metrics card never has to wait for a first view to exist.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from smartsell.db.models import Listing, ListingMetrics, utcnow
from smartsell.schemas.listing import ListingCreate


class ListingService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_listing(self, data: ListingCreate) -> Listing:
        listing = Listing(**data.model_dump())
        self.db.add(listing)
        await self.db.flush()  # get auto-generated ID

        self.db.add(
            ListingMetrics(
                listing_id=listing.id,
                views=0,
                shares=0,
                clicks=0,
                last_updated=utcnow(),
            )
        )
        await self.db.commit()
        return listing

    async def get_listing(self, listing_id: int) -> Optional[Listing]:
        result = await self.db.execute(
            select(Listing).where(Listing.id == listing_id)
        )
        return result.scalars().first()

    async def list_listings(self, limit: int = 100, offset: int = 0) -> list[Listing]:
        result = await self.db.execute(
            select(Listing)
            .order_by(Listing.created_at, Listing.id)
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())
