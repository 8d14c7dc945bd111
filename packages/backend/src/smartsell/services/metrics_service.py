"""Metrics store: durable view/share/click counters per listing.

Every counter change is a single atomic statement:

    UPDATE listing_metrics SET views = views + 1,
        last_updated = CASE WHEN last_updated > :now THEN last_updated ELSE :now END
    WHERE listing_id = :id RETURNING *

so two requests racing on the same listing can never lose an update, and
last_updated never moves backwards even when the later commit read the
clock first.
Rows are created lazily with INSERT ... ON CONFLICT DO NOTHING, which lets
concurrent creators converge on the one row the unique listing_id allows.
"""

from typing import Optional

from sqlalchemy import case, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from smartsell.db.models import METRIC_FIELDS, Listing, ListingMetrics, utcnow


class ListingNotFoundError(Exception):
    """Raised when a listing id is non-positive or has no listing row."""
    pass


class MetricsStoreError(Exception):
    """Raised when the persistence layer fails; the mutation did not apply."""
    pass


class MetricsService:
    """Get-or-create and atomic increment over the listing_metrics table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, listing_id: int) -> Optional[ListingMetrics]:
        """Read the current snapshot without creating one."""
        try:
            result = await self.db.execute(
                select(ListingMetrics)
                .where(ListingMetrics.listing_id == listing_id)
                .execution_options(populate_existing=True)
            )
        except SQLAlchemyError as e:
            raise MetricsStoreError(str(e)) from e
        return result.scalars().first()

    async def get_or_create(self, listing_id: int) -> ListingMetrics:
        """Return the listing's metrics, inserting a zeroed row if absent."""
        try:
            await self._ensure_listing(listing_id)
            await self._insert_if_missing(listing_id)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise MetricsStoreError(str(e)) from e
        metrics = await self.get(listing_id)
        if metrics is None:
            raise ListingNotFoundError(f"Listing {listing_id} not found")
        return metrics

    async def increment(self, listing_id: int, field: str) -> ListingMetrics:
        """Atomically add 1 to `field` and advance last_updated.

        Creates the row first if needed. Both steps share one transaction,
        so a failure leaves no trace.
        """
        if field not in METRIC_FIELDS:
            raise ValueError(f"Unknown metric field: {field!r}")

        column = getattr(ListingMetrics, field)
        now = utcnow()
        last_updated = case(
            (ListingMetrics.last_updated > now, ListingMetrics.last_updated),
            else_=now,
        )
        try:
            await self._ensure_listing(listing_id)
            await self._insert_if_missing(listing_id)
            result = await self.db.execute(
                update(ListingMetrics)
                .where(ListingMetrics.listing_id == listing_id)
                .values({field: column + 1, "last_updated": last_updated})
                .returning(ListingMetrics)
                .execution_options(populate_existing=True)
            )
            metrics = result.scalars().one()
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise MetricsStoreError(str(e)) from e
        return metrics

    async def record_view(self, listing_id: int) -> ListingMetrics:
        return await self.increment(listing_id, "views")

    async def record_share(self, listing_id: int) -> ListingMetrics:
        return await self.increment(listing_id, "shares")

    async def record_click(self, listing_id: int) -> ListingMetrics:
        return await self.increment(listing_id, "clicks")

    # ─── Internals ───────────────────────────────────────

    async def _ensure_listing(self, listing_id: int) -> None:
        if listing_id <= 0:
            raise ListingNotFoundError(f"Listing {listing_id} not found")
        result = await self.db.execute(
            select(Listing.id).where(Listing.id == listing_id)
        )
        if result.scalar_one_or_none() is None:
            raise ListingNotFoundError(f"Listing {listing_id} not found")

    async def _insert_if_missing(self, listing_id: int) -> None:
        dialect = self.db.get_bind().dialect.name
        insert = pg_insert if dialect == "postgresql" else sqlite_insert
        stmt = (
            insert(ListingMetrics)
            .values(
                listing_id=listing_id,
                views=0,
                shares=0,
                clicks=0,
                last_updated=utcnow(),
            )
            .on_conflict_do_nothing(index_elements=["listing_id"])
        )
        await self.db.execute(stmt)
