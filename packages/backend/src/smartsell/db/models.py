"""SQLAlchemy ORM models, single source of truth for the database schema.

Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. Alembic migrations mirror these models.

Key points:
- Integer primary keys (listing ids travel over the wire as plain ints)
- One ListingMetrics row per listing, enforced by a unique listing_id
- Portable column types so the same models run on Postgres and SQLite
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    true,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Counter columns that the metrics store may increment.
METRIC_FIELDS = ("views", "shares", "clicks")


class Listing(Base):
    """A single for-sale item.

    Dimensions and origin ZIP feed the shipping quote; everything else is
    what the seller typed (or accepted from the AI draft).
    """

    __tablename__ = "listings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    weight: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0, server_default="0")
    width: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0, server_default="0")
    height: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0, server_default="0")
    length: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0, server_default="0")
    requires_shipping: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=true()
    )
    shipping_from_zip: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    seller_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    metrics: Mapped[Optional["ListingMetrics"]] = relationship(
        back_populates="listing", uselist=False
    )


class ListingMetrics(Base):
    """Durable view/share/click counters for one listing.

    Rows are created lazily (first fetch or first increment) and only ever
    mutated through an atomic `counter = counter + 1` update. last_updated
    moves on creation and on every increment, nowhere else.
    """

    __tablename__ = "listing_metrics"
    __table_args__ = (
        UniqueConstraint("listing_id", name="uq_listing_metrics_listing_id"),
        CheckConstraint("views >= 0", name="ck_listing_metrics_views"),
        CheckConstraint("shares >= 0", name="ck_listing_metrics_shares"),
        CheckConstraint("clicks >= 0", name="ck_listing_metrics_clicks"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    listing_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("listings.id", ondelete="CASCADE"),
        nullable=False,
    )
    views: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    shares: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    clicks: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    listing: Mapped["Listing"] = relationship(back_populates="metrics")
