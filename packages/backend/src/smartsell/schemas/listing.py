"""Pydantic schemas for listings, metrics and shipping quotes.

Field names are snake_case in Python and camelCase on the wire
(`listingId`, `lastUpdated`), which is what the browser client reads.
Both spellings are accepted on input.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ─── Listings ────────────────────────────────────────────

class ListingCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field(..., min_length=1)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    image_url: str = Field(..., min_length=1)
    weight: Decimal = Field(default=Decimal("0"), ge=0)
    width: Decimal = Field(default=Decimal("0"), ge=0)
    height: Decimal = Field(default=Decimal("0"), ge=0)
    length: Decimal = Field(default=Decimal("0"), ge=0)
    requires_shipping: bool = True
    shipping_from_zip: Optional[str] = Field(None, pattern=r"^\d{5}$")
    seller_id: Optional[int] = None


class ListingRead(CamelModel):
    id: int
    title: str
    description: str
    price: Decimal
    image_url: str
    weight: Decimal
    width: Decimal
    height: Decimal
    length: Decimal
    requires_shipping: bool
    shipping_from_zip: Optional[str]
    seller_id: Optional[int]
    created_at: datetime


# ─── Metrics ─────────────────────────────────────────────

class ListingMetricsRead(CamelModel):
    """Full metrics snapshot for one listing. Always pushed whole, never as a delta."""
    listing_id: int
    views: int = Field(..., ge=0)
    shares: int = Field(..., ge=0)
    clicks: int = Field(..., ge=0)
    last_updated: datetime


# ─── Uploads ─────────────────────────────────────────────

class UploadRead(BaseModel):
    url: str


# ─── Shipping ────────────────────────────────────────────

class ShippingOption(BaseModel):
    service: str
    rate: float


class ShippingQuote(BaseModel):
    economy: ShippingOption
    standard: ShippingOption
    expedited: ShippingOption
