"""Shipping quotes from parcel dimensions and ZIP-code distance.

Billable weight is the larger of actual weight and dimensional weight
(L x W x H / 139). Faster tiers are fixed multiples of the economy rate.
"""

from smartsell.db.models import Listing
from smartsell.schemas.listing import ShippingOption, ShippingQuote

DIMENSIONAL_DIVISOR = 139
BASE_RATE = 4.99
PER_POUND = 0.55
PER_DISTANCE_UNIT = 0.12

# (tier, service label, multiplier over economy)
TIERS = (
    ("economy", "Economy Shipping (5-7 business days)", 1.0),
    ("standard", "Standard Shipping (3-5 business days)", 1.5),
    ("expedited", "Expedited Shipping (1-3 business days)", 2.2),
)


class ShippingUnavailableError(Exception):
    """Raised when a listing has no shipping origin or is pickup-only."""
    pass


def zip_distance(from_zip: str, to_zip: str) -> float:
    """Rough distance proxy between two ZIP codes, clamped to [1, 30]."""
    difference = abs(int(from_zip) - int(to_zip))
    return min(max(difference / 100, 1), 30)


def calculate_shipping_rate(
    weight: float,
    length: float,
    width: float,
    height: float,
    distance: float,
) -> ShippingQuote:
    dimensional_weight = (length * width * height) / DIMENSIONAL_DIVISOR
    billable_weight = max(weight, dimensional_weight)
    economy = BASE_RATE + billable_weight * PER_POUND + distance * PER_DISTANCE_UNIT

    options = {
        tier: ShippingOption(service=label, rate=round(multiplier * economy, 2))
        for tier, label, multiplier in TIERS
    }
    return ShippingQuote(**options)


def quote_for_listing(listing: Listing, to_zip: str) -> ShippingQuote:
    if not listing.requires_shipping:
        raise ShippingUnavailableError("Listing does not require shipping")
    if not listing.shipping_from_zip:
        raise ShippingUnavailableError("Listing has no shipping origin ZIP")

    return calculate_shipping_rate(
        weight=float(listing.weight or 0),
        length=float(listing.length or 0),
        width=float(listing.width or 0),
        height=float(listing.height or 0),
        distance=zip_distance(listing.shipping_from_zip, to_zip),
    )
