"""Deterministic stay pricing: nightly rate x nights + fixed service fee."""

from __future__ import annotations

from dataclasses import dataclass

from staybook.domain.intervals import StayInterval
from staybook.domain.models import Listing


@dataclass(frozen=True)
class PriceQuote:
    nights: int
    nightly_price_cents: int
    service_fee_cents: int
    total_cents: int


def quote_stay(listing: Listing, interval: StayInterval, *, service_fee_cents: int) -> PriceQuote:
    """Compute the total price of a stay.

    Computed once at reservation creation and stored; never recomputed.

    Args:
        listing: Listing being booked.
        interval: Valid stay interval.
        service_fee_cents: Fixed fee added once per reservation.

    Returns:
        PriceQuote with the breakdown and total.
    """
    stay_nights = interval.nights
    total = listing.nightly_price_cents * stay_nights + service_fee_cents
    return PriceQuote(
        nights=stay_nights,
        nightly_price_cents=listing.nightly_price_cents,
        service_fee_cents=service_fee_cents,
        total_cents=total,
    )
