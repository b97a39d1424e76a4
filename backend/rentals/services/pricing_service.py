# backend/rentals/services/pricing_service.py
"""
Authoritative stay pricing.

Listings are priced per night, week or month. A stay is charged for its
nights at the listing rate prorated to a night (a week is 7 nights, a month
30), rounded half-up to cents.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict

from ..core.exceptions import ValidationException
from ..models.property import BillingPeriod, Property

NIGHTS_PER_PERIOD: Dict[BillingPeriod, int] = {
    BillingPeriod.PER_NIGHT: 1,
    BillingPeriod.PER_WEEK: 7,
    BillingPeriod.PER_MONTH: 30,
}

CENTS = Decimal("0.01")


class PricingService:
    """Stateless; no database access."""

    def quote(self, listing: Property, check_in: date, check_out: date) -> Decimal:
        nights = (check_out - check_in).days
        if nights <= 0:
            raise ValidationException(
                "Check-out must be after check-in",
                code="INVALID_DATE_RANGE",
                details={"check_in": check_in.isoformat(), "check_out": check_out.isoformat()},
            )
        period = BillingPeriod(listing.billing_period)
        rate = Decimal(str(listing.price))
        total = rate * nights / NIGHTS_PER_PERIOD[period]
        return total.quantize(CENTS, rounding=ROUND_HALF_UP)
