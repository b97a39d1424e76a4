# backend/rentals/schemas/payment.py
"""Payment schemas."""

from decimal import Decimal
from typing import Literal

from ._strict_base import StrictModel


class CheckoutResponse(StrictModel):
    """Where to send the resident to complete payment."""

    booking_id: str
    reference: str
    authorization_url: str
    access_code: str | None = None
    amount: Decimal
    currency: str
    mode: Literal["live", "mock"]
