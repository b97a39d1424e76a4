"""Pydantic request and response models for the rentals API."""

from .booking import (
    BookedRange,
    BookedRangesResponse,
    BookingCreate,
    BookingResponse,
    BookingStatusUpdate,
    ManagerStatsResponse,
)
from .payment import CheckoutResponse

__all__ = [
    "BookedRange",
    "BookedRangesResponse",
    "BookingCreate",
    "BookingResponse",
    "BookingStatusUpdate",
    "CheckoutResponse",
    "ManagerStatsResponse",
]
