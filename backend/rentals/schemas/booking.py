# backend/rentals/schemas/booking.py
"""
Booking schemas for the rentals platform.

Date ordering and price agreement are checked by BookingService rather than
here, so programmatic callers get the same errors as API callers.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from ..models.booking import BookingStatus
from ._strict_base import StrictModel, StrictRequestModel


class BookingCreate(StrictRequestModel):
    """Resident request to reserve a property for a date range."""

    property_id: str = Field(..., min_length=1, description="Property to book")
    check_in: date = Field(..., description="First night of the stay")
    check_out: date = Field(..., description="Departure date, exclusive")
    guests: int = Field(..., ge=1, le=50)
    total_price: Optional[Decimal] = Field(
        default=None,
        ge=0,
        max_digits=10,
        decimal_places=2,
        description="Price shown to the resident; recomputed server-side",
    )
    message: Optional[str] = Field(default=None, max_length=2000)
    phone: Optional[str] = Field(default=None, max_length=50)


class BookingStatusUpdate(StrictRequestModel):
    status: BookingStatus


class BookingResponse(StrictModel):
    id: str
    property_id: str
    user_id: str
    check_in: date
    check_out: date
    nights: int
    guests: int
    total_price: Decimal
    status: BookingStatus
    message: Optional[str] = None
    phone: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None


class BookedRange(StrictModel):
    check_in: date
    check_out: date


class BookedRangesResponse(StrictModel):
    property_id: str
    ranges: List[BookedRange]


class ManagerStatsResponse(StrictModel):
    property_count: int
    pending_bookings: int
    confirmed_revenue: Decimal
