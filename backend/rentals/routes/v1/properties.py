# backend/rentals/routes/v1/properties.py
"""
Property availability routes - API v1

Endpoints:
    GET /{property_id}/booked-ranges - Dates held by pending or confirmed bookings

Public: the calendar on a listing page is shown before sign-in.
"""

import asyncio

from fastapi import APIRouter, Depends

from ...api.dependencies import get_booking_service
from ...core.exceptions import DomainException
from ...schemas.booking import BookedRange, BookedRangesResponse
from ...services.booking_service import BookingService
from .bookings import handle_domain_exception

router = APIRouter(tags=["properties-v1"])


@router.get("/{property_id}/booked-ranges", response_model=BookedRangesResponse)
async def get_booked_ranges(
    property_id: str,
    booking_service: BookingService = Depends(get_booking_service),
) -> BookedRangesResponse:
    try:
        ranges = await asyncio.to_thread(booking_service.get_property_booked_ranges, property_id)
        return BookedRangesResponse(
            property_id=property_id,
            ranges=[BookedRange(check_in=start, check_out=end) for start, end in ranges],
        )
    except DomainException as e:
        handle_domain_exception(e)
