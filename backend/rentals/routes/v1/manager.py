# backend/rentals/routes/v1/manager.py
"""
Property manager dashboard routes - API v1

Endpoints:
    GET /bookings - Bookings on the manager's properties (?status=, ?limit=)
    GET /stats - Listing count, pending requests and confirmed revenue

Super admins see every property.
"""

import asyncio
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ...api.dependencies import get_booking_service, get_current_actor
from ...core.exceptions import DomainException
from ...models.booking import BookingStatus
from ...principal import Actor
from ...schemas.booking import BookingResponse, ManagerStatsResponse
from ...services.booking_service import BookingService
from .bookings import handle_domain_exception

router = APIRouter(tags=["manager-v1"])


@router.get("/bookings", response_model=List[BookingResponse])
async def list_manager_bookings(
    status: Optional[BookingStatus] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=200),
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> List[BookingResponse]:
    try:
        bookings = await asyncio.to_thread(
            booking_service.list_bookings_for_manager, actor, status=status, limit=limit
        )
        return [BookingResponse.model_validate(b) for b in bookings]
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/stats", response_model=ManagerStatsResponse)
async def get_manager_stats(
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> ManagerStatsResponse:
    try:
        stats = await asyncio.to_thread(booking_service.get_manager_stats, actor)
        return ManagerStatsResponse(**stats)
    except DomainException as e:
        handle_domain_exception(e)
