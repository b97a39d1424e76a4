# backend/rentals/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService and PaymentService.

Endpoints:
    POST / - Request a booking (PENDING)
    GET / - Current resident's bookings, newest first
    GET /{booking_id} - Booking details (resident, manager or admin)
    POST /{booking_id}/cancel - Resident withdraws a pending request
    PATCH /{booking_id}/status - Manager/admin approves or denies
    POST /{booking_id}/checkout - Start payment for a booking
"""

import asyncio
from typing import List, NoReturn

from fastapi import APIRouter, Depends, HTTPException, status

from ...api.dependencies import get_booking_service, get_current_actor, get_payment_service
from ...core.exceptions import DomainException
from ...principal import Actor
from ...schemas.booking import BookingCreate, BookingResponse, BookingStatusUpdate
from ...schemas.payment import CheckoutResponse
from ...services.booking_service import BookingService
from ...services.payment_service import PaymentService

router = APIRouter(tags=["bookings-v1"])

ERROR_RESPONSES = {
    401: {"description": "Not authenticated"},
    403: {"description": "Not allowed for this booking"},
    404: {"description": "Booking not found"},
    409: {"description": "Status change not allowed"},
}


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Invalid dates or price"}, **ERROR_RESPONSES},
)
async def create_booking(
    booking_data: BookingCreate,
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Request a stay. The booking starts PENDING until the manager decides."""
    try:
        booking = await asyncio.to_thread(booking_service.create_booking, actor, booking_data)
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("", response_model=List[BookingResponse])
async def list_my_bookings(
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> List[BookingResponse]:
    try:
        bookings = await asyncio.to_thread(booking_service.list_bookings_for_resident, actor)
        return [BookingResponse.model_validate(b) for b in bookings]
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{booking_id}", response_model=BookingResponse, responses=ERROR_RESPONSES)
async def get_booking(
    booking_id: str,
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.get_booking_for_actor, booking_id, actor)
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/cancel", response_model=BookingResponse, responses=ERROR_RESPONSES)
async def cancel_booking(
    booking_id: str,
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.cancel_booking, booking_id, actor)
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/{booking_id}/status", response_model=BookingResponse, responses=ERROR_RESPONSES)
async def update_booking_status(
    booking_id: str,
    update: BookingStatusUpdate,
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """
    Approve (CONFIRMED) or deny (CANCELLED) a booking.

    Requires the property's manager or a super admin.
    """
    try:
        booking = await asyncio.to_thread(
            booking_service.update_booking_status, booking_id, update.status, actor
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{booking_id}/checkout",
    response_model=CheckoutResponse,
    responses={502: {"description": "Payment processor unavailable"}, **ERROR_RESPONSES},
)
async def start_checkout(
    booking_id: str,
    actor: Actor = Depends(get_current_actor),
    payment_service: PaymentService = Depends(get_payment_service),
) -> CheckoutResponse:
    """Open a payment and return the URL the resident should be sent to."""
    try:
        session = await asyncio.to_thread(payment_service.start_checkout, booking_id, actor)
        return CheckoutResponse(
            booking_id=session.booking_id,
            reference=session.reference,
            authorization_url=session.authorization_url,
            access_code=session.access_code,
            amount=session.amount,
            currency=session.currency,
            mode=session.mode,
        )
    except DomainException as e:
        handle_domain_exception(e)
