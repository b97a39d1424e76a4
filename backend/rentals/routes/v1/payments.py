# backend/rentals/routes/v1/payments.py
"""
Payment callback route - API v1

Endpoints:
    GET /verify - Processor redirect target. Takes ``booking_id`` plus either
        the processor ``reference`` or, in mock mode, ``status=success``.
        Always answers with a redirect to the resident's profile carrying
        ``payment=success`` or ``payment=failed``.
"""

import asyncio
import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import RedirectResponse

from ...api.dependencies import get_payment_service
from ...core.config import settings
from ...core.exceptions import DomainException
from ...services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments-v1"])


def _profile_redirect(outcome: str, booking_id: str) -> RedirectResponse:
    query = urlencode({"payment": outcome, "booking_id": booking_id})
    return RedirectResponse(
        url=f"{settings.frontend_url.rstrip('/')}/profile?{query}",
        status_code=status.HTTP_303_SEE_OTHER,
    )


@router.get("/verify", response_class=RedirectResponse, status_code=status.HTTP_303_SEE_OTHER)
async def verify_payment(
    booking_id: str = Query(..., min_length=1),
    reference: Optional[str] = Query(None),
    trxref: Optional[str] = Query(None, description="Paystack's duplicate of reference"),
    status_marker: Optional[str] = Query(None, alias="status"),
    payment_service: PaymentService = Depends(get_payment_service),
) -> RedirectResponse:
    try:
        outcome = await asyncio.to_thread(
            payment_service.confirm_payment,
            booking_id,
            reference=reference or trxref,
            status_marker=status_marker,
        )
    except DomainException as e:
        logger.error("Payment callback for booking %s failed: %s", booking_id, e.message)
        return _profile_redirect("failed", booking_id)
    if not outcome.success:
        logger.info("Payment for booking %s not confirmed: %s", booking_id, outcome.reason)
    return _profile_redirect("success" if outcome.success else "failed", booking_id)
