# backend/rentals/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.config import settings
from ...integrations import FakePaystackClient, PaystackClient
from ...services.booking_service import BookingService
from ...services.payment_service import PaymentService
from .database import get_db

logger = logging.getLogger(__name__)


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    return BookingService(db)


def get_payment_client() -> PaystackClient:
    """
    Choose the processor client from ``payment_mode``.

    Live mode with a missing key fails loudly; it never degrades to mock.
    """
    logger.info(
        "Payment client selection",
        extra={"site_mode": settings.site_mode, "payment_mode": settings.payment_mode},
    )
    if settings.payment_mode == "mock":
        return FakePaystackClient()
    return PaystackClient(
        secret_key=settings.paystack_secret_key,
        base_url=settings.paystack_api_base,
        timeout=settings.paystack_timeout_seconds,
    )


def get_payment_service(
    db: Session = Depends(get_db),
    client: PaystackClient = Depends(get_payment_client),
    booking_service: BookingService = Depends(get_booking_service),
) -> PaymentService:
    return PaymentService(db, client, booking_service=booking_service)
