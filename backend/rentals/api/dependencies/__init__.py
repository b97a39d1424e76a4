# backend/rentals/api/dependencies/__init__.py
"""
Central export point for all dependencies.
"""

from .auth import get_current_actor, get_optional_actor
from .database import get_db
from .services import get_booking_service, get_payment_client, get_payment_service

__all__ = [
    # Auth
    "get_current_actor",
    "get_optional_actor",
    # Database
    "get_db",
    # Services
    "get_booking_service",
    "get_payment_client",
    "get_payment_service",
]
