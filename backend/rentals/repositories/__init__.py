# backend/rentals/repositories/__init__.py
"""
Repository layer for data access, separating business logic from queries.

Usage:
    from rentals.repositories import RepositoryFactory

    repository = RepositoryFactory.create_booking_repository(db)
    ranges = repository.get_booked_ranges(property_id)
"""

from .activity_log_repository import ActivityLogRepository
from .base_repository import BaseRepository, IRepository
from .booking_repository import BookingRepository
from .factory import RepositoryFactory
from .payment_repository import PaymentAttemptRepository
from .property_repository import PropertyRepository
from .user_repository import UserRepository

__all__ = [
    "ActivityLogRepository",
    "BaseRepository",
    "BookingRepository",
    "IRepository",
    "PaymentAttemptRepository",
    "PropertyRepository",
    "RepositoryFactory",
    "UserRepository",
]
