# backend/rentals/repositories/factory.py
"""
Repository Factory for the rentals platform.

Provides centralized creation of repository instances so services do not
import concrete repository modules directly.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .activity_log_repository import ActivityLogRepository
    from .booking_repository import BookingRepository
    from .payment_repository import PaymentAttemptRepository
    from .property_repository import PropertyRepository
    from .user_repository import UserRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_property_repository(db: Session) -> "PropertyRepository":
        from .property_repository import PropertyRepository

        return PropertyRepository(db)

    @staticmethod
    def create_user_repository(db: Session) -> "UserRepository":
        from .user_repository import UserRepository

        return UserRepository(db)

    @staticmethod
    def create_payment_attempt_repository(db: Session) -> "PaymentAttemptRepository":
        from .payment_repository import PaymentAttemptRepository

        return PaymentAttemptRepository(db)

    @staticmethod
    def create_activity_log_repository(db: Session) -> "ActivityLogRepository":
        from .activity_log_repository import ActivityLogRepository

        return ActivityLogRepository(db)
