"""
Database models for the rentals platform.

The booking core owns Booking, PaymentAttempt and ActivityLog. User and
Property rows belong to the identity provider and listing store; they are
mapped here so the booking core can read them.
"""

from .activity_log import ActivityLog
from .booking import ALLOWED_TRANSITIONS, Booking, BookingStatus, can_transition
from .payment import PaymentAttempt, PaymentAttemptStatus
from .property import BillingPeriod, Property
from .user import User

__all__ = [
    "ActivityLog",
    "ALLOWED_TRANSITIONS",
    "BillingPeriod",
    "Booking",
    "BookingStatus",
    "PaymentAttempt",
    "PaymentAttemptStatus",
    "Property",
    "User",
    "can_transition",
]
