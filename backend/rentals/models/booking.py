# backend/rentals/models/booking.py
"""
Booking model for the rentals platform.

A booking is a resident's reservation request against a property for a date
range. It starts PENDING, is approved or denied by the property's manager,
and is confirmed by a verified payment.

Status moves only forward:

    PENDING   -> CONFIRMED | CANCELLED
    CONFIRMED -> CANCELLED
    CANCELLED (terminal)
"""

from enum import Enum
from typing import Dict, FrozenSet

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "PENDING"  # Awaiting manager decision or payment
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"  # Terminal


ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset(),
}


def can_transition(current: BookingStatus | str, target: BookingStatus | str) -> bool:
    """Return True when ``current -> target`` is a legal status change."""
    return BookingStatus(target) in ALLOWED_TRANSITIONS[BookingStatus(current)]


class Booking(Base):
    """
    Reservation of a property by a resident.

    ``total_price`` is stored in the property's currency. ``paid_at`` records the
    first verified payment and is never overwritten.
    """

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    property_id = Column(String(26), ForeignKey("properties.id"), nullable=False)
    user_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)

    check_in = Column(Date, nullable=False)
    check_out = Column(Date, nullable=False)
    guests = Column(Integer, nullable=False, default=1)
    total_price = Column(Numeric(10, 2), nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    message = Column(Text, nullable=True)
    phone = Column(String(50), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    paid_at = Column(DateTime(timezone=True), nullable=True)
    status_changed_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)

    listing = relationship("Property", back_populates="bookings")
    user = relationship("User", foreign_keys=[user_id], back_populates="bookings")
    status_changed_by = relationship("User", foreign_keys=[status_changed_by_id])
    payment_attempts = relationship("PaymentAttempt", back_populates="booking")

    __table_args__ = (
        CheckConstraint("check_out > check_in", name="ck_bookings_dates_ordered"),
        CheckConstraint("guests >= 1", name="ck_bookings_guests_positive"),
        CheckConstraint("total_price >= 0", name="ck_bookings_price_non_negative"),
        CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'CANCELLED')",
            name="ck_bookings_status",
        ),
        Index("ix_bookings_property_dates", "property_id", "check_in", "check_out"),
    )

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    def __repr__(self) -> str:
        return f"<Booking {self.id} {self.check_in}->{self.check_out} {self.status}>"
