# backend/rentals/models/payment.py
"""
Payment attempt model.

Each checkout opens one attempt with a unique processor reference. A booking
may accumulate several attempts (retries); verification of any of them
confirms the booking at most once.
"""

from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class PaymentAttemptStatus(str, Enum):
    INITIALIZED = "INITIALIZED"  # Row written, processor not yet contacted
    PENDING = "PENDING"  # Resident sent to the authorization URL
    VERIFIED = "VERIFIED"
    FAILED = "FAILED"


class PaymentAttempt(Base):
    __tablename__ = "payment_attempts"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False, index=True)
    reference = Column(String(100), nullable=False, unique=True, index=True)

    amount = Column(Numeric(10, 2), nullable=False, comment="Booking total in major units")
    amount_minor = Column(Integer, nullable=False, comment="Amount sent to the processor")
    currency = Column(String(3), nullable=False)
    payer_email = Column(String(255), nullable=False)
    callback_url = Column(Text, nullable=False)
    authorization_url = Column(Text, nullable=True)
    access_code = Column(String(100), nullable=True)
    mode = Column(String(10), nullable=False)

    status = Column(
        String(20),
        nullable=False,
        default=PaymentAttemptStatus.INITIALIZED.value,
        index=True,
    )
    failure_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    verified_at = Column(DateTime(timezone=True), nullable=True)

    booking = relationship("Booking", back_populates="payment_attempts")

    __table_args__ = (
        CheckConstraint("amount_minor >= 0", name="ck_payment_attempts_amount_non_negative"),
        CheckConstraint("mode IN ('live', 'mock')", name="ck_payment_attempts_mode"),
        CheckConstraint(
            "status IN ('INITIALIZED', 'PENDING', 'VERIFIED', 'FAILED')",
            name="ck_payment_attempts_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<PaymentAttempt {self.reference} {self.status}>"
