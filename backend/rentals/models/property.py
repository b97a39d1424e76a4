# backend/rentals/models/property.py
"""
Property model.

Listings are maintained by the content store. Bookings reference them to check
existence, resolve the managing user, and price a stay.
"""

from enum import Enum

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class BillingPeriod(str, Enum):
    """Unit the listed price applies to."""

    PER_NIGHT = "PER_NIGHT"
    PER_WEEK = "PER_WEEK"
    PER_MONTH = "PER_MONTH"


class Property(Base):
    __tablename__ = "properties"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    manager_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    billing_period = Column(String(20), nullable=False, default=BillingPeriod.PER_MONTH.value)
    status = Column(String(20), nullable=False, default="AVAILABLE")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    manager = relationship("User", back_populates="managed_properties")
    bookings = relationship("Booking", back_populates="listing")

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_properties_price_non_negative"),
        CheckConstraint(
            "billing_period IN ('PER_NIGHT', 'PER_WEEK', 'PER_MONTH')",
            name="ck_properties_billing_period",
        ),
    )

    def __repr__(self) -> str:
        return f"<Property {self.id} {self.title!r}>"
