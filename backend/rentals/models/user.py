# backend/rentals/models/user.py
"""
User model.

Accounts are created and authenticated by the identity provider. The booking
core only reads them to confirm that a token's subject still exists and to
find the payer email for checkout.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import RoleName
from ..database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=True)
    role = Column(String(32), nullable=False, default=RoleName.USER.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    managed_properties = relationship("Property", back_populates="manager")
    bookings = relationship("Booking", back_populates="user", foreign_keys="Booking.user_id")

    __table_args__ = (
        CheckConstraint(
            "role IN ('USER', 'PROPERTY_MANAGER', 'SUPER_ADMIN')",
            name="ck_users_role",
        ),
    )

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"
