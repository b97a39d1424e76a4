# backend/rentals/core/enums.py
"""
Role names shared by the identity layer and the booking service.
"""

from enum import Enum


class RoleName(str, Enum):
    """Roles carried in access tokens."""

    USER = "USER"
    PROPERTY_MANAGER = "PROPERTY_MANAGER"
    SUPER_ADMIN = "SUPER_ADMIN"
