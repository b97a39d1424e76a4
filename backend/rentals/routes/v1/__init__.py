# backend/rentals/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import bookings, manager, payments, properties

__all__ = ["bookings", "manager", "payments", "properties"]
