"""External service integrations for the rentals platform."""

from .paystack_client import FakePaystackClient, PaystackClient, PaystackError

__all__ = ["FakePaystackClient", "PaystackClient", "PaystackError"]
