# backend/rentals/services/payment_service.py
"""
Payment Service for the rentals platform.

Bridges bookings to the payment processor. A checkout opens a PaymentAttempt
with a unique reference and sends the resident to the processor's
authorization URL. The processor (or, in mock mode, the fake client)
redirects back to the verify callback, which checks the reference and
confirms the booking through ``BookingService.mark_confirmed_by_payment``.

Processor calls never run inside an open write transaction, and a processor
failure never changes the booking.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
import time
from typing import Literal, Optional
from urllib.parse import urlencode

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.exceptions import (
    AuthenticationRequiredException,
    ConflictException,
    DomainException,
    ForbiddenException,
    NotFoundException,
    PaymentGatewayException,
)
from ..integrations.paystack_client import FakePaystackClient, PaystackClient, PaystackError
from ..models.booking import BookingStatus
from ..models.payment import PaymentAttemptStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..principal import Actor
from ..repositories.factory import RepositoryFactory
from .activity_log_service import ENTITY_BOOKING, ActivityLogService
from .base import BaseService
from .booking_service import BookingService

REFERENCE_PREFIX = "CPH"
ACTION_INITIALIZE_PAYMENT = "INITIALIZE_PAYMENT"
MOCK_SUCCESS_MARKER = "success"
VERIFY_CALLBACK_PATH = "/api/v1/payments/verify"

UNVERIFIED = (
    PaymentAttemptStatus.INITIALIZED,
    PaymentAttemptStatus.PENDING,
    PaymentAttemptStatus.FAILED,
)


@dataclass(frozen=True)
class PaymentInitialization:
    authorization_url: str
    reference: str
    access_code: Optional[str] = None


@dataclass(frozen=True)
class CheckoutSession:
    booking_id: str
    reference: str
    authorization_url: str
    access_code: Optional[str]
    amount: Decimal
    currency: str
    mode: Literal["live", "mock"]


@dataclass(frozen=True)
class PaymentOutcome:
    """Result of a payment callback; ``reason`` is safe to show the resident."""

    success: bool
    reason: str
    booking_id: str
    reference: Optional[str] = None
    booking_status: Optional[str] = None


def build_reference(booking_id: str, now_ms: Optional[int] = None) -> str:
    """``CPH-<bookingId>-<epoch milliseconds>``"""
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{REFERENCE_PREFIX}-{booking_id}-{timestamp}"


class PaymentService(BaseService):
    """
    Payment gateway adapter.

    The mode is fixed by the injected client: ``FakePaystackClient`` means mock
    mode, anything else talks to the live processor. The client is chosen from
    the explicit ``payment_mode`` setting, never from whether a key is present.
    """

    def __init__(
        self,
        db: Session,
        client: PaystackClient,
        *,
        booking_service: Optional[BookingService] = None,
        activity_log_service: Optional[ActivityLogService] = None,
        config: Optional[Settings] = None,
    ):
        super().__init__(db)
        self.client = client
        self.mode: Literal["live", "mock"] = (
            "mock" if isinstance(client, FakePaystackClient) else "live"
        )
        self.settings = config or default_settings
        self.activity_log_service = activity_log_service or ActivityLogService(db)
        self.booking_service = booking_service or BookingService(
            db, activity_log_service=self.activity_log_service, config=self.settings
        )
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.attempt_repository = RepositoryFactory.create_payment_attempt_repository(db)

    # ------------------------------------------------------------------
    # Gateway adapter
    # ------------------------------------------------------------------

    def to_minor_units(self, amount: Decimal) -> int:
        """Convert a booking amount to the integer the processor expects."""
        converted = (
            Decimal(str(amount))
            * self.settings.payment_exchange_rate
            * self.settings.payment_minor_unit_factor
        )
        return int(converted.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    @BaseService.measure_operation("initialize_transaction")
    def initialize_transaction(
        self,
        amount: Decimal,
        email: str,
        reference: str,
        callback_url: str,
    ) -> PaymentInitialization:
        """
        Open a processor transaction.

        Raises:
            PaymentGatewayException: the processor was unreachable or refused
        """
        amount_minor = self.to_minor_units(amount)
        try:
            data = self.client.initialize_transaction(
                email=email,
                amount_minor=amount_minor,
                reference=reference,
                callback_url=callback_url,
                currency=self.settings.payment_currency,
            )
        except PaystackError as exc:
            self.logger.error("Payment initialization failed for %s: %s", reference, exc)
            raise PaymentGatewayException(
                details={"reference": reference, "status_code": exc.status_code}
            ) from exc

        return PaymentInitialization(
            authorization_url=data["authorization_url"],
            reference=data.get("reference") or reference,
            access_code=data.get("access_code"),
        )

    @BaseService.measure_operation("verify_transaction")
    def verify_transaction(self, reference: str) -> bool:
        """
        True only when the processor reports the transaction as ``success``.

        Network errors and timeouts count as not verified; nothing is retried.
        """
        try:
            data = self.client.verify_transaction(reference)
        except (PaystackError, ValueError) as exc:
            self.logger.warning("Payment verification failed for %s: %s", reference, exc)
            prometheus_metrics.record_payment_verification(self.mode, "error")
            return False

        succeeded = data.get("status") == "success"
        prometheus_metrics.record_payment_verification(
            self.mode, "success" if succeeded else "declined"
        )
        if not succeeded:
            self.logger.info(
                "Processor reported %s for reference %s", data.get("status"), reference
            )
        return succeeded

    # ------------------------------------------------------------------
    # Checkout flow
    # ------------------------------------------------------------------

    def callback_url_for(self, booking_id: str) -> str:
        base = self.settings.callback_base_url.rstrip("/")
        return f"{base}{VERIFY_CALLBACK_PATH}?{urlencode({'booking_id': booking_id})}"

    @BaseService.measure_operation("start_checkout")
    def start_checkout(self, booking_id: str, actor: Optional[Actor]) -> CheckoutSession:
        """
        Open a payment attempt for the resident's own PENDING or CONFIRMED booking.

        Raises:
            AuthenticationRequiredException: no actor, or the actor has no account
            NotFoundException: unknown booking
            ForbiddenException: the booking belongs to someone else
            ConflictException: the booking is cancelled or already paid
            BookingConflictException: the dates were taken by another confirmed stay
            PaymentGatewayException: the processor could not open the transaction
        """
        if actor is None:
            raise AuthenticationRequiredException(login_url=self.settings.login_path)

        booking = self.booking_repository.get_with_property(booking_id)
        if booking is None:
            raise NotFoundException(
                "Booking not found",
                code="BOOKING_NOT_FOUND",
                details={"booking_id": booking_id},
            )
        if booking.user_id != actor.user_id:
            raise ForbiddenException(
                "You can only pay for your own bookings",
                code="NOT_BOOKING_OWNER",
                details={"booking_id": booking_id},
            )
        if booking.status == BookingStatus.CANCELLED.value:
            raise ConflictException(
                "Cancelled bookings cannot be paid",
                code="BOOKING_CANCELLED",
                details={"booking_id": booking_id},
            )
        if booking.paid_at is not None:
            raise ConflictException(
                "This booking has already been paid",
                code="BOOKING_ALREADY_PAID",
                details={"booking_id": booking_id},
            )
        if booking.status == BookingStatus.PENDING.value:
            self.booking_service.ensure_dates_available(booking)

        payer = self.user_repository.get_by_id(actor.user_id)
        if payer is None:
            raise AuthenticationRequiredException(
                "Your session does not match an account; please sign in again",
                login_url=self.settings.login_path,
            )

        amount = Decimal(str(booking.total_price))
        reference = build_reference(booking.id)
        callback_url = self.callback_url_for(booking.id)

        with self.transaction():
            attempt = self.attempt_repository.create(
                booking_id=booking.id,
                reference=reference,
                amount=amount,
                amount_minor=self.to_minor_units(amount),
                currency=self.settings.payment_currency,
                payer_email=payer.email,
                callback_url=callback_url,
                mode=self.mode,
                status=PaymentAttemptStatus.INITIALIZED.value,
            )
            self.activity_log_service.record(
                user_id=actor.user_id,
                action=ACTION_INITIALIZE_PAYMENT,
                entity_type=ENTITY_BOOKING,
                entity_id=booking.id,
                details=f"Payment {reference} opened for {amount} ({self.mode})",
            )

        try:
            initialization = self.initialize_transaction(
                amount, payer.email, reference, callback_url
            )
        except PaymentGatewayException as exc:
            with self.transaction():
                self.attempt_repository.transition(
                    reference,
                    [PaymentAttemptStatus.INITIALIZED],
                    PaymentAttemptStatus.FAILED,
                    failure_reason=exc.message,
                )
            raise

        with self.transaction():
            self.attempt_repository.update(
                attempt.id,
                status=PaymentAttemptStatus.PENDING.value,
                authorization_url=initialization.authorization_url,
                access_code=initialization.access_code,
            )

        self.log_operation(
            "start_checkout", booking_id=booking.id, reference=reference, mode=self.mode
        )
        return CheckoutSession(
            booking_id=booking.id,
            reference=reference,
            authorization_url=initialization.authorization_url,
            access_code=initialization.access_code,
            amount=amount,
            currency=self.settings.payment_currency,
            mode=self.mode,
        )

    @BaseService.measure_operation("confirm_payment")
    def confirm_payment(
        self,
        booking_id: str,
        *,
        reference: Optional[str] = None,
        status_marker: Optional[str] = None,
    ) -> PaymentOutcome:
        """
        Handle the processor callback.

        Never raises for business outcomes: every failure comes back as
        ``PaymentOutcome(success=False, reason=...)`` with the booking untouched,
        so the resident can simply retry.
        """
        if reference:
            return self._confirm_with_reference(booking_id, reference)

        if status_marker == MOCK_SUCCESS_MARKER:
            if self.mode != "mock":
                self.logger.warning(
                    "Ignoring mock success marker for booking %s in live mode", booking_id
                )
                return PaymentOutcome(
                    success=False,
                    reason="A payment reference is required to confirm this payment",
                    booking_id=booking_id,
                )
            return self._confirm_booking(booking_id, None)

        return PaymentOutcome(
            success=False,
            reason="No payment reference was supplied",
            booking_id=booking_id,
        )

    def _confirm_with_reference(self, booking_id: str, reference: str) -> PaymentOutcome:
        attempt = self.attempt_repository.get_by_reference(reference)
        if attempt is None or attempt.booking_id != booking_id:
            self.logger.warning(
                "Payment reference %s does not belong to booking %s", reference, booking_id
            )
            return PaymentOutcome(
                success=False,
                reason="Payment reference not found for this booking",
                booking_id=booking_id,
                reference=reference,
            )

        if attempt.status != PaymentAttemptStatus.VERIFIED.value:
            if not self.verify_transaction(reference):
                with self.transaction():
                    self.attempt_repository.transition(
                        reference,
                        UNVERIFIED,
                        PaymentAttemptStatus.FAILED,
                        failure_reason="Payment not confirmed by processor",
                    )
                return PaymentOutcome(
                    success=False,
                    reason="Payment not confirmed, please retry",
                    booking_id=booking_id,
                    reference=reference,
                )
            with self.transaction():
                self.attempt_repository.transition(
                    reference,
                    UNVERIFIED,
                    PaymentAttemptStatus.VERIFIED,
                    verified_at=datetime.now(timezone.utc),
                )

        return self._confirm_booking(booking_id, reference)

    def _confirm_booking(self, booking_id: str, reference: Optional[str]) -> PaymentOutcome:
        try:
            booking = self.booking_service.mark_confirmed_by_payment(booking_id)
        except DomainException as exc:
            self.logger.error(
                "Verified payment %s could not confirm booking %s: %s",
                reference,
                booking_id,
                exc.message,
            )
            return PaymentOutcome(
                success=False,
                reason=exc.message,
                booking_id=booking_id,
                reference=reference,
            )

        return PaymentOutcome(
            success=True,
            reason="Payment confirmed",
            booking_id=booking_id,
            reference=reference,
            booking_status=booking.status,
        )
