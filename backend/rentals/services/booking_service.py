# backend/rentals/services/booking_service.py
"""
Booking Service for the rentals platform.

Owns the booking lifecycle: creation by residents, approval or denial by the
property's manager (or a super admin), and confirmation by a verified payment.

Every operation takes the caller's identity as an explicit ``Actor``. Status
changes go through ``BookingRepository.transition_status``, a conditional
UPDATE that only applies when the row still holds the status the decision was
based on, so a concurrent manager action and payment callback cannot
overwrite each other.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.exceptions import (
    AuthenticationRequiredException,
    BookingConflictException,
    BookingTransitionException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from ..core.ulid_helper import generate_ulid
from ..models.booking import Booking, BookingStatus, can_transition
from ..models.property import Property
from ..principal import Actor
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import BookingCreate
from .activity_log_service import ENTITY_BOOKING, ActivityLogService
from .base import BaseService
from .pricing_service import PricingService

ACTION_CREATE_BOOKING = "CREATE_BOOKING"
ACTION_UPDATE_BOOKING_STATUS = "UPDATE_BOOKING_STATUS"
ACTION_CANCEL_BOOKING = "CANCEL_BOOKING"
ACTION_CONFIRM_BOOKING_PAYMENT = "CONFIRM_BOOKING_PAYMENT"


class BookingService(BaseService):
    """
    Booking lifecycle operations.

    Policies read from settings:
        price_policy: ``verify`` recomputes ``total_price`` and rejects a
            supplied value that disagrees; ``trust`` stores the caller's value.
        booking_overlap_policy: ``reject`` refuses dates that overlap a
            confirmed booking of the same property, both at creation and when
            a manager confirms; ``allow`` permits double booking.
    """

    def __init__(
        self,
        db: Session,
        *,
        activity_log_service: Optional[ActivityLogService] = None,
        pricing_service: Optional[PricingService] = None,
        config: Optional[Settings] = None,
    ):
        super().__init__(db)
        self.repository = RepositoryFactory.create_booking_repository(db)
        self.property_repository = RepositoryFactory.create_property_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.activity_log_service = activity_log_service or ActivityLogService(db)
        self.pricing_service = pricing_service or PricingService()
        self.settings = config or default_settings

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @BaseService.measure_operation("create_booking")
    def create_booking(self, actor: Optional[Actor], data: BookingCreate) -> Booking:
        """
        Create a PENDING booking for the requesting resident.

        Raises:
            AuthenticationRequiredException: no actor, or the actor has no account
            NotFoundException: the property does not exist
            ValidationException: bad dates, guest count or price
            BookingConflictException: dates overlap a confirmed booking
        """
        if actor is None:
            raise AuthenticationRequiredException(login_url=self.settings.login_path)
        if not self.user_repository.exists(id=actor.user_id):
            raise AuthenticationRequiredException(
                "Your session does not match an account; please sign in again",
                login_url=self.settings.login_path,
            )

        listing = self.property_repository.get_by_id(data.property_id)
        if listing is None:
            raise NotFoundException(
                "Property not found",
                code="PROPERTY_NOT_FOUND",
                details={"property_id": data.property_id},
            )

        self._validate_stay(data)
        total_price = self._resolve_total_price(listing, data)
        self._guard_overlap(listing.id, data.check_in, data.check_out)

        with self.transaction():
            booking = self.repository.create(
                id=generate_ulid(),
                property_id=listing.id,
                user_id=actor.user_id,
                check_in=data.check_in,
                check_out=data.check_out,
                guests=data.guests,
                total_price=total_price,
                status=BookingStatus.PENDING.value,
                message=data.message,
                phone=data.phone,
                created_at=datetime.now(timezone.utc),
            )
            self.activity_log_service.record(
                user_id=actor.user_id,
                action=ACTION_CREATE_BOOKING,
                entity_type=ENTITY_BOOKING,
                entity_id=booking.id,
                details=(
                    f"Requested {listing.title} from {data.check_in.isoformat()} "
                    f"to {data.check_out.isoformat()} for {data.guests} guest(s)"
                ),
            )

        self.log_operation(
            "create_booking",
            booking_id=booking.id,
            property_id=listing.id,
            user_id=actor.user_id,
        )
        return booking

    @BaseService.measure_operation("update_booking_status")
    def update_booking_status(
        self,
        booking_id: str,
        new_status: BookingStatus,
        actor: Optional[Actor],
    ) -> Booking:
        """
        Approve or deny a booking as its property's manager or a super admin.

        Raises:
            AuthenticationRequiredException: no actor
            NotFoundException: unknown booking
            ForbiddenException: actor neither manages the property nor is a super admin
            BookingTransitionException: the move is not allowed from the current status
            BookingConflictException: confirming would double-book the property
        """
        if actor is None:
            raise AuthenticationRequiredException(login_url=self.settings.login_path)

        booking = self._get_booking_or_404(booking_id)
        if not self._can_manage(actor, booking):
            self.logger.warning(
                "Rejected status change on booking %s by user %s", booking_id, actor.user_id
            )
            raise ForbiddenException(
                "Only the property manager or an administrator can update this booking",
                code="NOT_PROPERTY_MANAGER",
                details={"booking_id": booking_id},
            )

        target = BookingStatus(new_status)
        current = BookingStatus(booking.status)
        if not can_transition(current, target):
            raise BookingTransitionException(booking_id, current.value, target.value)

        if target == BookingStatus.CONFIRMED:
            self.ensure_dates_available(booking)

        with self.transaction():
            self._apply_transition(booking, current, target, changed_by_id=actor.user_id)
            self.activity_log_service.record(
                user_id=actor.user_id,
                action=ACTION_UPDATE_BOOKING_STATUS,
                entity_type=ENTITY_BOOKING,
                entity_id=booking.id,
                details=f"Status changed from {current.value} to {target.value}",
            )

        self.log_operation(
            "update_booking_status",
            booking_id=booking.id,
            from_status=current.value,
            to_status=target.value,
            actor_id=actor.user_id,
        )
        return self.repository.refresh(booking)

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(self, booking_id: str, actor: Optional[Actor]) -> Booking:
        """
        Let a resident withdraw their own request while it is still PENDING.

        Confirmed stays are cancelled by the property manager through
        ``update_booking_status``.
        """
        if actor is None:
            raise AuthenticationRequiredException(login_url=self.settings.login_path)

        booking = self._get_booking_or_404(booking_id)
        if booking.user_id != actor.user_id:
            raise ForbiddenException(
                "You can only cancel your own bookings",
                code="NOT_BOOKING_OWNER",
                details={"booking_id": booking_id},
            )

        current = BookingStatus(booking.status)
        if current == BookingStatus.CONFIRMED:
            raise ConflictException(
                "Confirmed bookings must be cancelled by the property manager",
                code="BOOKING_ALREADY_CONFIRMED",
                details={"booking_id": booking_id},
            )
        if not can_transition(current, BookingStatus.CANCELLED):
            raise BookingTransitionException(
                booking_id, current.value, BookingStatus.CANCELLED.value
            )

        with self.transaction():
            self._apply_transition(
                booking, current, BookingStatus.CANCELLED, changed_by_id=actor.user_id
            )
            self.activity_log_service.record(
                user_id=actor.user_id,
                action=ACTION_CANCEL_BOOKING,
                entity_type=ENTITY_BOOKING,
                entity_id=booking.id,
                details="Cancelled by resident",
            )

        self.log_operation("cancel_booking", booking_id=booking.id, actor_id=actor.user_id)
        return self.repository.refresh(booking)

    @BaseService.measure_operation("mark_confirmed_by_payment")
    def mark_confirmed_by_payment(self, booking_id: str, actor: Optional[Actor] = None) -> Booking:
        """
        Confirm a booking after its payment was verified.

        Idempotent: an already CONFIRMED booking is returned unchanged apart
        from recording ``paid_at`` the first time a payment is seen. A
        CANCELLED booking is never resurrected.

        Raises:
            NotFoundException: unknown booking
            BookingTransitionException: the booking is CANCELLED
            BookingConflictException: a PENDING booking overlaps a confirmed one
        """
        booking = self._get_booking_or_404(booking_id)
        current = BookingStatus(booking.status)
        if current == BookingStatus.CANCELLED:
            raise BookingTransitionException(
                booking_id, current.value, BookingStatus.CONFIRMED.value
            )
        if current == BookingStatus.PENDING:
            self.ensure_dates_available(booking)

        actor_id = actor.user_id if actor else None
        now = datetime.now(timezone.utc)
        details: Optional[str] = None

        with self.transaction():
            confirmed = False
            if current == BookingStatus.PENDING:
                confirmed = self.repository.transition_status(
                    booking_id,
                    [BookingStatus.PENDING],
                    BookingStatus.CONFIRMED,
                    changed_by_id=actor_id,
                    paid_at=now,
                )
                if confirmed:
                    details = "Booking confirmed by verified payment"
                else:
                    # Lost a race; decide again on the fresh status.
                    current = BookingStatus(self.repository.refresh(booking).status)
                    if current == BookingStatus.CANCELLED:
                        raise BookingTransitionException(
                            booking_id, current.value, BookingStatus.CONFIRMED.value
                        )

            if not confirmed and self.repository.record_payment(booking_id, now):
                details = "Payment recorded for confirmed booking"

            if details:
                self.activity_log_service.record(
                    user_id=actor_id,
                    action=ACTION_CONFIRM_BOOKING_PAYMENT,
                    entity_type=ENTITY_BOOKING,
                    entity_id=booking_id,
                    details=details,
                )

        booking = self.repository.refresh(booking)
        if details:
            self.log_operation("mark_confirmed_by_payment", booking_id=booking_id)
        else:
            self.logger.info("Booking %s already confirmed and paid; nothing to do", booking_id)
        return booking

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_booking_for_actor(self, booking_id: str, actor: Optional[Actor]) -> Booking:
        """Return a booking visible to its resident, the property manager or a super admin."""
        if actor is None:
            raise AuthenticationRequiredException(login_url=self.settings.login_path)

        booking = self._get_booking_or_404(booking_id)
        if booking.user_id != actor.user_id and not self._can_manage(actor, booking):
            raise ForbiddenException(
                "You do not have access to this booking",
                code="BOOKING_ACCESS_DENIED",
                details={"booking_id": booking_id},
            )
        return booking

    def list_bookings_for_resident(self, actor: Optional[Actor]) -> List[Booking]:
        if actor is None:
            raise AuthenticationRequiredException(login_url=self.settings.login_path)
        return self.repository.list_for_user(actor.user_id)

    def list_bookings_for_manager(
        self,
        actor: Optional[Actor],
        *,
        status: Optional[BookingStatus] = None,
        limit: Optional[int] = None,
    ) -> List[Booking]:
        """Bookings on the actor's properties; super admins see every property."""
        manager_id = self._manager_scope(actor)
        return self.repository.list_for_manager(manager_id, status=status, limit=limit)

    def get_manager_stats(self, actor: Optional[Actor]) -> dict:
        """Dashboard figures: listings, pending requests and confirmed revenue."""
        manager_id = self._manager_scope(actor)
        return {
            "property_count": self.property_repository.count_for_manager(manager_id),
            "pending_bookings": self.repository.count_for_manager(
                manager_id, BookingStatus.PENDING
            ),
            "confirmed_revenue": self.repository.sum_confirmed_revenue(manager_id),
        }

    def get_property_booked_ranges(self, property_id: str) -> List[Tuple[date, date]]:
        """Dates held by pending or confirmed bookings, for the availability calendar."""
        if not self.property_repository.exists(id=property_id):
            raise NotFoundException(
                "Property not found",
                code="PROPERTY_NOT_FOUND",
                details={"property_id": property_id},
            )
        return self.repository.get_booked_ranges(property_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_booking_or_404(self, booking_id: str) -> Booking:
        booking = self.repository.get_with_property(booking_id)
        if booking is None:
            raise NotFoundException(
                "Booking not found",
                code="BOOKING_NOT_FOUND",
                details={"booking_id": booking_id},
            )
        return booking

    def ensure_dates_available(self, booking: Booking) -> None:
        """
        Refuse to confirm ``booking`` while its dates overlap another confirmed
        stay on the same property. No-op under the ``allow`` overlap policy.

        Raises:
            BookingConflictException: the dates are already taken
        """
        self._guard_overlap(
            booking.property_id,
            booking.check_in,
            booking.check_out,
            exclude_booking_id=booking.id,
        )

    @staticmethod
    def _can_manage(actor: Actor, booking: Booking) -> bool:
        if actor.is_super_admin:
            return True
        listing: Optional[Property] = booking.listing
        return listing is not None and listing.manager_id == actor.user_id

    def _manager_scope(self, actor: Optional[Actor]) -> Optional[str]:
        if actor is None:
            raise AuthenticationRequiredException(login_url=self.settings.login_path)
        if actor.is_super_admin:
            return None
        if actor.is_manager:
            return actor.user_id
        raise ForbiddenException(
            "Manager access required",
            code="MANAGER_ROLE_REQUIRED",
        )

    def _apply_transition(
        self,
        booking: Booking,
        current: BookingStatus,
        target: BookingStatus,
        *,
        changed_by_id: Optional[str],
    ) -> None:
        changed = self.repository.transition_status(
            booking.id, [current], target, changed_by_id=changed_by_id
        )
        if not changed:
            latest = self.repository.refresh(booking).status
            self.logger.warning(
                "Booking %s moved to %s before %s could be applied", booking.id, latest, target.value
            )
            raise BookingTransitionException(booking.id, latest, target.value)

    @staticmethod
    def _validate_stay(data: BookingCreate) -> None:
        if data.check_out <= data.check_in:
            raise ValidationException(
                "Check-out must be after check-in",
                code="INVALID_DATE_RANGE",
                details={
                    "check_in": data.check_in.isoformat(),
                    "check_out": data.check_out.isoformat(),
                },
            )
        if data.guests < 1:
            raise ValidationException("At least one guest is required", code="INVALID_GUESTS")
        if data.total_price is not None and data.total_price < 0:
            raise ValidationException("Total price cannot be negative", code="INVALID_PRICE")

    def _resolve_total_price(self, listing: Property, data: BookingCreate) -> Decimal:
        quoted = self.pricing_service.quote(listing, data.check_in, data.check_out)
        if data.total_price is None:
            return quoted
        if self.settings.price_policy == "trust":
            return data.total_price
        if abs(data.total_price - quoted) > self.settings.price_tolerance:
            raise ValidationException(
                "Total price does not match the listing rate for these dates",
                code="PRICE_MISMATCH",
                details={"expected": str(quoted), "supplied": str(data.total_price)},
            )
        return quoted

    def _guard_overlap(
        self,
        property_id: str,
        check_in: date,
        check_out: date,
        *,
        exclude_booking_id: Optional[str] = None,
    ) -> None:
        if self.settings.booking_overlap_policy != "reject":
            return
        conflicts = self.repository.find_overlapping(
            property_id,
            check_in,
            check_out,
            exclude_booking_id=exclude_booking_id,
        )
        if conflicts:
            raise BookingConflictException(
                details={
                    "property_id": property_id,
                    "conflicting_booking_ids": [b.id for b in conflicts],
                }
            )
