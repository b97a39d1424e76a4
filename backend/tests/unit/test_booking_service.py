from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import update

from rentals.core.exceptions import (
    AuthenticationRequiredException,
    BookingConflictException,
    BookingTransitionException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from rentals.core.enums import RoleName
from rentals.models.booking import Booking, BookingStatus
from rentals.models.property import BillingPeriod
from rentals.principal import Actor
from rentals.schemas.booking import BookingCreate
from rentals.services.activity_log_service import ENTITY_BOOKING, ActivityLogService
from rentals.services.booking_service import (
    ACTION_CANCEL_BOOKING,
    ACTION_CONFIRM_BOOKING_PAYMENT,
    ACTION_CREATE_BOOKING,
    ACTION_UPDATE_BOOKING_STATUS,
    BookingService,
)

JUNE_1 = date(2026, 6, 1)
JUNE_3 = date(2026, 6, 3)


def actor_for(user) -> Actor:
    return Actor(user_id=user.id, role=RoleName(user.role))


def _request(listing, check_in=JUNE_1, check_out=JUNE_3, **overrides) -> BookingCreate:
    data = {
        "property_id": listing.id,
        "check_in": check_in,
        "check_out": check_out,
        "guests": 2,
    }
    data.update(overrides)
    return BookingCreate(**data)


def _actions(db, booking_id):
    entries = ActivityLogService(db).entries_for(ENTITY_BOOKING, booking_id)
    return sorted(entry.action for entry in entries)


@pytest.fixture
def booking_service(db, test_settings) -> BookingService:
    return BookingService(db, config=test_settings)


@pytest.fixture
def pending_booking(booking_service, resident, listing) -> Booking:
    return booking_service.create_booking(actor_for(resident), _request(listing))


class TestCreateBooking:
    def test_new_booking_is_pending_with_quoted_price(self, db, booking_service, resident, listing):
        before = datetime.now(timezone.utc)

        booking = booking_service.create_booking(actor_for(resident), _request(listing))

        db.refresh(booking)
        assert booking.status == BookingStatus.PENDING.value
        assert booking.user_id == resident.id
        assert booking.property_id == listing.id
        assert booking.total_price == Decimal("400.00")
        assert booking.nights == 2
        assert booking.paid_at is None
        created_at = booking.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        assert created_at >= before - timedelta(seconds=1)
        assert _actions(db, booking.id) == [ACTION_CREATE_BOOKING]

    def test_matching_client_price_is_accepted(self, booking_service, resident, listing):
        booking = booking_service.create_booking(
            actor_for(resident), _request(listing, total_price=Decimal("400.00"))
        )

        assert booking.total_price == Decimal("400.00")

    def test_price_within_tolerance_stores_server_quote(self, booking_service, resident, listing):
        booking = booking_service.create_booking(
            actor_for(resident), _request(listing, total_price=Decimal("399.99"))
        )

        assert booking.total_price == Decimal("400.00")

    def test_mismatched_price_is_rejected_under_verify_policy(
        self, db, booking_service, resident, listing
    ):
        with pytest.raises(ValidationException) as exc_info:
            booking_service.create_booking(
                actor_for(resident), _request(listing, total_price=Decimal("1.00"))
            )

        assert exc_info.value.code == "PRICE_MISMATCH"
        assert exc_info.value.details == {"expected": "400.00", "supplied": "1.00"}
        assert db.query(Booking).count() == 0

    def test_trust_policy_stores_supplied_price(self, db, test_settings, resident, listing):
        service = BookingService(db, config=test_settings.model_copy(update={"price_policy": "trust"}))

        booking = service.create_booking(
            actor_for(resident), _request(listing, total_price=Decimal("123.45"))
        )

        assert booking.total_price == Decimal("123.45")

    def test_weekly_listing_is_prorated(self, booking_service, resident, manager, make_property):
        weekly = make_property(manager, price="700.00", billing_period=BillingPeriod.PER_WEEK)

        booking = booking_service.create_booking(
            actor_for(resident), _request(weekly, JUNE_1, date(2026, 6, 11))
        )

        assert booking.total_price == Decimal("1000.00")

    @pytest.mark.parametrize("check_out", [JUNE_1, date(2026, 5, 30)])
    def test_check_out_must_follow_check_in(self, db, booking_service, resident, listing, check_out):
        with pytest.raises(ValidationException) as exc_info:
            booking_service.create_booking(
                actor_for(resident), _request(listing, JUNE_1, check_out)
            )

        assert exc_info.value.code == "INVALID_DATE_RANGE"
        assert db.query(Booking).count() == 0

    def test_missing_actor_requires_authentication(self, booking_service, listing, test_settings):
        with pytest.raises(AuthenticationRequiredException) as exc_info:
            booking_service.create_booking(None, _request(listing))

        assert exc_info.value.details == {"login_url": test_settings.login_path}

    def test_actor_without_account_requires_authentication(self, booking_service, listing):
        ghost = Actor(user_id="01HZZZZZZZZZZZZZZZZZZZZZZZ", role=RoleName.USER)

        with pytest.raises(AuthenticationRequiredException):
            booking_service.create_booking(ghost, _request(listing))

    def test_unknown_property_is_not_found(self, booking_service, resident, listing):
        data = _request(listing).model_copy(update={"property_id": "missing-property"})

        with pytest.raises(NotFoundException) as exc_info:
            booking_service.create_booking(actor_for(resident), data)

        assert exc_info.value.code == "PROPERTY_NOT_FOUND"

    def test_overlap_with_confirmed_booking_is_rejected(
        self, booking_service, pending_booking, manager, other_resident, listing
    ):
        booking_service.update_booking_status(
            pending_booking.id, BookingStatus.CONFIRMED, actor_for(manager)
        )

        with pytest.raises(BookingConflictException) as exc_info:
            booking_service.create_booking(
                actor_for(other_resident), _request(listing, date(2026, 6, 2), date(2026, 6, 5))
            )

        assert exc_info.value.code == "BOOKING_CONFLICT"
        assert exc_info.value.details["conflicting_booking_ids"] == [pending_booking.id]

    def test_back_to_back_stays_do_not_overlap(
        self, booking_service, pending_booking, manager, other_resident, listing
    ):
        booking_service.update_booking_status(
            pending_booking.id, BookingStatus.CONFIRMED, actor_for(manager)
        )

        booking = booking_service.create_booking(
            actor_for(other_resident), _request(listing, JUNE_3, date(2026, 6, 6))
        )

        assert booking.status == BookingStatus.PENDING.value

    def test_pending_requests_may_overlap(self, booking_service, pending_booking, other_resident, listing):
        booking = booking_service.create_booking(actor_for(other_resident), _request(listing))

        assert booking.id != pending_booking.id

    def test_allow_policy_permits_double_booking(
        self, db, test_settings, booking_service, pending_booking, manager, other_resident, listing
    ):
        booking_service.update_booking_status(
            pending_booking.id, BookingStatus.CONFIRMED, actor_for(manager)
        )
        permissive = BookingService(
            db, config=test_settings.model_copy(update={"booking_overlap_policy": "allow"})
        )

        booking = permissive.create_booking(actor_for(other_resident), _request(listing))

        assert booking.status == BookingStatus.PENDING.value


class TestUpdateBookingStatus:
    def test_manager_confirms_pending_booking(self, db, booking_service, pending_booking, manager):
        booking = booking_service.update_booking_status(
            pending_booking.id, BookingStatus.CONFIRMED, actor_for(manager)
        )

        assert booking.status == BookingStatus.CONFIRMED.value
        assert booking.status_changed_by_id == manager.id
        assert booking.paid_at is None
        assert _actions(db, booking.id) == sorted(
            [ACTION_CREATE_BOOKING, ACTION_UPDATE_BOOKING_STATUS]
        )

    def test_manager_cancels_confirmed_booking(self, booking_service, pending_booking, manager):
        booking_service.update_booking_status(
            pending_booking.id, BookingStatus.CONFIRMED, actor_for(manager)
        )

        booking = booking_service.update_booking_status(
            pending_booking.id, BookingStatus.CANCELLED, actor_for(manager)
        )

        assert booking.status == BookingStatus.CANCELLED.value

    def test_super_admin_can_update_any_booking(self, booking_service, pending_booking, admin):
        booking = booking_service.update_booking_status(
            pending_booking.id, BookingStatus.CANCELLED, actor_for(admin)
        )

        assert booking.status == BookingStatus.CANCELLED.value
        assert booking.status_changed_by_id == admin.id

    @pytest.mark.parametrize("who", ["resident", "other_resident", "other_manager"])
    def test_non_manager_is_forbidden_and_status_unchanged(
        self, request, db, booking_service, pending_booking, who
    ):
        user = request.getfixturevalue(who)

        with pytest.raises(ForbiddenException) as exc_info:
            booking_service.update_booking_status(
                pending_booking.id, BookingStatus.CONFIRMED, actor_for(user)
            )

        assert exc_info.value.code == "NOT_PROPERTY_MANAGER"
        db.refresh(pending_booking)
        assert pending_booking.status == BookingStatus.PENDING.value
        assert _actions(db, pending_booking.id) == [ACTION_CREATE_BOOKING]

    @pytest.mark.parametrize(
        "setup,target",
        [
            ([BookingStatus.CANCELLED], BookingStatus.CONFIRMED),
            ([BookingStatus.CANCELLED], BookingStatus.PENDING),
            ([BookingStatus.CANCELLED], BookingStatus.CANCELLED),
            ([BookingStatus.CONFIRMED], BookingStatus.PENDING),
            ([BookingStatus.CONFIRMED], BookingStatus.CONFIRMED),
            ([], BookingStatus.PENDING),
        ],
    )
    def test_illegal_transitions_are_rejected(
        self, db, booking_service, pending_booking, manager, setup, target
    ):
        for status in setup:
            booking_service.update_booking_status(pending_booking.id, status, actor_for(manager))
        db.refresh(pending_booking)
        before = pending_booking.status

        with pytest.raises(BookingTransitionException) as exc_info:
            booking_service.update_booking_status(pending_booking.id, target, actor_for(manager))

        assert exc_info.value.code == "INVALID_STATUS_TRANSITION"
        assert exc_info.value.details["current_status"] == before
        assert exc_info.value.details["requested_status"] == target.value
        db.refresh(pending_booking)
        assert pending_booking.status == before

    def test_unknown_booking_is_not_found(self, booking_service, manager):
        with pytest.raises(NotFoundException) as exc_info:
            booking_service.update_booking_status(
                "missing", BookingStatus.CONFIRMED, actor_for(manager)
            )

        assert exc_info.value.code == "BOOKING_NOT_FOUND"

    def test_missing_actor_requires_authentication(self, booking_service, pending_booking):
        with pytest.raises(AuthenticationRequiredException):
            booking_service.update_booking_status(pending_booking.id, BookingStatus.CONFIRMED, None)

    def test_confirming_overlapping_request_is_rejected(
        self, db, booking_service, pending_booking, manager, other_resident, listing
    ):
        rival = booking_service.create_booking(actor_for(other_resident), _request(listing))
        booking_service.update_booking_status(
            pending_booking.id, BookingStatus.CONFIRMED, actor_for(manager)
        )

        with pytest.raises(BookingConflictException):
            booking_service.update_booking_status(rival.id, BookingStatus.CONFIRMED, actor_for(manager))

        db.refresh(rival)
        assert rival.status == BookingStatus.PENDING.value

    def test_status_changed_elsewhere_is_not_overwritten(
        self, db, booking_service, pending_booking, manager, monkeypatch
    ):
        repository = booking_service.repository
        original = repository.transition_status

        def cancelled_concurrently(booking_id, *args, **kwargs):
            db.execute(
                update(Booking)
                .where(Booking.id == booking_id)
                .values(status=BookingStatus.CANCELLED.value)
            )
            db.commit()
            return original(booking_id, *args, **kwargs)

        monkeypatch.setattr(repository, "transition_status", cancelled_concurrently)

        with pytest.raises(BookingTransitionException) as exc_info:
            booking_service.update_booking_status(
                pending_booking.id, BookingStatus.CONFIRMED, actor_for(manager)
            )

        assert exc_info.value.details["current_status"] == BookingStatus.CANCELLED.value
        db.refresh(pending_booking)
        assert pending_booking.status == BookingStatus.CANCELLED.value


class TestCancelBooking:
    def test_resident_withdraws_pending_request(self, db, booking_service, pending_booking, resident):
        booking = booking_service.cancel_booking(pending_booking.id, actor_for(resident))

        assert booking.status == BookingStatus.CANCELLED.value
        assert ACTION_CANCEL_BOOKING in _actions(db, booking.id)

    def test_other_resident_cannot_cancel(self, booking_service, pending_booking, other_resident):
        with pytest.raises(ForbiddenException) as exc_info:
            booking_service.cancel_booking(pending_booking.id, actor_for(other_resident))

        assert exc_info.value.code == "NOT_BOOKING_OWNER"

    def test_confirmed_booking_goes_through_manager(
        self, booking_service, pending_booking, resident, manager
    ):
        booking_service.update_booking_status(
            pending_booking.id, BookingStatus.CONFIRMED, actor_for(manager)
        )

        with pytest.raises(ConflictException) as exc_info:
            booking_service.cancel_booking(pending_booking.id, actor_for(resident))

        assert exc_info.value.code == "BOOKING_ALREADY_CONFIRMED"

    def test_cancelling_twice_is_rejected(self, booking_service, pending_booking, resident):
        booking_service.cancel_booking(pending_booking.id, actor_for(resident))

        with pytest.raises(BookingTransitionException):
            booking_service.cancel_booking(pending_booking.id, actor_for(resident))


class TestMarkConfirmedByPayment:
    def test_pending_booking_is_confirmed_and_paid(self, db, booking_service, pending_booking):
        booking = booking_service.mark_confirmed_by_payment(pending_booking.id)

        assert booking.status == BookingStatus.CONFIRMED.value
        assert booking.paid_at is not None
        assert booking.status_changed_by_id is None
        assert ACTION_CONFIRM_BOOKING_PAYMENT in _actions(db, booking.id)

    def test_repeated_confirmation_is_idempotent(self, db, booking_service, pending_booking):
        first = booking_service.mark_confirmed_by_payment(pending_booking.id)
        paid_at = first.paid_at

        second = booking_service.mark_confirmed_by_payment(pending_booking.id)

        assert second.status == BookingStatus.CONFIRMED.value
        assert second.paid_at == paid_at
        assert _actions(db, pending_booking.id).count(ACTION_CONFIRM_BOOKING_PAYMENT) == 1

    def test_manager_confirmed_booking_records_payment_once(
        self, db, booking_service, pending_booking, manager
    ):
        booking_service.update_booking_status(
            pending_booking.id, BookingStatus.CONFIRMED, actor_for(manager)
        )

        booking = booking_service.mark_confirmed_by_payment(pending_booking.id)
        paid_at = booking.paid_at
        again = booking_service.mark_confirmed_by_payment(pending_booking.id)

        assert booking.status == BookingStatus.CONFIRMED.value
        assert booking.status_changed_by_id == manager.id
        assert paid_at is not None
        assert again.paid_at == paid_at
        assert _actions(db, pending_booking.id).count(ACTION_CONFIRM_BOOKING_PAYMENT) == 1

    def test_cancelled_booking_is_never_confirmed(self, db, booking_service, pending_booking, resident):
        booking_service.cancel_booking(pending_booking.id, actor_for(resident))

        with pytest.raises(BookingTransitionException) as exc_info:
            booking_service.mark_confirmed_by_payment(pending_booking.id)

        assert exc_info.value.details["current_status"] == BookingStatus.CANCELLED.value
        db.refresh(pending_booking)
        assert pending_booking.status == BookingStatus.CANCELLED.value
        assert pending_booking.paid_at is None

    def test_cancellation_racing_payment_wins(self, db, booking_service, pending_booking, monkeypatch):
        repository = booking_service.repository
        original = repository.transition_status

        def cancelled_concurrently(booking_id, *args, **kwargs):
            db.execute(
                update(Booking)
                .where(Booking.id == booking_id)
                .values(status=BookingStatus.CANCELLED.value)
            )
            db.commit()
            return original(booking_id, *args, **kwargs)

        monkeypatch.setattr(repository, "transition_status", cancelled_concurrently)

        with pytest.raises(BookingTransitionException):
            booking_service.mark_confirmed_by_payment(pending_booking.id)

        db.refresh(pending_booking)
        assert pending_booking.status == BookingStatus.CANCELLED.value
        assert pending_booking.paid_at is None

    def test_payment_does_not_double_book_confirmed_dates(
        self, db, booking_service, pending_booking, other_resident, listing
    ):
        rival = booking_service.create_booking(
            actor_for(other_resident), _request(listing, date(2026, 6, 2), date(2026, 6, 5))
        )
        booking_service.mark_confirmed_by_payment(pending_booking.id)

        with pytest.raises(BookingConflictException) as exc_info:
            booking_service.mark_confirmed_by_payment(rival.id)

        assert exc_info.value.details["conflicting_booking_ids"] == [pending_booking.id]
        db.refresh(rival)
        assert rival.status == BookingStatus.PENDING.value
        assert rival.paid_at is None
        assert ACTION_CONFIRM_BOOKING_PAYMENT not in _actions(db, rival.id)

    def test_allow_policy_lets_payments_overlap(
        self, db, test_settings, booking_service, pending_booking, other_resident, listing
    ):
        permissive = BookingService(
            db, config=test_settings.model_copy(update={"booking_overlap_policy": "allow"})
        )
        rival = permissive.create_booking(actor_for(other_resident), _request(listing))
        permissive.mark_confirmed_by_payment(pending_booking.id)

        booking = permissive.mark_confirmed_by_payment(rival.id)

        assert booking.status == BookingStatus.CONFIRMED.value

    def test_unknown_booking_is_not_found(self, booking_service):
        with pytest.raises(NotFoundException):
            booking_service.mark_confirmed_by_payment("missing")


class TestQueries:
    def test_resident_sees_own_bookings_newest_first(
        self, booking_service, resident, other_resident, listing
    ):
        first = booking_service.create_booking(actor_for(resident), _request(listing))
        second = booking_service.create_booking(
            actor_for(resident), _request(listing, date(2026, 7, 1), date(2026, 7, 4))
        )
        booking_service.create_booking(actor_for(other_resident), _request(listing))

        bookings = booking_service.list_bookings_for_resident(actor_for(resident))

        assert [b.id for b in bookings] == [second.id, first.id]

    def test_booking_visible_to_owner_manager_and_admin(
        self, booking_service, pending_booking, resident, manager, admin
    ):
        for user in (resident, manager, admin):
            booking = booking_service.get_booking_for_actor(pending_booking.id, actor_for(user))
            assert booking.id == pending_booking.id

    def test_booking_hidden_from_strangers(
        self, booking_service, pending_booking, other_resident, other_manager
    ):
        for user in (other_resident, other_manager):
            with pytest.raises(ForbiddenException):
                booking_service.get_booking_for_actor(pending_booking.id, actor_for(user))

    def test_manager_lists_only_own_properties(
        self, booking_service, pending_booking, manager, other_manager, admin, resident, make_property
    ):
        elsewhere = make_property(other_manager, title="Garden Flat")
        foreign = booking_service.create_booking(actor_for(resident), _request(elsewhere))

        mine = booking_service.list_bookings_for_manager(actor_for(manager))
        everything = booking_service.list_bookings_for_manager(actor_for(admin))

        assert [b.id for b in mine] == [pending_booking.id]
        assert {b.id for b in everything} == {pending_booking.id, foreign.id}

    def test_manager_list_filters_by_status(self, booking_service, pending_booking, manager):
        assert booking_service.list_bookings_for_manager(
            actor_for(manager), status=BookingStatus.CONFIRMED
        ) == []
        pending = booking_service.list_bookings_for_manager(
            actor_for(manager), status=BookingStatus.PENDING
        )
        assert [b.id for b in pending] == [pending_booking.id]

    def test_residents_cannot_use_manager_views(self, booking_service, resident):
        with pytest.raises(ForbiddenException) as exc_info:
            booking_service.list_bookings_for_manager(actor_for(resident))

        assert exc_info.value.code == "MANAGER_ROLE_REQUIRED"

    def test_manager_stats(self, booking_service, pending_booking, manager, other_resident, listing):
        booking_service.update_booking_status(
            pending_booking.id, BookingStatus.CONFIRMED, actor_for(manager)
        )
        booking_service.create_booking(
            actor_for(other_resident), _request(listing, date(2026, 8, 1), date(2026, 8, 2))
        )

        stats = booking_service.get_manager_stats(actor_for(manager))

        assert stats == {
            "property_count": 1,
            "pending_bookings": 1,
            "confirmed_revenue": Decimal("400.00"),
        }

    def test_booked_ranges_exclude_cancelled(
        self, booking_service, pending_booking, resident, listing
    ):
        cancelled = booking_service.create_booking(
            actor_for(resident), _request(listing, date(2026, 9, 1), date(2026, 9, 3))
        )
        booking_service.cancel_booking(cancelled.id, actor_for(resident))

        ranges = booking_service.get_property_booked_ranges(listing.id)

        assert ranges == [(JUNE_1, JUNE_3)]

    def test_booked_ranges_for_unknown_property(self, booking_service):
        with pytest.raises(NotFoundException):
            booking_service.get_property_booked_ranges("missing")
