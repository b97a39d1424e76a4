# backend/rentals/repositories/booking_repository.py
"""
Booking Repository.

Holds every booking query the service layer needs, including the conditional
status update used to move a booking between states without a
read-modify-write race.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..core.exceptions import RepositoryException
from ..models.booking import Booking, BookingStatus
from ..models.property import Property
from .base_repository import BaseRepository

ACTIVE_STATUSES: Tuple[str, ...] = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def get_with_property(self, booking_id: str) -> Optional[Booking]:
        """
        Fetch a booking with its property loaded.

        Overwrites any copy already in the session, since status changes are
        applied with bulk UPDATEs.
        """
        try:
            return (
                self.db.query(Booking)
                .populate_existing()
                .options(joinedload(Booking.listing))
                .filter(Booking.id == booking_id)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve booking: {str(e)}")

    def transition_status(
        self,
        booking_id: str,
        from_statuses: Iterable[BookingStatus],
        to_status: BookingStatus,
        *,
        changed_by_id: Optional[str] = None,
        paid_at: Optional[datetime] = None,
    ) -> bool:
        """
        Set ``status = to_status`` only if the row is currently in one of
        ``from_statuses``.

        Returns:
            True when the row was updated, False when the booking was missing or
            had already moved to another status.
        """
        expected = [BookingStatus(s).value for s in from_statuses]
        values: dict = {"status": to_status.value}
        if changed_by_id is not None:
            values["status_changed_by_id"] = changed_by_id
        if paid_at is not None:
            values["paid_at"] = paid_at
        try:
            result = self.db.execute(
                update(Booking)
                .where(Booking.id == booking_id, Booking.status.in_(expected))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error transitioning booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to update booking status: {str(e)}")

    def record_payment(self, booking_id: str, paid_at: datetime) -> bool:
        """Stamp ``paid_at`` unless a previous verification already did."""
        try:
            result = self.db.execute(
                update(Booking)
                .where(Booking.id == booking_id, Booking.paid_at.is_(None))
                .values(paid_at=paid_at)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error recording payment for booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to record payment: {str(e)}")

    def find_overlapping(
        self,
        property_id: str,
        check_in: date,
        check_out: date,
        *,
        statuses: Sequence[str] = (BookingStatus.CONFIRMED.value,),
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """
        Bookings on the property whose half-open stay ``[check_in, check_out)``
        intersects the given range.
        """
        try:
            query = self.db.query(Booking).filter(
                Booking.property_id == property_id,
                Booking.status.in_(list(statuses)),
                Booking.check_in < check_out,
                Booking.check_out > check_in,
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)
            return query.order_by(Booking.check_in).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking overlap for property {property_id}: {str(e)}")
            raise RepositoryException(f"Failed to check booking overlap: {str(e)}")

    def get_booked_ranges(self, property_id: str) -> List[Tuple[date, date]]:
        """Date ranges held by pending or confirmed bookings, earliest first."""
        try:
            rows = (
                self.db.query(Booking.check_in, Booking.check_out)
                .filter(
                    Booking.property_id == property_id,
                    Booking.status.in_(ACTIVE_STATUSES),
                )
                .order_by(Booking.check_in)
                .all()
            )
            return [(row.check_in, row.check_out) for row in rows]
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading booked ranges for {property_id}: {str(e)}")
            raise RepositoryException(f"Failed to load booked ranges: {str(e)}")

    def list_for_user(self, user_id: str) -> List[Booking]:
        try:
            return (
                self.db.query(Booking)
                .options(joinedload(Booking.listing))
                .filter(Booking.user_id == user_id)
                .order_by(Booking.created_at.desc(), Booking.id.desc())
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing bookings for user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to list bookings: {str(e)}")

    def list_for_manager(
        self,
        manager_id: Optional[str],
        *,
        status: Optional[BookingStatus] = None,
        limit: Optional[int] = None,
    ) -> List[Booking]:
        """
        Bookings on properties managed by ``manager_id``, newest first.

        ``manager_id=None`` lists bookings across every property.
        """
        try:
            query = self.db.query(Booking).join(Property, Booking.property_id == Property.id)
            query = query.options(joinedload(Booking.listing), joinedload(Booking.user))
            if manager_id is not None:
                query = query.filter(Property.manager_id == manager_id)
            if status is not None:
                query = query.filter(Booking.status == status.value)
            query = query.order_by(Booking.created_at.desc(), Booking.id.desc())
            if limit is not None:
                query = query.limit(limit)
            return query.all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing bookings for manager {manager_id}: {str(e)}")
            raise RepositoryException(f"Failed to list bookings: {str(e)}")

    def count_for_manager(self, manager_id: Optional[str], status: BookingStatus) -> int:
        try:
            query = (
                self.db.query(func.count(Booking.id))
                .join(Property, Booking.property_id == Property.id)
                .filter(Booking.status == status.value)
            )
            if manager_id is not None:
                query = query.filter(Property.manager_id == manager_id)
            return int(query.scalar() or 0)
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting bookings for manager {manager_id}: {str(e)}")
            raise RepositoryException(f"Failed to count bookings: {str(e)}")

    def sum_confirmed_revenue(self, manager_id: Optional[str]) -> Decimal:
        try:
            query = (
                self.db.query(func.coalesce(func.sum(Booking.total_price), 0))
                .join(Property, Booking.property_id == Property.id)
                .filter(Booking.status == BookingStatus.CONFIRMED.value)
            )
            if manager_id is not None:
                query = query.filter(Property.manager_id == manager_id)
            return Decimal(str(query.scalar() or 0)).quantize(Decimal("0.01"))
        except SQLAlchemyError as e:
            self.logger.error(f"Error summing revenue for manager {manager_id}: {str(e)}")
            raise RepositoryException(f"Failed to compute revenue: {str(e)}")
