# backend/consultbook/repositories/booking_repository.py
"""
Booking Repository for consultbook

Implements all data access operations for booking management:
- Held-slot lookups per (booking type, date) for the availability resolver
- Storage-level slot claims
- Quota counting per subject and billing period
- Reconciliation candidate queries
- Listing with filters and pagination
"""

from datetime import date
import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..domain.time_slots import TimeSlot
from ..models.booking import Booking, BookingSlotClaim, BookingStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def get_held_bookings(
        self,
        booking_type: str,
        booking_date: date,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """
        Bookings that occupy slots on a date: every status except cancelled.

        Args:
            booking_type: Booking type value
            booking_date: Date to check
            exclude_booking_id: Booking whose own slots should not count

        Returns:
            List of non-cancelled bookings of that type and date
        """
        try:
            query = self.db.query(Booking).filter(
                Booking.booking_type == booking_type,
                Booking.booking_date == booking_date,
                Booking.status != BookingStatus.CANCELLED.value,
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)
            return query.all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading held bookings for {booking_type} {booking_date}: {e}")
            raise RepositoryException(f"Failed to load held bookings: {str(e)}")

    def claim_slots(self, booking: Booking, booking_date: date, slots: Iterable[TimeSlot]) -> None:
        """
        Attach one claim row per slot and flush.

        IntegrityError is left to the caller: it means another writer holds a slot.
        """
        try:
            for slot in slots:
                booking.slot_claims.append(BookingSlotClaim.for_slot(booking, booking_date, slot))
            self.db.flush()
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            self.logger.error(f"Error claiming slots for booking {booking.id}: {e}")
            raise RepositoryException(f"Failed to claim slots: {str(e)}")

    def release_slots(self, booking: Booking) -> int:
        """Delete every claim held by the booking (flushed before any new claim)."""
        try:
            released = len(booking.slot_claims)
            booking.slot_claims.clear()
            self.db.flush()
            return released
        except SQLAlchemyError as e:
            self.logger.error(f"Error releasing slots for booking {booking.id}: {e}")
            raise RepositoryException(f"Failed to release slots: {str(e)}")

    def count_user_bookings_in_period(
        self, user_id: str, period_start: date, period_end: date
    ) -> int:
        """Non-cancelled bookings of a subject dated within [period_start, period_end]."""
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.user_id == user_id,
                    Booking.booking_date >= period_start,
                    Booking.booking_date <= period_end,
                    Booking.status != BookingStatus.CANCELLED.value,
                )
                .count()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting bookings for user {user_id}: {e}")
            raise RepositoryException(f"Failed to count bookings: {str(e)}")

    def get_bookings_in_statuses(
        self,
        statuses: Sequence[str],
        booking_types: Sequence[str],
        date_from: date,
        date_to: date,
    ) -> List[Booking]:
        """
        Reconciliation candidates: bookings of given types and statuses in a date window.

        The window is coarse; callers refine by slot times in Python.
        """
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.status.in_(list(statuses)),
                    Booking.booking_type.in_(list(booking_types)),
                    Booking.booking_date >= date_from,
                    Booking.booking_date <= date_to,
                )
                .order_by(Booking.booking_date, Booking.id)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading reconciliation candidates: {e}")
            raise RepositoryException(f"Failed to load bookings: {str(e)}")

    def get_unreminded_bookings(
        self, status: str, booking_types: Sequence[str], date_from: date, date_to: date
    ) -> List[Booking]:
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.status == status,
                    Booking.booking_type.in_(list(booking_types)),
                    Booking.reminder_sent_at.is_(None),
                    and_(Booking.booking_date >= date_from, Booking.booking_date <= date_to),
                )
                .order_by(Booking.booking_date, Booking.id)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading reminder candidates: {e}")
            raise RepositoryException(f"Failed to load bookings: {str(e)}")

    def find_by_payment_reference(self, payment_reference: str) -> List[Booking]:
        return self.find_by(payment_reference=payment_reference)

    def list_bookings(
        self,
        *,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        booking_type: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[Booking], int]:
        """
        Filtered, newest-first listing.

        Returns:
            (page of bookings, total matching count)
        """
        try:
            query = self.db.query(Booking)
            if user_id:
                query = query.filter(Booking.user_id == user_id)
            if status:
                query = query.filter(Booking.status == status)
            if booking_type:
                query = query.filter(Booking.booking_type == booking_type)
            if date_from:
                query = query.filter(Booking.booking_date >= date_from)
            if date_to:
                query = query.filter(Booking.booking_date <= date_to)
            total = query.count()
            items = self._paginate(
                query.order_by(Booking.booking_date.desc(), Booking.id.desc()), page, limit
            )
            return items, total
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing bookings: {e}")
            raise RepositoryException(f"Failed to list bookings: {str(e)}")

    def count_by_status(self, status: str) -> int:
        return self.count(status=status)
