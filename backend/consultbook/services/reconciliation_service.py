# backend/consultbook/services/reconciliation_service.py
"""
Reconciliation Service for consultbook

Time-driven passes run by the beat-scheduled reconcile task:

1. Imminent pass: live-meeting bookings that are ``upcoming``, not yet
   reminded, and start within the next ``imminent_window_minutes`` get one
   "Upcoming Booking Reminder". ``reminder_sent_at`` guards against a second
   reminder on the next tick.
2. Elapsed pass: live-meeting bookings that are ``confirmed`` or
   ``upcoming`` and whose last slot has ended become ``completed``.

Each booking is handled in its own transaction. A failure is logged,
counted and rolled back without aborting the rest of the batch.
"""

from datetime import date, timedelta
import logging
from typing import Optional, TypedDict

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import settings
from ..domain.booking_types import live_meeting_types
from ..integrations.protocols import Notifier
from ..models.booking import Booking, BookingStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .booking_service import BookingService
from .notification_service import NotificationService

logger = logging.getLogger(__name__)


class PassStats(TypedDict):
    processed: int
    updated: int
    skipped: int
    failed: int


class ReconciliationResult(TypedDict):
    imminent: PassStats
    elapsed: PassStats


def new_pass_stats() -> PassStats:
    return {"processed": 0, "updated": 0, "skipped": 0, "failed": 0}


class ReconciliationService(BaseService):
    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        *,
        notification_service: Optional[Notifier] = None,
        booking_service: Optional[BookingService] = None,
    ):
        super().__init__(db, clock)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.notification_service = notification_service or NotificationService(db, self.clock)
        self.booking_service = booking_service or BookingService(
            db, self.clock, notification_service=self.notification_service
        )

    def run(self) -> ReconciliationResult:
        """Run both passes; each pass is independent of the other's failures."""
        return {
            "imminent": self._guarded(self.process_imminent),
            "elapsed": self._guarded(self.process_elapsed),
        }

    def _guarded(self, run_pass) -> PassStats:
        try:
            return run_pass()
        except Exception as exc:
            self.logger.error(
                "Reconciliation pass %s failed: %s", run_pass.__name__, exc, exc_info=True
            )
            self.db.rollback()
            stats = new_pass_stats()
            stats["failed"] = 1
            return stats

    @BaseService.measure_operation("reconcile_imminent")
    def process_imminent(self) -> PassStats:
        now = self.now()
        horizon = now + timedelta(minutes=settings.imminent_window_minutes)
        stats = new_pass_stats()

        candidates = self.booking_repository.get_unreminded_bookings(
            BookingStatus.UPCOMING.value,
            live_meeting_types(),
            now.date(),
            horizon.date(),
        )
        for booking in candidates:
            stats["processed"] += 1
            start = booking.start_datetime
            if start is None or not (now < start <= horizon):
                stats["skipped"] += 1
                continue
            try:
                with self.booking_repository.transaction():
                    booking.reminder_sent_at = now
            except Exception as exc:
                self.logger.error("Failed to mark reminder for booking %s: %s", booking.id, exc)
                stats["failed"] += 1
                prometheus_metrics.record_reconciliation("imminent", "failed")
                continue

            self.notification_service.notify(
                booking.user_id,
                "Upcoming Booking Reminder",
                self._reminder_message(booking),
                {"booking_id": booking.id, "meeting_link": booking.meeting_link},
            )
            stats["updated"] += 1
            prometheus_metrics.record_reconciliation("imminent", "updated")

        if stats["processed"]:
            self.logger.info("Imminent pass: %s", stats)
        return stats

    @staticmethod
    def _reminder_message(booking: Booking) -> str:
        start = booking.start_datetime
        message = f"Your booking {booking.booking_ref} starts at {start.strftime('%H:%M')}."
        if booking.meeting_link:
            message += f" Join here: {booking.meeting_link}"
        return message

    @BaseService.measure_operation("reconcile_elapsed")
    def process_elapsed(self) -> PassStats:
        now = self.now()
        stats = new_pass_stats()

        # Anything ending before now is dated today or earlier
        candidates = self.booking_repository.get_bookings_in_statuses(
            [BookingStatus.CONFIRMED.value, BookingStatus.UPCOMING.value],
            live_meeting_types(),
            date.min,
            now.date(),
        )
        for booking in candidates:
            stats["processed"] += 1
            try:
                ends_at = booking.end_datetime
                if ends_at is None or ends_at >= now:
                    stats["skipped"] += 1
                    continue
                with self.booking_repository.transaction():
                    self.booking_service.complete_elapsed(booking)
                stats["updated"] += 1
                prometheus_metrics.record_reconciliation("elapsed", "updated")
            except Exception as exc:
                self.logger.error("Failed to complete booking %s: %s", booking.id, exc)
                stats["failed"] += 1
                prometheus_metrics.record_reconciliation("elapsed", "failed")

        if stats["processed"]:
            self.logger.info("Elapsed pass: %s", stats)
        return stats
