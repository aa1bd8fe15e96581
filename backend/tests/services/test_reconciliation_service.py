from datetime import datetime

from consultbook.integrations.zoom_client import ZoomError
from consultbook.models.booking import BookingStatus
from tests.helpers import NEXT_MONDAY, USER_ID, slot


def approved_booking(booking_service, booking_type="video_consultancy", start="09:00", end="10:00"):
    booking = booking_service.create_booking(
        USER_ID, booking_type, NEXT_MONDAY, [slot(start, end)]
    )
    return booking_service.approve_or_reject(booking.id, "approved")


class TestImminentPass:
    def test_reminder_sent_once(
        self, reconciliation_service, clock, notifier, approved_video_booking
    ):
        clock.current = datetime(2026, 3, 9, 8, 15)

        first = reconciliation_service.process_imminent()
        second = reconciliation_service.process_imminent()

        assert first["updated"] == 1
        assert second == {"processed": 0, "updated": 0, "skipped": 0, "failed": 0}
        [note] = notifier.titled("Upcoming Booking Reminder")
        assert note["recipient_id"] == USER_ID
        assert note["message"] == (
            f"Your booking {approved_video_booking.booking_ref} starts at 09:00. "
            f"Join here: {approved_video_booking.meeting_link}"
        )
        assert approved_video_booking.reminder_sent_at == clock.current

    def test_booking_beyond_window_is_skipped(
        self, reconciliation_service, clock, notifier, approved_video_booking
    ):
        clock.current = datetime(2026, 3, 9, 7, 59)

        stats = reconciliation_service.process_imminent()

        assert stats["skipped"] == 1
        assert notifier.titled("Upcoming Booking Reminder") == []
        assert approved_video_booking.reminder_sent_at is None

    def test_window_edge_is_inclusive(self, reconciliation_service, clock, approved_video_booking):
        clock.current = datetime(2026, 3, 9, 8, 0)

        assert reconciliation_service.process_imminent()["updated"] == 1

    def test_onsite_and_pending_bookings_not_reminded(
        self, reconciliation_service, booking_service, clock, notifier, templates, subscriber
    ):
        approved_booking(booking_service, booking_type="onsite_appointment")
        booking_service.create_booking(
            USER_ID, "video_consultancy", NEXT_MONDAY, [slot("09:00", "10:00")]
        )
        clock.current = datetime(2026, 3, 9, 8, 30)

        stats = reconciliation_service.process_imminent()

        assert stats["processed"] == 0
        assert notifier.titled("Upcoming Booking Reminder") == []

    def test_reminder_without_link(
        self, reconciliation_service, booking_service, clock, notifier, zoom, templates, subscriber
    ):
        zoom.set_error("create_meeting", ZoomError("Zoom down"))
        booking = approved_booking(booking_service)
        clock.current = datetime(2026, 3, 9, 8, 30)

        reconciliation_service.process_imminent()

        [note] = notifier.titled("Upcoming Booking Reminder")
        assert note["message"] == f"Your booking {booking.booking_ref} starts at 09:00."


class TestElapsedPass:
    def test_ended_bookings_completed(
        self, reconciliation_service, booking_service, clock, templates, subscriber
    ):
        upcoming = approved_booking(booking_service)
        pending = booking_service.create_booking(
            USER_ID, "video_consultancy", NEXT_MONDAY, [slot("10:00", "11:00")]
        )
        onsite = approved_booking(booking_service, booking_type="onsite_appointment")
        clock.current = datetime(2026, 3, 9, 10, 30)

        stats = reconciliation_service.process_elapsed()

        assert stats["updated"] == 1
        assert upcoming.status == BookingStatus.COMPLETED.value
        assert upcoming.completed_at == clock.current
        assert pending.status == BookingStatus.PENDING.value
        assert onsite.status == BookingStatus.UPCOMING.value

    def test_running_booking_not_completed(
        self, reconciliation_service, clock, approved_video_booking
    ):
        clock.current = datetime(2026, 3, 9, 9, 30)

        stats = reconciliation_service.process_elapsed()

        assert stats == {"processed": 1, "updated": 0, "skipped": 1, "failed": 0}
        assert approved_video_booking.status == BookingStatus.UPCOMING.value

    def test_failure_is_isolated_per_booking(
        self, reconciliation_service, booking_service, clock, templates, subscriber, monkeypatch
    ):
        first = approved_booking(booking_service, start="09:00", end="10:00")
        second = approved_booking(booking_service, start="10:00", end="11:00")
        original = booking_service.complete_elapsed

        def flaky(booking):
            if booking.id == first.id:
                raise RuntimeError("boom")
            return original(booking)

        monkeypatch.setattr(booking_service, "complete_elapsed", flaky)
        clock.current = datetime(2026, 3, 9, 12, 0)

        stats = reconciliation_service.process_elapsed()

        assert stats["failed"] == 1
        assert stats["updated"] == 1
        assert first.status == BookingStatus.UPCOMING.value
        assert second.status == BookingStatus.COMPLETED.value


class TestRun:
    def test_run_reports_both_passes(self, reconciliation_service, clock, approved_video_booking):
        clock.current = datetime(2026, 3, 9, 8, 30)
        result = reconciliation_service.run()
        assert result["imminent"]["updated"] == 1
        assert result["elapsed"]["updated"] == 0

        clock.current = datetime(2026, 3, 9, 10, 5)
        result = reconciliation_service.run()
        assert result["imminent"]["processed"] == 0
        assert result["elapsed"]["updated"] == 1

    def test_pass_failure_does_not_stop_the_other(
        self, reconciliation_service, clock, approved_video_booking, monkeypatch
    ):
        def broken():
            raise RuntimeError("store down")

        monkeypatch.setattr(reconciliation_service, "process_imminent", broken)
        clock.current = datetime(2026, 3, 9, 10, 5)

        result = reconciliation_service.run()

        assert result["imminent"]["failed"] == 1
        assert result["elapsed"]["updated"] == 1
