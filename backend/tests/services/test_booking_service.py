"""
Tests for BookingService: creation, operator decisions, cancellation,
completion, reviews and read models.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from consultbook.core.enums import ActorRole
from consultbook.core.exceptions import (
    BusinessRuleException,
    ConflictException,
    ForbiddenException,
    InvalidInputException,
    NoActiveSubscriptionException,
    NotFoundException,
    QuotaExceededException,
    SlotLockedException,
    SlotUnavailableException,
)
from consultbook.integrations.zoom_client import ZoomError
from consultbook.models.booking import Booking, BookingSlotClaim, BookingStatus, PaymentStatus
from tests.helpers import (
    NEXT_MONDAY,
    NEXT_TUESDAY,
    NOW,
    OPERATOR_ID,
    OTHER_USER_ID,
    USER_ID,
    create_subscription,
    slot,
)


def book(service, day=NEXT_MONDAY, start="09:00", end="10:00", booking_type="video_consultancy"):
    return service.create_booking(USER_ID, booking_type, day, [slot(start, end)])


class TestCreateBooking:
    def test_creates_pending_booking_with_claims(self, db, booking_service, templates, subscriber):
        booking = book(booking_service)

        assert booking.status == BookingStatus.PENDING.value
        assert booking.payment_status == PaymentStatus.PAID.value
        assert booking.funding_source == "subscription"
        assert booking.slots == [slot("09:00", "10:00")]
        assert booking.is_rescheduled is False
        claims = db.query(BookingSlotClaim).filter_by(booking_id=booking.id).all()
        assert [c.slot_key for c in claims] == ["09:00-10:00"]

    def test_video_booking_gets_meeting_link(self, booking_service, zoom, templates, subscriber):
        booking = book(booking_service)

        assert booking.meeting_link.startswith("https://zoom.example/j/")
        assert zoom.calls[0]["booking_id"] == booking.id
        assert zoom.calls[0]["start"] == booking.start_datetime
        assert zoom.calls[0]["duration_minutes"] == 60

    def test_onsite_booking_has_no_meeting(self, booking_service, zoom, templates, subscriber):
        booking = book(booking_service, booking_type="onsite_appointment")

        assert booking.meeting_link is None
        assert zoom.calls == []

    def test_meeting_failure_is_tolerated(self, booking_service, zoom, templates, subscriber):
        zoom.set_error("create_meeting", ZoomError("Zoom down", status_code=503))

        booking = book(booking_service)

        assert booking.id
        assert booking.meeting_link is None

    def test_operators_notified(self, booking_service, notifier, templates, subscriber):
        booking = book(booking_service)

        [note] = notifier.titled("New Booking")
        assert note["recipient_id"] == "operators"
        assert booking.booking_ref in note["message"]

    def test_unavailable_slot_rejected(self, booking_service, templates, subscriber):
        book(booking_service)

        with pytest.raises(SlotUnavailableException, match="09:00-10:00"):
            book(booking_service)

    def test_slot_outside_template_rejected(self, booking_service, templates, subscriber):
        with pytest.raises(SlotUnavailableException):
            book(booking_service, start="15:00", end="16:00")

    def test_requires_subscription(self, booking_service, templates):
        with pytest.raises(NoActiveSubscriptionException):
            book(booking_service)

    def test_expired_subscription_rejected(self, db, booking_service, templates):
        create_subscription(
            db,
            USER_ID,
            period_start=NOW - timedelta(days=40),
            period_end=NOW - timedelta(days=10),
        )

        with pytest.raises(NoActiveSubscriptionException):
            book(booking_service)

    def test_malformed_input_rejected(self, booking_service, templates, subscriber):
        with pytest.raises(InvalidInputException):
            booking_service.create_booking(USER_ID, "video_consultancy", "next monday", [])
        with pytest.raises(InvalidInputException):
            booking_service.create_booking(USER_ID, "video_consultancy", NEXT_MONDAY, [])

    def test_locked_date_rejected(self, booking_service, templates, subscriber, monkeypatch):
        monkeypatch.setattr(
            "consultbook.core.slot_lock.acquire_slot_lock", lambda *args, **kwargs: False
        )

        with pytest.raises(SlotLockedException):
            book(booking_service)

    def test_storage_claim_blocks_racing_writer(self, db, booking_service, templates, subscriber):
        book(booking_service)
        # Simulate a writer that validated before the first booking committed
        booking_service.slot_service.assert_slots_available = lambda *args, **kwargs: None

        with pytest.raises(SlotUnavailableException):
            book(booking_service)

        assert db.query(Booking).count() == 1
        assert db.query(BookingSlotClaim).count() == 1


class TestQuota:
    def test_allowance_of_two_scenario(self, db, booking_service, quota_service, templates):
        create_subscription(db, USER_ID, allowance=2)
        first = book(booking_service)
        book(booking_service, day=NEXT_TUESDAY)

        with pytest.raises(QuotaExceededException, match="2/2"):
            book(booking_service, start="10:00", end="11:00")

        booking_service.cancel_booking(first.id, USER_ID)
        third = book(booking_service, start="10:00", end="11:00")

        assert third.status == BookingStatus.PENDING.value
        assert quota_service.get_usage(USER_ID).used == 2

    def test_unlimited_plan(self, db, booking_service, templates):
        create_subscription(db, USER_ID, allowance=0)
        for start, end in [("09:00", "10:00"), ("10:00", "11:00"), ("11:00", "12:00")]:
            book(booking_service, start=start, end=end)


class TestCreatePaidBooking:
    def test_one_off_booking_skips_subscription(self, booking_service, templates):
        booking = booking_service.create_paid_booking(
            OTHER_USER_ID,
            "onsite_appointment",
            NEXT_MONDAY,
            [slot("09:00", "10:00")],
            amount=Decimal("75.00"),
            payment_reference="pi_123",
            address="1 Main St",
        )

        assert booking.funding_source == "one_off"
        assert booking.payment_reference == "pi_123"
        assert booking.amount == Decimal("75.00")
        assert booking.address == "1 Main St"

    def test_requires_positive_amount_and_reference(self, booking_service, templates):
        with pytest.raises(InvalidInputException):
            booking_service.create_paid_booking(
                OTHER_USER_ID,
                "onsite_appointment",
                NEXT_MONDAY,
                [slot("09:00", "10:00")],
                amount=0,
                payment_reference="pi_123",
            )
        with pytest.raises(InvalidInputException):
            booking_service.create_paid_booking(
                OTHER_USER_ID,
                "onsite_appointment",
                NEXT_MONDAY,
                [slot("09:00", "10:00")],
                amount=50,
                payment_reference="  ",
            )


class TestApproveOrReject:
    def test_approval_makes_future_booking_upcoming(
        self, booking_service, notifier, templates, subscriber
    ):
        booking = book(booking_service)

        approved = booking_service.approve_or_reject(booking.id, "approved", operator_id=OPERATOR_ID)

        assert approved.status == BookingStatus.UPCOMING.value
        assert approved.rejection_reason is None
        [note] = notifier.titled("Booking Approved")
        assert note["recipient_id"] == USER_ID
        assert note["message"] == f"Your booking {booking.booking_ref} has been approved."

    def test_approval_of_past_booking_stays_approved(
        self, booking_service, clock, templates, subscriber
    ):
        booking = book(booking_service)
        clock.current = NOW + timedelta(days=8)

        approved = booking_service.approve_or_reject(booking.id, "approved")

        assert approved.status == BookingStatus.APPROVED.value

    def test_rejection_requires_reason(self, booking_service, templates, subscriber):
        booking = book(booking_service)

        with pytest.raises(InvalidInputException, match="Rejection reason is required"):
            booking_service.approve_or_reject(booking.id, "rejected", rejection_reason="   ")

    def test_rejection_stores_trimmed_reason(
        self, booking_service, notifier, templates, subscriber
    ):
        booking = book(booking_service)

        rejected = booking_service.approve_or_reject(
            booking.id, "rejected", rejection_reason="  Fully booked  "
        )

        assert rejected.status == BookingStatus.REJECTED.value
        assert rejected.rejection_reason == "Fully booked"
        [note] = notifier.titled("Booking Rejected")
        assert note["message"].endswith("has been rejected. Reason: Fully booked")

    def test_only_pending_bookings_can_be_decided(self, booking_service, templates, subscriber):
        booking = book(booking_service)
        booking_service.approve_or_reject(booking.id, "approved")

        with pytest.raises(BusinessRuleException) as exc:
            booking_service.approve_or_reject(booking.id, "rejected", rejection_reason="late")
        assert exc.value.message == (
            "Booking is already upcoming. Only pending bookings can be approved or rejected."
        )

    def test_invalid_decision(self, booking_service, templates, subscriber):
        booking = book(booking_service)

        with pytest.raises(InvalidInputException):
            booking_service.approve_or_reject(booking.id, "maybe")

    def test_unknown_booking(self, booking_service):
        with pytest.raises(NotFoundException):
            booking_service.approve_or_reject("01HZZNOPE0000000000000000", "approved")


class TestCancelBooking:
    def test_owner_cancels_pending_booking(
        self, db, booking_service, notifier, templates, subscriber
    ):
        booking = book(booking_service)

        cancelled = booking_service.cancel_booking(booking.id, USER_ID, reason="Plans changed")

        assert cancelled.status == BookingStatus.CANCELLED.value
        assert cancelled.cancelled_by_id == USER_ID
        assert cancelled.cancelled_at == NOW
        assert cancelled.cancellation_reason == "Plans changed"
        assert db.query(BookingSlotClaim).count() == 0
        [note] = notifier.titled("Booking Cancelled")
        assert note["recipient_id"] == "operators"

    def test_operator_cancellation_notifies_subject(
        self, booking_service, notifier, templates, subscriber
    ):
        booking = book(booking_service)

        booking_service.cancel_booking(booking.id, OPERATOR_ID, ActorRole.OPERATOR)

        [note] = notifier.titled("Booking Cancelled")
        assert note["recipient_id"] == USER_ID

    def test_other_user_forbidden(self, booking_service, templates, subscriber):
        booking = book(booking_service)

        with pytest.raises(ForbiddenException):
            booking_service.cancel_booking(booking.id, OTHER_USER_ID)

    def test_unknown_role_rejected(self, booking_service, templates, subscriber):
        booking = book(booking_service)

        with pytest.raises(InvalidInputException) as exc:
            booking_service.cancel_booking(booking.id, OPERATOR_ID, actor_role="admin")

        assert exc.value.details["field"] == "role"
        assert booking.status == BookingStatus.PENDING.value

    def test_only_pending_can_be_cancelled(self, booking_service, approved_video_booking):
        with pytest.raises(BusinessRuleException, match="Only pending bookings can be cancelled"):
            booking_service.cancel_booking(approved_video_booking.id, USER_ID)

    def test_one_off_charge_refunded(self, booking_service, payment_gateway, templates):
        booking = booking_service.create_paid_booking(
            OTHER_USER_ID,
            "onsite_appointment",
            NEXT_MONDAY,
            [slot("09:00", "10:00")],
            amount=Decimal("50.00"),
            payment_reference="pi_123",
        )

        cancelled = booking_service.cancel_booking(booking.id, OTHER_USER_ID)

        assert payment_gateway.refunds == [("pi_123", Decimal("50.00"))]
        assert cancelled.payment_status == PaymentStatus.REFUNDED.value

    def test_refund_failure_does_not_block_cancellation(
        self, booking_service, payment_gateway, templates
    ):
        payment_gateway.fail = True
        booking = booking_service.create_paid_booking(
            OTHER_USER_ID,
            "onsite_appointment",
            NEXT_MONDAY,
            [slot("09:00", "10:00")],
            amount=Decimal("50.00"),
            payment_reference="pi_123",
        )

        cancelled = booking_service.cancel_booking(booking.id, OTHER_USER_ID)

        assert cancelled.status == BookingStatus.CANCELLED.value
        assert cancelled.payment_status == PaymentStatus.PAID.value

    @pytest.mark.parametrize("refund_status", ["failed", "canceled"])
    def test_unsuccessful_refund_leaves_payment_paid(
        self, booking_service, payment_gateway, templates, refund_status
    ):
        payment_gateway.status = refund_status
        booking = booking_service.create_paid_booking(
            OTHER_USER_ID,
            "onsite_appointment",
            NEXT_MONDAY,
            [slot("09:00", "10:00")],
            amount=Decimal("50.00"),
            payment_reference="pi_123",
        )

        cancelled = booking_service.cancel_booking(booking.id, OTHER_USER_ID)

        assert payment_gateway.refunds == [("pi_123", Decimal("50.00"))]
        assert cancelled.status == BookingStatus.CANCELLED.value
        assert cancelled.payment_status == PaymentStatus.PAID.value

    def test_subscription_booking_not_refunded(
        self, booking_service, payment_gateway, templates, subscriber
    ):
        booking_service.cancel_booking(book(booking_service).id, USER_ID)

        assert payment_gateway.refunds == []

    def test_record_refund_marks_bookings(self, booking_service, templates):
        booking = booking_service.create_paid_booking(
            OTHER_USER_ID,
            "onsite_appointment",
            NEXT_MONDAY,
            [slot("09:00", "10:00")],
            amount=Decimal("50.00"),
            payment_reference="ch_999",
        )

        assert booking_service.record_refund("ch_999") == 1
        assert booking.payment_status == PaymentStatus.REFUNDED.value
        assert booking_service.record_refund("ch_999") == 0


class TestCompletionAndReview:
    def test_mark_completed(self, booking_service, notifier, approved_video_booking):
        completed = booking_service.mark_completed(approved_video_booking.id)

        assert completed.status == BookingStatus.COMPLETED.value
        assert completed.completed_at == NOW
        [note] = notifier.titled("Booking Completed")
        assert note["message"] == (
            f"Your booking {completed.booking_ref} has been marked as completed."
        )

    def test_mark_completed_twice(self, booking_service, approved_video_booking):
        booking_service.mark_completed(approved_video_booking.id)

        with pytest.raises(BusinessRuleException, match="Booking is already completed"):
            booking_service.mark_completed(approved_video_booking.id)

    def test_cancelled_booking_cannot_complete(self, booking_service, templates, subscriber):
        booking = book(booking_service)
        booking_service.cancel_booking(booking.id, USER_ID)

        with pytest.raises(BusinessRuleException, match="Cannot mark cancelled booking"):
            booking_service.mark_completed(booking.id)

    def test_review_completed_booking(self, booking_service, notifier, approved_video_booking):
        booking_service.mark_completed(approved_video_booking.id)

        review = booking_service.rate_and_review(
            approved_video_booking.id, USER_ID, 5, "  Very helpful  "
        )

        assert review.rating == 5
        assert review.review_text == "Very helpful"
        assert notifier.titled("New Review")

    def test_review_rules(self, booking_service, approved_video_booking):
        with pytest.raises(BusinessRuleException):
            booking_service.rate_and_review(approved_video_booking.id, USER_ID, 4)

        booking_service.mark_completed(approved_video_booking.id)

        with pytest.raises(InvalidInputException):
            booking_service.rate_and_review(approved_video_booking.id, USER_ID, 6)
        with pytest.raises(InvalidInputException):
            booking_service.rate_and_review(approved_video_booking.id, USER_ID, 4, "x" * 501)
        with pytest.raises(ForbiddenException):
            booking_service.rate_and_review(approved_video_booking.id, OTHER_USER_ID, 4)

        booking_service.rate_and_review(approved_video_booking.id, USER_ID, 4)
        with pytest.raises(ConflictException):
            booking_service.rate_and_review(approved_video_booking.id, USER_ID, 3)


class TestReadModels:
    def test_get_booking_display_fields(self, booking_service, approved_video_booking):
        response = booking_service.get_booking(approved_video_booking.id, user_id=USER_ID)

        assert response.booking_ref == "#" + approved_video_booking.id[-6:]
        assert response.type_display == "Video Consultation"
        assert response.date_formatted == "03/09/2026"
        assert response.status == "upcoming"
        assert response.has_pending_reschedule is False
        assert response.review is None

    def test_get_booking_hides_other_users_bookings(self, booking_service, approved_video_booking):
        with pytest.raises(NotFoundException):
            booking_service.get_booking(approved_video_booking.id, user_id=OTHER_USER_ID)

    def test_list_bookings_filters_and_paginates(self, booking_service, templates, subscriber):
        first = book(booking_service)
        book(booking_service, start="10:00", end="11:00")
        book(booking_service, day=NEXT_TUESDAY, booking_type="onsite_appointment")
        booking_service.cancel_booking(first.id, USER_ID)

        page = booking_service.list_bookings(user_id=USER_ID, page=1, limit=2)
        assert page.pagination.total == 3
        assert page.pagination.total_pages == 2
        assert len(page.items) == 2

        pending = booking_service.list_bookings(status="pending")
        assert pending.pagination.total == 2

        onsite = booking_service.list_bookings(booking_type="onsite_appointment")
        assert [b.type_display for b in onsite.items] == ["Onsite Visit"]

        monday = booking_service.list_bookings(date_from=NEXT_MONDAY, date_to=NEXT_MONDAY)
        assert monday.pagination.total == 2

        assert booking_service.count_pending_bookings() == 2

    def test_list_bookings_validation(self, booking_service):
        with pytest.raises(InvalidInputException):
            booking_service.list_bookings(page=0)
        with pytest.raises(InvalidInputException):
            booking_service.list_bookings(limit=1000)
        with pytest.raises(InvalidInputException):
            booking_service.list_bookings(status="archived")
