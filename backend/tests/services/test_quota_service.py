from datetime import date, timedelta

from consultbook.services.quota_service import QuotaUsage
from tests.helpers import (
    NEXT_MONDAY,
    NEXT_TUESDAY,
    NOW,
    OTHER_USER_ID,
    USER_ID,
    create_subscription,
    slot,
)


class TestQuotaUsage:
    def test_limited_plan(self):
        usage = QuotaUsage(used=2, allowance=3)
        assert usage.has_capacity
        assert usage.remaining == 1

        full = QuotaUsage(used=3, allowance=3)
        assert not full.has_capacity
        assert full.remaining == 0

    def test_zero_allowance_is_unlimited(self):
        usage = QuotaUsage(used=500, allowance=0)
        assert usage.unlimited
        assert usage.has_capacity
        assert usage.remaining is None


class TestCountUsed:
    def test_counts_non_cancelled_bookings_in_period(
        self, booking_service, quota_service, templates, subscriber
    ):
        first = booking_service.create_booking(
            USER_ID, "video_consultancy", NEXT_MONDAY, [slot("09:00", "10:00")]
        )
        booking_service.create_booking(
            USER_ID, "video_consultancy", NEXT_TUESDAY, [slot("09:00", "10:00")]
        )
        rejected = booking_service.create_booking(
            USER_ID, "onsite_appointment", NEXT_MONDAY, [slot("10:00", "11:00")]
        )
        booking_service.approve_or_reject(rejected.id, "rejected", rejection_reason="No staff")
        booking_service.cancel_booking(first.id, USER_ID)

        assert quota_service.count_used(USER_ID, NOW.date(), NOW.date() + timedelta(days=30)) == 2
        assert quota_service.count_used(OTHER_USER_ID, NOW.date(), date(2026, 12, 31)) == 0

    def test_bookings_outside_period_not_counted(
        self, booking_service, quota_service, templates, subscriber
    ):
        booking_service.create_booking(
            USER_ID, "video_consultancy", NEXT_TUESDAY, [slot("09:00", "10:00")]
        )

        assert quota_service.count_used(USER_ID, NOW.date(), NEXT_MONDAY) == 0
        assert quota_service.count_used(USER_ID, NEXT_TUESDAY, NEXT_TUESDAY) == 1


class TestGetUsage:
    def test_usage_for_active_subscription(self, db, booking_service, quota_service, templates):
        create_subscription(db, USER_ID, allowance=4)
        booking_service.create_booking(
            USER_ID, "video_consultancy", NEXT_MONDAY, [slot("09:00", "10:00")]
        )

        usage = quota_service.get_usage(USER_ID)

        assert usage == QuotaUsage(used=1, allowance=4)
        assert usage.remaining == 3

    def test_no_subscription(self, quota_service):
        assert quota_service.get_usage(USER_ID) is None
