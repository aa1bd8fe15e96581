"""
Database models for the consultbook scheduling engine.

- Weekly availability templates (per booking type)
- Bookings and their storage-level slot claims
- Reschedule requests
- Reviews
- Subscriptions (read-only here)
- In-app notifications
"""

from .availability import AvailabilityDay, AvailabilityTemplate, AvailabilityWindow
from .booking import Booking, BookingSlotClaim, BookingStatus, FundingSource, PaymentStatus
from .notification import OPERATORS_RECIPIENT, Notification
from .reschedule_request import RescheduleRequest, RescheduleStatus
from .review import Review
from .subscription import SubscriptionPlan, SubscriptionStatus, UserSubscription

__all__ = [
    "AvailabilityDay",
    "AvailabilityTemplate",
    "AvailabilityWindow",
    "Booking",
    "BookingSlotClaim",
    "BookingStatus",
    "FundingSource",
    "Notification",
    "OPERATORS_RECIPIENT",
    "PaymentStatus",
    "RescheduleRequest",
    "RescheduleStatus",
    "Review",
    "SubscriptionPlan",
    "SubscriptionStatus",
    "UserSubscription",
]
