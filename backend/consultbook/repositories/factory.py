# backend/consultbook/repositories/factory.py
"""
Repository Factory for consultbook

Services obtain every repository through this factory.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .availability_repository import AvailabilityRepository
    from .booking_repository import BookingRepository
    from .notification_repository import NotificationRepository
    from .reschedule_request_repository import RescheduleRequestRepository
    from .review_repository import ReviewRepository
    from .subscription_repository import SubscriptionRepository


class RepositoryFactory:
    """One constructor per consultbook repository, each bound to a session."""

    @staticmethod
    def create_availability_repository(db: Session) -> "AvailabilityRepository":
        from .availability_repository import AvailabilityRepository

        return AvailabilityRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_reschedule_request_repository(db: Session) -> "RescheduleRequestRepository":
        from .reschedule_request_repository import RescheduleRequestRepository

        return RescheduleRequestRepository(db)

    @staticmethod
    def create_review_repository(db: Session) -> "ReviewRepository":
        from .review_repository import ReviewRepository

        return ReviewRepository(db)

    @staticmethod
    def create_subscription_repository(db: Session) -> "SubscriptionRepository":
        from .subscription_repository import SubscriptionRepository

        return SubscriptionRepository(db)

    @staticmethod
    def create_notification_repository(db: Session) -> "NotificationRepository":
        from .notification_repository import NotificationRepository

        return NotificationRepository(db)
