# backend/consultbook/repositories/__init__.py
"""
Repository Pattern Implementation for consultbook

This package provides the repository layer for data access,
separating business logic from database queries.

Usage:
    from consultbook.repositories import RepositoryFactory

    # In a service:
    repository = RepositoryFactory.create_booking_repository(db)
    held = repository.get_held_bookings("video_consultancy", booking_date)
"""

from .availability_repository import AvailabilityRepository
from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .factory import RepositoryFactory
from .notification_repository import NotificationRepository
from .reschedule_request_repository import RescheduleRequestRepository
from .review_repository import ReviewRepository
from .subscription_repository import SubscriptionRepository

__all__ = [
    "AvailabilityRepository",
    "BaseRepository",
    "BookingRepository",
    "NotificationRepository",
    "RepositoryFactory",
    "RescheduleRequestRepository",
    "ReviewRepository",
    "SubscriptionRepository",
]
