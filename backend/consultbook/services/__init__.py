"""
Service layer for consultbook.

Services own the unit of work: they validate input, enforce business
rules, commit through repositories and call external collaborators after
the primary commit.
"""

from .availability_template_service import AvailabilityTemplateService
from .base import BaseService
from .booking_service import BookingService
from .notification_service import NotificationService
from .quota_service import QuotaService, QuotaUsage
from .reconciliation_service import ReconciliationService
from .reschedule_service import RescheduleService
from .slot_availability_service import SlotAvailabilityService

__all__ = [
    "AvailabilityTemplateService",
    "BaseService",
    "BookingService",
    "NotificationService",
    "QuotaService",
    "QuotaUsage",
    "ReconciliationService",
    "RescheduleService",
    "SlotAvailabilityService",
]
