"""
Celery tasks package for consultbook.

Importing the package registers the reconciliation task with the app.
"""

from consultbook.tasks.booking_tasks import reconcile_bookings
from consultbook.tasks.celery_app import BaseTask, celery_app

__all__ = ["BaseTask", "celery_app", "reconcile_bookings"]
