# backend/consultbook/tasks/beat_schedule.py
"""
Celery Beat schedule configuration for consultbook.

The reconciliation tick runs on a fixed interval rather than a crontab so
that sub-minute intervals can be configured.
"""

from datetime import timedelta
from typing import Any

from consultbook.core.config import settings

RECONCILE_TASK = "consultbook.tasks.booking_tasks.reconcile_bookings"


def _reconcile_entry(interval_seconds: int) -> dict[str, Any]:
    return {
        "task": RECONCILE_TASK,
        "schedule": timedelta(seconds=interval_seconds),
        "options": {
            "queue": "bookings",
            "priority": 8,
            # A tick that waits longer than one interval is superseded by the next
            "expires": interval_seconds,
        },
    }


# Environment-specific overrides
SCHEDULE_CONFIG: dict[str, dict[str, dict[str, Any]]] = {
    "development": {},
    "testing": {},
}


def get_beat_schedule(environment: str = "production") -> dict[str, dict[str, Any]]:
    """
    Get the beat schedule for the specified environment.

    Args:
        environment: The environment name (production, development, testing)

    Returns:
        Mapping of task name to Celery beat configuration dict
    """
    base: dict[str, dict[str, Any]] = {
        "reconcile-bookings": _reconcile_entry(settings.reconciliation_interval_seconds),
    }
    overrides = SCHEDULE_CONFIG.get(environment)
    if overrides:
        base.update(overrides)
    return base
