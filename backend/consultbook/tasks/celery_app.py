# backend/consultbook/tasks/celery_app.py
"""
Celery application for consultbook.

Redis is both broker and result backend. The only periodic work is the
booking reconciliation tick, routed to the ``bookings`` queue and driven by
the beat schedule from consultbook.tasks.beat_schedule.
"""

import logging
import os
from typing import Any, Dict, Type, cast

from celery import Celery, Task
from celery.signals import setup_logging

from consultbook.core.config import settings

logger = logging.getLogger(__name__)

BOOKING_TASKS_MODULE = "consultbook.tasks.booking_tasks"


def _broker_url() -> str:
    # CELERY_BROKER_URL wins so worker, beat and monitoring share one broker
    return os.getenv("CELERY_BROKER_URL") or settings.redis_url


def create_celery_app() -> Celery:
    """Build the Celery app with JSON serialization and the reconciliation schedule."""
    broker_url = _broker_url()
    app = Celery(
        "consultbook",
        broker=broker_url,
        backend=os.getenv("CELERY_RESULT_BACKEND") or broker_url,
        include=[BOOKING_TASKS_MODULE],
    )

    app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,
        # A tick must finish well inside its interval
        task_soft_time_limit=50,
        task_time_limit=120,
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        worker_prefetch_multiplier=1,
        worker_hijack_root_logger=False,
        result_expires=3600,
        task_routes={f"{BOOKING_TASKS_MODULE}.*": {"queue": "bookings"}},
    )

    from consultbook.tasks.beat_schedule import get_beat_schedule

    app.conf.beat_schedule = get_beat_schedule(settings.environment)
    return app


@setup_logging.connect  # type: ignore[misc]
def config_loggers(*args: Any, **kwargs: Any) -> None:
    """Use the application's log format instead of Celery's."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


celery_app = create_celery_app()


class BaseTask(Task):  # type: ignore[misc]
    """Logs every task outcome with its id."""

    def on_failure(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        logger.error(
            "Task %s[%s] failed: %s",
            self.name,
            task_id,
            exc,
            exc_info=True,
            extra={"task_id": task_id, "task_name": self.name},
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_retry(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        logger.warning(
            "Task %s[%s] retry %s: %s", self.name, task_id, self.request.retries, exc
        )
        super().on_retry(exc, task_id, args, kwargs, einfo)

    def on_success(self, retval: Any, task_id: str, args: Any, kwargs: Any) -> None:
        logger.debug("Task %s[%s] succeeded", self.name, task_id)
        super().on_success(retval, task_id, args, kwargs)


celery_app.Task = cast(Type[Task], BaseTask)


@celery_app.task(name="consultbook.tasks.health_check")  # type: ignore[misc]
def health_check() -> Dict[str, str]:
    """Liveness probe for workers."""
    from datetime import datetime, timezone

    current = celery_app.current_task
    return {
        "status": "healthy",
        "worker": current.request.hostname if current else "unknown",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
