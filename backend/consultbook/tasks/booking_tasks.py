"""
Celery tasks for booking reconciliation.

The beat-driven tick moves bookings along with the clock: it sends the
one-time imminent reminder and completes bookings whose slots have ended.
"""

import logging
from typing import Any, Callable, Optional, ParamSpec, Protocol, TypedDict, TypeVar, cast

from celery.result import AsyncResult
from sqlalchemy.orm import Session

from consultbook.core.clock import Clock
from consultbook.database import SessionLocal
from consultbook.services.reconciliation_service import (
    PassStats,
    ReconciliationService,
    new_pass_stats,
)
from consultbook.tasks.celery_app import celery_app

P = ParamSpec("P")
R = TypeVar("R", covariant=True)

logger = logging.getLogger(__name__)


class TaskWrapper(Protocol[P, R]):
    def __call__(self, *args: P.args, **kwargs: P.kwargs) -> R:
        ...

    delay: Callable[..., AsyncResult]
    apply_async: Callable[..., AsyncResult]


def typed_task(
    *task_args: Any, **task_kwargs: Any
) -> Callable[[Callable[P, R]], TaskWrapper[P, R]]:
    """Return a typed Celery task decorator for mypy."""

    return cast(
        Callable[[Callable[P, R]], TaskWrapper[P, R]],
        celery_app.task(*task_args, **task_kwargs),
    )


class ReconcileJobResults(TypedDict):
    imminent: PassStats
    elapsed: PassStats
    error: Optional[str]


def run_reconciliation(db: Session, clock: Optional[Clock] = None) -> ReconcileJobResults:
    """Run one reconciliation tick against an open session. Never raises."""
    try:
        result = ReconciliationService(db, clock).run()
    except Exception as exc:
        logger.error("Reconciliation tick failed: %s", exc, exc_info=True)
        return {"imminent": new_pass_stats(), "elapsed": new_pass_stats(), "error": str(exc)}
    return {"imminent": result["imminent"], "elapsed": result["elapsed"], "error": None}


@typed_task(name="consultbook.tasks.booking_tasks.reconcile_bookings")
def reconcile_bookings() -> ReconcileJobResults:
    """
    Periodic reconciliation tick.

    Runs the imminent-reminder pass and the elapsed-completion pass. Failures
    are logged and reported in the result; the next tick retries naturally.
    """
    db: Session = SessionLocal()
    try:
        results = run_reconciliation(db)
    finally:
        db.close()

    if any(results[name]["updated"] or results[name]["failed"] for name in ("imminent", "elapsed")):
        logger.info(
            "Reconciliation: imminent=%s elapsed=%s", results["imminent"], results["elapsed"]
        )
    return results
