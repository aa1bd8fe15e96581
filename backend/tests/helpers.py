# backend/tests/helpers.py
"""Constants, builders and collaborator fakes shared by the test modules."""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from consultbook.core.exceptions import ServiceException
from consultbook.integrations.protocols import RefundResult
from consultbook.models.subscription import SubscriptionPlan, SubscriptionStatus, UserSubscription

NOW = datetime(2026, 3, 2, 8, 0)  # Monday
NEXT_MONDAY = date(2026, 3, 9)
NEXT_TUESDAY = date(2026, 3, 10)
NEXT_WEDNESDAY = date(2026, 3, 11)

USER_ID = "01HZZUSER00000000000000001"
OTHER_USER_ID = "01HZZUSER00000000000000002"
OPERATOR_ID = "01HZZOPER00000000000000001"

MORNING_WINDOWS = [("09:00", "10:00"), ("10:00", "11:00"), ("11:00", "12:00")]


def slot(start: str, end: str) -> Dict[str, str]:
    return {"start_time": start, "end_time": end}


def weekly_schedule(
    days: Iterable[str], windows: Iterable[Tuple[str, str]] = MORNING_WINDOWS
) -> List[Dict[str, Any]]:
    window_list = list(windows)
    return [
        {"day_of_week": day, "slots": [slot(start, end) for start, end in window_list]}
        for day in days
    ]


def create_subscription(
    db: Session,
    user_id: str = USER_ID,
    *,
    allowance: int = 10,
    period_start: datetime = NOW - timedelta(days=1),
    period_end: datetime = NOW + timedelta(days=29),
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
) -> UserSubscription:
    plan = SubscriptionPlan(name="Standard", price=Decimal("99.00"), session_allowance=allowance)
    db.add(plan)
    db.flush()
    subscription = UserSubscription(
        user_id=user_id,
        plan_id=plan.id,
        status=status.value,
        current_period_start=period_start,
        current_period_end=period_end,
    )
    db.add(subscription)
    db.commit()
    return subscription


class RecordingNotifier:
    """Notifier fake that keeps every notification in memory."""

    def __init__(self) -> None:
        self.sent: List[Dict[str, Any]] = []

    def notify(
        self,
        recipient_id: str,
        title: str,
        message: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.sent.append(
            {"recipient_id": recipient_id, "title": title, "message": message, "payload": payload or {}}
        )

    def notify_operators(
        self, title: str, message: str, payload: Optional[Dict[str, Any]] = None
    ) -> None:
        self.notify("operators", title, message, payload)

    def titled(self, title: str) -> List[Dict[str, Any]]:
        return [n for n in self.sent if n["title"] == title]


class RecordingPaymentGateway:
    """Payment gateway fake; set ``fail`` to make refunds raise, ``status`` to vary the outcome."""

    def __init__(self) -> None:
        self.refunds: List[Tuple[str, Decimal]] = []
        self.fail = False
        self.status = "succeeded"

    def refund(self, payment_reference: str, amount: Decimal) -> RefundResult:
        if self.fail:
            raise ServiceException("Failed to refund payment")
        self.refunds.append((payment_reference, amount))
        return RefundResult(refund_id=f"re_{len(self.refunds)}", status=self.status)
