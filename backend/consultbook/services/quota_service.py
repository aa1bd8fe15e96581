# backend/consultbook/services/quota_service.py
"""
Quota Service for consultbook

Counts a subject's sessions within the current billing period and decides
whether the plan's allowance leaves room for another booking. Every
non-cancelled booking dated inside the period counts, whatever its status.
An allowance of zero means unlimited.
"""

from dataclasses import dataclass
from datetime import date, datetime
import logging
from typing import Optional, Union

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..models.subscription import SubscriptionPlan, UserSubscription
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


def _as_date(value: Union[date, datetime]) -> date:
    return value.date() if isinstance(value, datetime) else value


@dataclass(frozen=True)
class QuotaUsage:
    used: int
    allowance: int  # 0 = unlimited

    @property
    def unlimited(self) -> bool:
        return self.allowance == 0

    @property
    def remaining(self) -> Optional[int]:
        return None if self.unlimited else max(0, self.allowance - self.used)

    @property
    def has_capacity(self) -> bool:
        return self.unlimited or self.used < self.allowance


class QuotaService(BaseService):
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        super().__init__(db, clock)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.subscription_repository = RepositoryFactory.create_subscription_repository(db)

    def count_used(
        self,
        user_id: str,
        period_start: Union[date, datetime],
        period_end: Union[date, datetime],
    ) -> int:
        """Non-cancelled bookings of the subject dated within the period (inclusive, by date)."""
        return self.booking_repository.count_user_bookings_in_period(
            user_id, _as_date(period_start), _as_date(period_end)
        )

    def usage_for(
        self, user_id: str, subscription: UserSubscription, plan: SubscriptionPlan
    ) -> QuotaUsage:
        used = self.count_used(
            user_id, subscription.current_period_start, subscription.current_period_end
        )
        return QuotaUsage(used=used, allowance=int(plan.session_allowance or 0))

    def has_capacity(
        self, user_id: str, subscription: UserSubscription, plan: SubscriptionPlan
    ) -> bool:
        return self.usage_for(user_id, subscription, plan).has_capacity

    @BaseService.measure_operation("get_quota_usage")
    def get_usage(self, user_id: str) -> Optional[QuotaUsage]:
        """Usage for the subject's current subscription, or None without one."""
        subscription = self.subscription_repository.find_active_subscription(user_id, self.now())
        if subscription is None:
            return None
        plan = self.subscription_repository.find_plan(subscription.plan_id)
        if plan is None:
            return None
        return self.usage_for(user_id, subscription, plan)
