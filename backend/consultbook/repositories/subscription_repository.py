# backend/consultbook/repositories/subscription_repository.py
"""
Subscription Repository for consultbook

Read-only lookups of the subject's current subscription and its plan.
Billing writes these rows; this engine only consumes them.
"""

from datetime import datetime
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.subscription import SubscriptionPlan, SubscriptionStatus, UserSubscription
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class SubscriptionRepository(BaseRepository[UserSubscription]):
    def __init__(self, db: Session):
        super().__init__(db, UserSubscription)

    def find_active_subscription(self, user_id: str, now: datetime) -> Optional[UserSubscription]:
        """Active subscription whose current period has not ended, newest first."""
        try:
            return (
                self.db.query(UserSubscription)
                .filter(
                    UserSubscription.user_id == user_id,
                    UserSubscription.status == SubscriptionStatus.ACTIVE.value,
                    UserSubscription.current_period_end > now,
                )
                .order_by(UserSubscription.current_period_start.desc())
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading subscription for user {user_id}: {e}")
            raise RepositoryException(f"Failed to load subscription: {str(e)}")

    def find_plan(self, plan_id: str) -> Optional[SubscriptionPlan]:
        try:
            return self.db.query(SubscriptionPlan).filter(SubscriptionPlan.id == plan_id).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading plan {plan_id}: {e}")
            raise RepositoryException(f"Failed to load plan: {str(e)}")
