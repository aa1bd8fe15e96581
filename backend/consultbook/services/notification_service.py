# backend/consultbook/services/notification_service.py
"""
Notification Service for consultbook

Persists in-app notifications for booking subjects and the operator inbox.
Delivery is best effort: a failure is logged and never propagates into the
booking operation that triggered it.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..models.notification import OPERATORS_RECIPIENT, Notification
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class NotificationService(BaseService):
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        super().__init__(db, clock)
        self.repository = RepositoryFactory.create_notification_repository(db)

    def notify(
        self,
        recipient_id: str,
        title: str,
        message: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        try:
            with self.repository.transaction():
                self.repository.create(
                    recipient_id=recipient_id,
                    title=title,
                    message=message,
                    payload=payload or {},
                )
        except Exception as exc:
            self.logger.error(
                "Failed to record notification '%s' for %s: %s", title, recipient_id, exc
            )

    def notify_operators(
        self, title: str, message: str, payload: Optional[Dict[str, Any]] = None
    ) -> None:
        self.notify(OPERATORS_RECIPIENT, title, message, payload)

    def list_for_recipient(self, recipient_id: str, limit: int = 50) -> List[Notification]:
        return self.repository.list_for_recipient(recipient_id, limit=limit)
