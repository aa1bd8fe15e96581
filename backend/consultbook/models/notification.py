# backend/consultbook/models/notification.py
"""In-app notification records written by NotificationService."""

from sqlalchemy import JSON, Column, DateTime, String, Text
from sqlalchemy.sql import func

from ..core.ulid_helper import generate_ulid
from ..database import Base

OPERATORS_RECIPIENT = "operators"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    recipient_id = Column(String(26), nullable=False, index=True)  # user id or OPERATORS_RECIPIENT
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    payload = Column(JSON, nullable=True)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<Notification {self.recipient_id} '{self.title}'>"
