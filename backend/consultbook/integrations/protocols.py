"""Collaborator contracts the scheduling services depend on."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Protocol


@dataclass(frozen=True)
class RefundResult:
    refund_id: str
    status: str

    @property
    def accepted(self) -> bool:
        """Settled (``succeeded``) or still in flight (``pending``)."""
        return self.status in ("succeeded", "pending")


class PaymentGateway(Protocol):
    def refund(self, payment_reference: str, amount: Decimal) -> RefundResult:
        ...


class MeetingProvider(Protocol):
    def create_meeting(self, *, booking_id: str, start: datetime, duration_minutes: int) -> str:
        ...


class Notifier(Protocol):
    def notify(
        self,
        recipient_id: str,
        title: str,
        message: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        ...

    def notify_operators(
        self, title: str, message: str, payload: Optional[Dict[str, Any]] = None
    ) -> None:
        ...
