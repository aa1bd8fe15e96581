"""Stripe refunds for one-off booking charges."""

from __future__ import annotations

from decimal import Decimal
import logging
from typing import Any, Optional

import stripe

from consultbook.core.config import settings
from consultbook.core.exceptions import ServiceException
from consultbook.integrations.protocols import RefundResult

logger = logging.getLogger(__name__)


def _to_cents(amount: Decimal | float | int) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1")))


class StripeRefundGateway:
    """Issues full refunds against a payment intent or charge id."""

    def __init__(self, api_key: Optional[str] = None) -> None:
        key = api_key
        if key is None and settings.stripe_secret_key:
            key = settings.stripe_secret_key.get_secret_value()
        if not key:
            raise ServiceException("Stripe secret key not configured", code="STRIPE_NOT_CONFIGURED")
        stripe.api_key = key
        stripe.max_network_retries = 1

    def refund(self, payment_reference: str, amount: Decimal) -> RefundResult:
        params: dict[str, Any] = {
            "amount": _to_cents(amount),
            "metadata": {"reason": "booking_cancelled"},
            "idempotency_key": f"booking-refund:{payment_reference}",
        }
        if payment_reference.startswith("ch_"):
            params["charge"] = payment_reference
        else:
            params["payment_intent"] = payment_reference
        try:
            refund = stripe.Refund.create(**params)
        except stripe.StripeError as exc:
            logger.error("Stripe error refunding %s: %s", payment_reference, str(exc))
            raise ServiceException("Failed to refund payment") from exc

        logger.info(
            "Issued refund",
            extra={"payment_reference": payment_reference, "refund_id": getattr(refund, "id", None)},
        )
        return RefundResult(refund_id=str(refund.id), status=str(refund.status))


class NullPaymentGateway:
    """Used when Stripe is not configured; every refund attempt fails loudly."""

    def refund(self, payment_reference: str, amount: Decimal) -> RefundResult:
        raise ServiceException("Payments are not configured", code="STRIPE_NOT_CONFIGURED")


def build_payment_gateway() -> StripeRefundGateway | NullPaymentGateway:
    if settings.stripe_secret_key:
        return StripeRefundGateway()
    logger.warning("Stripe secret key not configured - refunds are disabled")
    return NullPaymentGateway()
