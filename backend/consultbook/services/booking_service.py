# backend/consultbook/services/booking_service.py
"""
Booking Service for consultbook

Handles the booking lifecycle:
- Creation against a subscription (quota checked) or a one-off charge
- Operator approval / rejection
- Cancellation with refund of one-off charges
- Completion and rating
- The schedule-change transition used by reschedule approval

Writers re-validate slot availability while holding the per-(type, date)
slot lock, and persist storage-level slot claims in the same transaction
as the booking. Meeting links, refunds and notifications run after the
primary commit; their failures are logged and never undo the booking.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import settings
from ..core.enums import ActorRole, Decision
from ..core.exceptions import (
    BusinessRuleException,
    ConflictException,
    ForbiddenException,
    InvalidInputException,
    NoActiveSubscriptionException,
    NotFoundException,
    QuotaExceededException,
    SlotLockedException,
    SlotUnavailableException,
)
from ..core.slot_lock import slot_lock_sync
from ..core.ulid_helper import is_valid_ulid
from ..domain.booking_status import CANCELLABLE_STATUSES, derive_status_on_schedule_change
from ..domain.booking_types import capabilities_for, parse_booking_type
from ..domain.time_slots import (
    TimeSlot,
    earliest_start,
    normalize_slots,
    parse_booking_date,
    slot_duration_minutes,
)
from ..integrations.protocols import MeetingProvider, Notifier, PaymentGateway
from ..models.booking import Booking, BookingStatus, FundingSource, PaymentStatus
from ..models.review import MAX_REVIEW_LENGTH, Review
from ..models.subscription import SubscriptionPlan, UserSubscription
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import BookingListResponse, BookingResponse, Pagination
from .base import BaseService
from .notification_service import NotificationService
from .quota_service import QuotaService
from .slot_availability_service import SlotAvailabilityService

logger = logging.getLogger(__name__)


def parse_decision(value: Any) -> Decision:
    try:
        return Decision(str(getattr(value, "value", value)).lower())
    except ValueError:
        raise InvalidInputException(
            f"Invalid decision '{value}'. Use 'approved' or 'rejected'", field="status"
        ) from None


def parse_role(value: Union[ActorRole, str]) -> ActorRole:
    try:
        return ActorRole(getattr(value, "value", value))
    except ValueError:
        raise InvalidInputException(f"Invalid role '{value}'", field="role") from None


def validate_pagination(page: int, limit: int) -> Tuple[int, int]:
    if page < 1:
        raise InvalidInputException("page must be at least 1", field="page")
    if limit < 1 or limit > settings.max_page_size:
        raise InvalidInputException(
            f"limit must be between 1 and {settings.max_page_size}", field="limit"
        )
    return page, limit


class BookingService(BaseService):
    """
    Service layer for booking operations.

    Collaborators (meeting provider, payment gateway, notifier) are injected;
    production defaults are built from settings when omitted.
    """

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        *,
        notification_service: Optional[Notifier] = None,
        meeting_provider: Optional[MeetingProvider] = None,
        payment_gateway: Optional[PaymentGateway] = None,
        slot_service: Optional[SlotAvailabilityService] = None,
        quota_service: Optional[QuotaService] = None,
    ):
        super().__init__(db, clock)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.review_repository = RepositoryFactory.create_review_repository(db)
        self.subscription_repository = RepositoryFactory.create_subscription_repository(db)
        self.reschedule_repository = RepositoryFactory.create_reschedule_request_repository(db)
        self.notification_service = notification_service or NotificationService(db, self.clock)
        self.slot_service = slot_service or SlotAvailabilityService(db, self.clock)
        self.quota_service = quota_service or QuotaService(db, self.clock)
        self._meeting_provider = meeting_provider
        self._payment_gateway = payment_gateway

    @property
    def meeting_provider(self) -> MeetingProvider:
        if self._meeting_provider is None:
            from ..integrations.zoom_client import build_meeting_provider

            self._meeting_provider = build_meeting_provider()
        return self._meeting_provider

    @property
    def payment_gateway(self) -> PaymentGateway:
        if self._payment_gateway is None:
            from ..integrations.stripe_gateway import build_payment_gateway

            self._payment_gateway = build_payment_gateway()
        return self._payment_gateway

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    @BaseService.measure_operation("create_booking")
    def create_booking(
        self,
        user_id: str,
        booking_type: Any,
        booking_date: Any,
        slots: List[Any],
        *,
        details: Optional[Dict[str, Any]] = None,
        address: Optional[str] = None,
        amount: Union[Decimal, float, int] = 0,
    ) -> Booking:
        """
        Create a subscription-funded booking.

        Args:
            user_id: Booking subject
            booking_type: Booking type
            booking_date: date or ISO YYYY-MM-DD
            slots: Requested {start_time, end_time} slots
            details: Optional payload (subject, description, attachment ids)
            address: Optional address for onsite bookings
            amount: Recorded amount, zero for plan-covered sessions

        Returns:
            The pending booking

        Raises:
            InvalidInputException: Malformed date or slots
            SlotLockedException: Another writer is booking this date right now
            SlotUnavailableException: A slot is not free
            NoActiveSubscriptionException: No active, unexpired subscription
            NotFoundException: Subscription plan missing
            QuotaExceededException: Session allowance used up
        """
        type_enum = parse_booking_type(booking_type)
        target_date = parse_booking_date(booking_date, field="booking_date")
        requested = normalize_slots(slots)
        booking_amount = self._parse_amount(amount)

        self.log_operation(
            "create_booking",
            user_id=user_id,
            booking_type=type_enum.value,
            booking_date=str(target_date),
            slots=[s.key for s in requested],
        )

        with slot_lock_sync(type_enum.value, target_date) as acquired:
            if not acquired:
                raise SlotLockedException(type_enum.value, str(target_date))

            self.slot_service.assert_slots_available(type_enum, target_date, requested)

            subscription, plan = self._require_subscription(user_id)
            usage = self.quota_service.usage_for(user_id, subscription, plan)
            if not usage.has_capacity:
                raise QuotaExceededException(usage.used, usage.allowance)

            booking = self._persist_booking(
                user_id=user_id,
                booking_type=type_enum.value,
                booking_date=target_date,
                slots=requested,
                amount=booking_amount,
                funding_source=FundingSource.SUBSCRIPTION,
                payment_reference=None,
                details=details,
                address=address,
            )

        self._after_create(booking)
        return booking

    @BaseService.measure_operation("create_paid_booking")
    def create_paid_booking(
        self,
        user_id: str,
        booking_type: Any,
        booking_date: Any,
        slots: List[Any],
        *,
        amount: Union[Decimal, float, int],
        payment_reference: str,
        details: Optional[Dict[str, Any]] = None,
        address: Optional[str] = None,
    ) -> Booking:
        """
        Create a booking paid by a one-off charge (consumes a "charge succeeded" event).

        No subscription or quota check. SlotUnavailableException is raised to
        the caller, which owns refunding the charge.
        """
        type_enum = parse_booking_type(booking_type)
        target_date = parse_booking_date(booking_date, field="booking_date")
        requested = normalize_slots(slots)
        booking_amount = self._parse_amount(amount)
        if booking_amount <= 0:
            raise InvalidInputException("amount must be positive for a paid booking", field="amount")
        if not payment_reference or not str(payment_reference).strip():
            raise InvalidInputException("payment_reference is required", field="payment_reference")

        self.log_operation(
            "create_paid_booking",
            user_id=user_id,
            booking_type=type_enum.value,
            booking_date=str(target_date),
            payment_reference=payment_reference,
        )

        with slot_lock_sync(type_enum.value, target_date) as acquired:
            if not acquired:
                raise SlotLockedException(type_enum.value, str(target_date))
            self.slot_service.assert_slots_available(type_enum, target_date, requested)
            booking = self._persist_booking(
                user_id=user_id,
                booking_type=type_enum.value,
                booking_date=target_date,
                slots=requested,
                amount=booking_amount,
                funding_source=FundingSource.ONE_OFF,
                payment_reference=str(payment_reference).strip(),
                details=details,
                address=address,
            )

        self._after_create(booking)
        return booking

    def _require_subscription(self, user_id: str) -> Tuple[UserSubscription, SubscriptionPlan]:
        subscription = self.subscription_repository.find_active_subscription(user_id, self.now())
        if subscription is None:
            raise NoActiveSubscriptionException(user_id)
        plan = self.subscription_repository.find_plan(subscription.plan_id)
        if plan is None:
            raise NotFoundException("Subscription plan not found")
        return subscription, plan

    @staticmethod
    def _parse_amount(amount: Union[Decimal, float, int, str]) -> Decimal:
        try:
            value = Decimal(str(amount))
        except (InvalidOperation, ValueError):
            raise InvalidInputException(f"Invalid amount '{amount}'", field="amount") from None
        if value < 0:
            raise InvalidInputException("amount must not be negative", field="amount")
        return value

    def _persist_booking(
        self,
        *,
        user_id: str,
        booking_type: str,
        booking_date: date,
        slots: List[TimeSlot],
        amount: Decimal,
        funding_source: FundingSource,
        payment_reference: Optional[str],
        details: Optional[Dict[str, Any]],
        address: Optional[str],
    ) -> Booking:
        try:
            with self.booking_repository.transaction():
                booking = self.booking_repository.create(
                    user_id=user_id,
                    booking_type=booking_type,
                    booking_date=booking_date,
                    slots=[slot.to_dict() for slot in slots],
                    status=BookingStatus.PENDING.value,
                    payment_status=PaymentStatus.PAID.value,
                    amount=amount,
                    funding_source=funding_source.value,
                    payment_reference=payment_reference,
                    details=details,
                    address=address,
                    is_rescheduled=False,
                )
                self.booking_repository.claim_slots(booking, booking_date, slots)
        except IntegrityError as exc:
            self.logger.warning(
                "Slot claim conflict for %s on %s: %s",
                booking_type,
                booking_date,
                [s.key for s in slots],
            )
            raise SlotUnavailableException(
                details={"booking_date": str(booking_date), "slots": [s.key for s in slots]}
            ) from exc
        self.logger.info("Booking %s created (%s on %s)", booking.id, booking_type, booking_date)
        return booking

    def _after_create(self, booking: Booking) -> None:
        self.refresh_meeting_link(booking)
        caps = capabilities_for(booking.booking_type)
        self.notification_service.notify_operators(
            "New Booking",
            f"New {caps.display_name} booking {booking.booking_ref} for "
            f"{booking.booking_date.isoformat()}.",
            {"booking_id": booking.id, "user_id": booking.user_id},
        )

    def refresh_meeting_link(self, booking: Booking) -> Optional[str]:
        """
        Provision a meeting link for live-meeting booking types.

        Failures are logged and leave the booking without a link.
        """
        caps = capabilities_for(booking.booking_type)
        if not caps.requires_live_meeting or not booking.slots:
            return None
        first_slot = booking.time_slots[0]
        duration = slot_duration_minutes(
            first_slot, minimum=caps.min_slot_minutes, default=caps.default_slot_minutes
        )
        try:
            link = self.meeting_provider.create_meeting(
                booking_id=booking.id,
                start=first_slot.starts_at(booking.booking_date),
                duration_minutes=duration,
            )
        except Exception as exc:
            self.logger.error("Failed to create meeting link for booking %s: %s", booking.id, exc)
            return None
        try:
            with self.booking_repository.transaction():
                booking.meeting_link = link
        except SQLAlchemyError as exc:
            self.logger.error("Failed to store meeting link for booking %s: %s", booking.id, exc)
            return None
        return link

    # ------------------------------------------------------------------
    # Operator decision
    # ------------------------------------------------------------------

    @BaseService.measure_operation("approve_or_reject_booking")
    def approve_or_reject(
        self,
        booking_id: str,
        decision: Any,
        rejection_reason: Optional[str] = None,
        operator_id: Optional[str] = None,
    ) -> Booking:
        """
        Decide a pending booking.

        Approval clears any reason and promotes the booking to ``upcoming``
        when its start is still ahead. Rejection requires a non-blank reason.
        """
        choice = parse_decision(decision)
        reason = (rejection_reason or "").strip()
        if choice is Decision.REJECTED and not reason:
            raise InvalidInputException(
                "Rejection reason is required when rejecting a booking", field="rejection_reason"
            )

        booking = self._require_booking(booking_id)
        if booking.status != BookingStatus.PENDING.value:
            raise BusinessRuleException(
                f"Booking is already {booking.status}. "
                "Only pending bookings can be approved or rejected."
            )

        self.log_operation(
            "approve_or_reject", booking_id=booking_id, decision=choice.value, operator_id=operator_id
        )
        with self.transaction():
            if choice is Decision.APPROVED:
                booking.status = derive_status_on_schedule_change(
                    BookingStatus.APPROVED, booking.start_datetime, self.now()
                ).value
                booking.rejection_reason = None
            else:
                booking.status = BookingStatus.REJECTED.value
                booking.rejection_reason = reason

        if choice is Decision.APPROVED:
            title, message = "Booking Approved", f"Your booking {booking.booking_ref} has been approved."
        else:
            title = "Booking Rejected"
            message = f"Your booking {booking.booking_ref} has been rejected. Reason: {reason}"
        self.notification_service.notify(
            booking.user_id, title, message, {"booking_id": booking.id, "status": booking.status}
        )
        return booking

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(
        self,
        booking_id: str,
        actor_id: str,
        actor_role: Union[ActorRole, str] = ActorRole.USER,
        reason: Optional[str] = None,
    ) -> Booking:
        """
        Cancel a pending booking and release its slots.

        A paid one-off charge is refunded after the cancellation commits; a
        refund failure is logged and the booking stays cancelled.

        Raises:
            NotFoundException: Booking not found
            ForbiddenException: A user cancelling someone else's booking
            BusinessRuleException: Booking is not pending
        """
        role = parse_role(actor_role)
        booking = self._require_booking(booking_id)
        if role is ActorRole.USER and not booking.is_owned_by(actor_id):
            raise ForbiddenException("You can only cancel your own bookings")
        if booking.status not in {s.value for s in CANCELLABLE_STATUSES}:
            raise BusinessRuleException(
                f"Only pending bookings can be cancelled. Current status: {booking.status}"
            )

        self.log_operation("cancel_booking", booking_id=booking_id, actor_role=role.value)
        with self.booking_repository.transaction():
            booking.cancel(actor_id, self.now(), reason)
            self.booking_repository.release_slots(booking)

        self._refund_if_charged(booking)

        message = f"Booking {booking.booking_ref} has been cancelled."
        payload = {"booking_id": booking.id, "status": booking.status}
        if role is ActorRole.USER:
            self.notification_service.notify_operators("Booking Cancelled", message, payload)
        else:
            self.notification_service.notify(booking.user_id, "Booking Cancelled", message, payload)
        return booking

    def _refund_if_charged(self, booking: Booking) -> bool:
        if (
            booking.funding_source != FundingSource.ONE_OFF.value
            or booking.payment_status != PaymentStatus.PAID.value
            or not booking.payment_reference
        ):
            return False
        try:
            result = self.payment_gateway.refund(
                booking.payment_reference, Decimal(str(booking.amount or 0))
            )
        except Exception as exc:
            self.logger.error("Refund failed for booking %s: %s", booking.id, exc)
            return False
        if not result.accepted:
            self.logger.error(
                "Refund %s for booking %s came back %s; payment left as paid for reconciliation",
                result.refund_id,
                booking.id,
                result.status,
            )
            return False
        try:
            with self.booking_repository.transaction():
                booking.payment_status = PaymentStatus.REFUNDED.value
        except SQLAlchemyError as exc:
            self.logger.error(
                "Refund %s issued but booking %s not updated: %s", result.refund_id, booking.id, exc
            )
            return False
        self.logger.info("Refund %s issued for booking %s", result.refund_id, booking.id)
        return True

    @BaseService.measure_operation("record_refund")
    def record_refund(self, payment_reference: str) -> int:
        """Mark bookings paid by ``payment_reference`` as refunded (consumes "refund issued" events)."""
        bookings = self.booking_repository.find_by_payment_reference(payment_reference)
        updated = 0
        with self.transaction():
            for booking in bookings:
                if booking.payment_status != PaymentStatus.REFUNDED.value:
                    booking.payment_status = PaymentStatus.REFUNDED.value
                    updated += 1
        if updated:
            self.logger.info("Marked %d booking(s) refunded for %s", updated, payment_reference)
        return updated

    # ------------------------------------------------------------------
    # Completion and review
    # ------------------------------------------------------------------

    @BaseService.measure_operation("mark_booking_completed")
    def mark_completed(self, booking_id: str) -> Booking:
        booking = self._require_booking(booking_id)
        if booking.status == BookingStatus.COMPLETED.value:
            raise BusinessRuleException("Booking is already completed")
        if booking.status in (BookingStatus.CANCELLED.value, BookingStatus.REJECTED.value):
            raise BusinessRuleException(f"Cannot mark {booking.status} booking as completed")

        with self.transaction():
            booking.complete(self.now())

        self.notification_service.notify(
            booking.user_id,
            "Booking Completed",
            f"Your booking {booking.booking_ref} has been marked as completed.",
            {"booking_id": booking.id},
        )
        return booking

    def complete_elapsed(self, booking: Booking) -> Booking:
        """Time-driven completion; the caller owns the transaction."""
        booking.complete(self.now())
        self.booking_repository.flush()
        return booking

    @BaseService.measure_operation("rate_and_review_booking")
    def rate_and_review(
        self,
        booking_id: str,
        user_id: str,
        rating: int,
        review_text: Optional[str] = None,
    ) -> Review:
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise InvalidInputException("Rating must be an integer from 1 to 5", field="rating")
        text = review_text.strip() if review_text else None
        if text and len(text) > MAX_REVIEW_LENGTH:
            raise InvalidInputException(
                f"Review must be at most {MAX_REVIEW_LENGTH} characters", field="review_text"
            )

        booking = self._require_booking(booking_id)
        if not booking.is_owned_by(user_id):
            raise ForbiddenException("You can only review your own bookings")
        if booking.status != BookingStatus.COMPLETED.value:
            raise BusinessRuleException("Only completed bookings can be reviewed")
        if self.review_repository.get_by_booking_id(booking.id) is not None:
            raise ConflictException("You have already reviewed this booking")

        with self.transaction():
            review = self.review_repository.create(
                booking_id=booking.id, user_id=user_id, rating=rating, review_text=text
            )

        self.notification_service.notify_operators(
            "New Review",
            f"Booking {booking.booking_ref} received a {rating}-star review.",
            {"booking_id": booking.id, "rating": rating},
        )
        return review

    # ------------------------------------------------------------------
    # Schedule change (reschedule approval)
    # ------------------------------------------------------------------

    def apply_schedule_change(
        self, booking: Booking, new_date: date, new_slots: List[TimeSlot]
    ) -> Booking:
        """
        Move a booking to a new date and slots. The caller owns the transaction.

        Old slot claims are released before the new ones are written, the
        reminder guard is reset, and the status is re-derived from the new start.
        IntegrityError from the new claims propagates.
        """
        slots = normalize_slots(new_slots)
        self.booking_repository.release_slots(booking)
        booking.booking_date = new_date
        booking.slots = [slot.to_dict() for slot in slots]
        booking.is_rescheduled = True
        booking.reminder_sent_at = None
        booking.status = derive_status_on_schedule_change(
            booking.status, earliest_start(new_date, slots), self.now()
        ).value
        self.booking_repository.claim_slots(booking, new_date, slots)
        return booking

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _require_booking(self, booking_id: str) -> Booking:
        booking = (
            self.booking_repository.get_by_id(booking_id) if is_valid_ulid(booking_id) else None
        )
        if booking is None:
            raise NotFoundException("Booking not found")
        return booking

    def get_booking(self, booking_id: str, user_id: Optional[str] = None) -> BookingResponse:
        """Booking details; when ``user_id`` is given the booking must belong to it."""
        booking = self._require_booking(booking_id)
        if user_id is not None and not booking.is_owned_by(user_id):
            raise NotFoundException("Booking not found")
        return BookingResponse.from_booking(
            booking,
            has_pending_reschedule=self.reschedule_repository.has_pending_for_booking(booking.id),
            include_review=True,
        )

    @BaseService.measure_operation("list_bookings")
    def list_bookings(
        self,
        *,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        booking_type: Optional[str] = None,
        date_from: Optional[Any] = None,
        date_to: Optional[Any] = None,
        page: int = 1,
        limit: int = 10,
    ) -> BookingListResponse:
        page, limit = validate_pagination(page, limit)
        if status is not None:
            try:
                status = BookingStatus(status).value
            except ValueError:
                raise InvalidInputException(f"Invalid status '{status}'", field="status") from None
        items, total = self.booking_repository.list_bookings(
            user_id=user_id,
            status=status,
            booking_type=parse_booking_type(booking_type).value if booking_type else None,
            date_from=parse_booking_date(date_from, field="date_from") if date_from else None,
            date_to=parse_booking_date(date_to, field="date_to") if date_to else None,
            page=page,
            limit=limit,
        )
        return BookingListResponse(
            items=[BookingResponse.from_booking(b) for b in items],
            pagination=Pagination.build(page, limit, total),
        )

    def count_pending_bookings(self) -> int:
        return self.booking_repository.count_by_status(BookingStatus.PENDING.value)
