# backend/consultbook/services/reschedule_service.py
"""
Reschedule Service for consultbook

Two-party negotiation for moving a scheduled booking:
- Either the booking's subject or an operator proposes a new date and slots
- Only the counterparty of the proposer may approve or reject
- The proposer may withdraw while the request is pending

Subjects must propose at least ``reschedule_notice_hours`` ahead of the
booking; operators are exempt. Approval re-validates the requested slots
under the slot lock and moves the booking through
BookingService.apply_schedule_change.
"""

from datetime import date
import logging
from typing import Any, List, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import settings
from ..core.enums import ActorRole, Decision
from ..core.exceptions import (
    BusinessRuleException,
    ConflictException,
    ForbiddenException,
    InsufficientNoticeException,
    InvalidInputException,
    NotFoundException,
    SlotLockedException,
    SlotUnavailableException,
)
from ..core.slot_lock import slot_lock_sync
from ..core.ulid_helper import is_valid_ulid
from ..domain.booking_status import SCHEDULED_STATUSES
from ..domain.time_slots import TimeSlot, hours_until, normalize_slots, parse_booking_date
from ..integrations.protocols import Notifier
from ..models.booking import Booking
from ..models.reschedule_request import RescheduleRequest, RescheduleStatus
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import Pagination
from ..schemas.reschedule import RescheduleRequestListResponse, RescheduleRequestResponse
from .base import BaseService
from .booking_service import BookingService, parse_decision, parse_role, validate_pagination
from .notification_service import NotificationService
from .slot_availability_service import SlotAvailabilityService

logger = logging.getLogger(__name__)


class RescheduleService(BaseService):
    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        *,
        booking_service: Optional[BookingService] = None,
        notification_service: Optional[Notifier] = None,
        slot_service: Optional[SlotAvailabilityService] = None,
    ):
        super().__init__(db, clock)
        self.repository = RepositoryFactory.create_reschedule_request_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.notification_service = notification_service or NotificationService(db, self.clock)
        self.slot_service = slot_service or SlotAvailabilityService(db, self.clock)
        self.booking_service = booking_service or BookingService(
            db,
            self.clock,
            notification_service=self.notification_service,
            slot_service=self.slot_service,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found")
        return booking

    def _require_request(self, request_id: str) -> RescheduleRequest:
        request = self.repository.get_by_id(request_id) if is_valid_ulid(request_id) else None
        if request is None:
            raise NotFoundException("Reschedule request not found")
        return request

    def _notify_party(
        self, role: ActorRole, booking: Booking, title: str, message: str, request: RescheduleRequest
    ) -> None:
        payload = {"booking_id": booking.id, "request_id": request.id, "status": request.status}
        if role is ActorRole.OPERATOR:
            self.notification_service.notify_operators(title, message, payload)
        else:
            self.notification_service.notify(booking.user_id, title, message, payload)

    # ------------------------------------------------------------------
    # Propose
    # ------------------------------------------------------------------

    @BaseService.measure_operation("propose_reschedule")
    def propose(
        self,
        booking_id: str,
        proposer_role: Union[ActorRole, str],
        proposer_id: str,
        new_date: Any,
        new_slots: List[Any],
    ) -> RescheduleRequest:
        """
        Propose moving a scheduled booking.

        Raises:
            NotFoundException: Booking not found
            ForbiddenException: A subject proposing for someone else's booking
            BusinessRuleException: Booking not scheduled
            ConflictException: A pending request already exists
            InsufficientNoticeException: Subject proposing inside the notice window
            SlotUnavailableException: A requested slot is not free
        """
        role = parse_role(proposer_role)
        target_date = parse_booking_date(new_date, field="new_date")
        slots = normalize_slots(new_slots)

        booking = self._require_booking(booking_id)
        if role is ActorRole.USER and not booking.is_owned_by(proposer_id):
            raise ForbiddenException("You can only reschedule your own bookings")
        if booking.status not in {s.value for s in SCHEDULED_STATUSES}:
            raise BusinessRuleException(
                f"Only approved, confirmed or upcoming bookings can be rescheduled. "
                f"Current status: {booking.status}"
            )
        if self.repository.has_pending_for_booking(booking.id):
            raise ConflictException("A reschedule request is already pending for this booking")

        if role is ActorRole.USER:
            notice = hours_until(booking.start_datetime, self.now())
            if notice < settings.reschedule_notice_hours:
                raise InsufficientNoticeException(
                    settings.reschedule_notice_hours, notice, action="Reschedule requests"
                )

        self.slot_service.assert_slots_available(
            booking.booking_type, target_date, slots, exclude_booking_id=booking.id
        )

        self.log_operation(
            "propose_reschedule", booking_id=booking.id, proposer_role=role.value, new_date=str(target_date)
        )
        try:
            with self.repository.transaction():
                request = self.repository.add_pending(
                    booking_id=booking.id,
                    user_id=booking.user_id,
                    requested_date=target_date,
                    requested_slots=[slot.to_dict() for slot in slots],
                    requested_by=role.value,
                    requested_by_id=proposer_id,
                )
        except IntegrityError:
            self.logger.warning("Concurrent reschedule proposal for booking %s", booking_id)
            raise ConflictException(
                "A reschedule request is already pending for this booking"
            ) from None

        self._notify_party(
            role.counterparty,
            booking,
            "Reschedule Requested",
            f"A reschedule of booking {booking.booking_ref} to "
            f"{target_date.strftime('%m/%d/%Y')} has been requested.",
            request,
        )
        return request

    # ------------------------------------------------------------------
    # Respond
    # ------------------------------------------------------------------

    @BaseService.measure_operation("respond_reschedule")
    def respond(
        self,
        request_id: str,
        responder_role: Union[ActorRole, str],
        responder_id: str,
        decision: Any,
        notes: Optional[str] = None,
    ) -> RescheduleRequest:
        """
        Approve or reject a pending request as the proposer's counterparty.

        Approval moves the booking; rejection leaves it untouched.
        """
        role = parse_role(responder_role)
        request = self._require_request(request_id)
        if role.value == request.requested_by:
            raise ForbiddenException("Only the other party can respond to this reschedule request")
        booking = self._require_booking(request.booking_id)
        if role is ActorRole.USER and not booking.is_owned_by(responder_id):
            raise ForbiddenException("You can only respond to requests for your own bookings")
        if not request.is_pending:
            raise BusinessRuleException(f"Reschedule request is already {request.status}")
        choice = parse_decision(decision)

        self.log_operation(
            "respond_reschedule", request_id=request.id, responder_role=role.value, decision=choice.value
        )
        if choice is Decision.APPROVED:
            self._approve(request, booking, responder_id, notes)
        else:
            with self.transaction():
                self._mark_reviewed(request, RescheduleStatus.REJECTED, responder_id, notes)

        verb = "approved" if choice is Decision.APPROVED else "rejected"
        self._notify_party(
            role.counterparty,
            booking,
            f"Reschedule {verb.capitalize()}",
            f"The reschedule request for booking {booking.booking_ref} has been {verb}.",
            request,
        )
        return request

    def _mark_reviewed(
        self,
        request: RescheduleRequest,
        status: RescheduleStatus,
        reviewer_id: str,
        notes: Optional[str],
    ) -> None:
        request.status = status.value
        request.reviewed_by_id = reviewer_id
        request.reviewed_at = self.now()
        request.notes = notes.strip() if notes else None

    def _approve(
        self,
        request: RescheduleRequest,
        booking: Booking,
        reviewer_id: str,
        notes: Optional[str],
    ) -> None:
        if booking.status not in {s.value for s in SCHEDULED_STATUSES}:
            raise BusinessRuleException(
                f"Booking is {booking.status} and can no longer be rescheduled"
            )
        target_date: date = request.requested_date
        slots: List[TimeSlot] = request.time_slots

        with slot_lock_sync(booking.booking_type, target_date) as acquired:
            if not acquired:
                raise SlotLockedException(booking.booking_type, str(target_date))
            self.slot_service.assert_slots_available(
                booking.booking_type, target_date, slots, exclude_booking_id=booking.id
            )
            try:
                with self.repository.transaction():
                    self.booking_service.apply_schedule_change(booking, target_date, slots)
                    self._mark_reviewed(request, RescheduleStatus.APPROVED, reviewer_id, notes)
            except IntegrityError as exc:
                self.logger.warning(
                    "Slot claim conflict approving reschedule %s for booking %s", request.id, booking.id
                )
                raise SlotUnavailableException(
                    details={"booking_date": str(target_date), "slots": [s.key for s in slots]}
                ) from exc

        self.logger.info(
            "Booking %s moved to %s %s", booking.id, target_date, [s.key for s in slots]
        )
        self.booking_service.refresh_meeting_link(booking)

    # ------------------------------------------------------------------
    # Withdraw
    # ------------------------------------------------------------------

    @BaseService.measure_operation("withdraw_reschedule")
    def withdraw(
        self, request_id: str, actor_role: Union[ActorRole, str], actor_id: str
    ) -> RescheduleRequest:
        role = parse_role(actor_role)
        request = self._require_request(request_id)
        if role.value != request.requested_by or (
            role is ActorRole.USER and request.requested_by_id != actor_id
        ):
            raise ForbiddenException("Only the party who proposed the reschedule can withdraw it")
        if not request.is_pending:
            raise BusinessRuleException(f"Reschedule request is already {request.status}")

        notice = hours_until(request.requested_start, self.now())
        if notice < settings.reschedule_notice_hours:
            raise InsufficientNoticeException(
                settings.reschedule_notice_hours, notice, action="Withdrawals"
            )

        with self.transaction():
            request.status = RescheduleStatus.WITHDRAWN.value

        booking = request.booking or self._require_booking(request.booking_id)
        self._notify_party(
            role.counterparty,
            booking,
            "Reschedule Withdrawn",
            f"The reschedule request for booking {booking.booking_ref} has been withdrawn.",
            request,
        )
        return request

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_request(self, request_id: str, user_id: Optional[str] = None) -> RescheduleRequestResponse:
        request = self._require_request(request_id)
        if user_id is not None and request.user_id != user_id:
            raise NotFoundException("Reschedule request not found")
        return RescheduleRequestResponse.from_request(request)

    def list_requests(
        self,
        *,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        requested_by: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> RescheduleRequestListResponse:
        page, limit = validate_pagination(page, limit)
        if status is not None:
            try:
                status = RescheduleStatus(status).value
            except ValueError:
                raise InvalidInputException(f"Invalid status '{status}'", field="status") from None
        if requested_by is not None:
            requested_by = parse_role(requested_by).value
        items, total = self.repository.list_requests(
            user_id=user_id, status=status, requested_by=requested_by, page=page, limit=limit
        )
        return RescheduleRequestListResponse(
            items=[RescheduleRequestResponse.from_request(r) for r in items],
            pagination=Pagination.build(page, limit, total),
        )

    def get_pending_for_booking(self, booking_id: str) -> Optional[RescheduleRequest]:
        return self.repository.get_pending_for_booking(booking_id)
