# backend/consultbook/repositories/reschedule_request_repository.py
"""Reschedule request data access."""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload

from ..core.exceptions import RepositoryException
from ..models.reschedule_request import RescheduleRequest, RescheduleStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class RescheduleRequestRepository(BaseRepository[RescheduleRequest]):
    def __init__(self, db: Session):
        super().__init__(db, RescheduleRequest)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(joinedload(RescheduleRequest.booking))

    def get_pending_for_booking(self, booking_id: str) -> Optional[RescheduleRequest]:
        try:
            return (
                self.db.query(RescheduleRequest)
                .filter(
                    RescheduleRequest.booking_id == booking_id,
                    RescheduleRequest.status == RescheduleStatus.PENDING.value,
                )
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading pending request for booking {booking_id}: {e}")
            raise RepositoryException(f"Failed to load reschedule request: {str(e)}")

    def has_pending_for_booking(self, booking_id: str) -> bool:
        return self.exists(booking_id=booking_id, status=RescheduleStatus.PENDING.value)

    def add_pending(self, **fields) -> RescheduleRequest:
        """
        Insert a pending request and flush.

        IntegrityError is left to the caller: another pending request for the
        same booking was committed first.
        """
        request = RescheduleRequest(status=RescheduleStatus.PENDING.value, **fields)
        try:
            self.db.add(request)
            self.db.flush()
            return request
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            self.logger.error(f"Error inserting reschedule request: {e}")
            raise RepositoryException(f"Failed to create reschedule request: {str(e)}")

    def list_requests(
        self,
        *,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        requested_by: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[RescheduleRequest], int]:
        try:
            query = self.db.query(RescheduleRequest)
            if user_id:
                query = query.filter(RescheduleRequest.user_id == user_id)
            if status:
                query = query.filter(RescheduleRequest.status == status)
            if requested_by:
                query = query.filter(RescheduleRequest.requested_by == requested_by)
            total = query.count()
            items = self._paginate(
                self._apply_eager_loading(query).order_by(RescheduleRequest.id.desc()),
                page,
                limit,
            )
            return items, total
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing reschedule requests: {e}")
            raise RepositoryException(f"Failed to list reschedule requests: {str(e)}")
