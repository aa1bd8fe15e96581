# backend/consultbook/repositories/availability_repository.py
"""
Availability Repository for consultbook

Loads and stores weekly availability templates. The resolver reads a
single (booking type, weekday) day; maintenance operations load the whole
template with its days and windows.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, selectinload

from ..core.enums import DayOfWeek
from ..core.exceptions import RepositoryException
from ..models.availability import AvailabilityDay, AvailabilityTemplate
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AvailabilityRepository(BaseRepository[AvailabilityTemplate]):
    """Repository for weekly availability templates."""

    def __init__(self, db: Session):
        super().__init__(db, AvailabilityTemplate)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            selectinload(AvailabilityTemplate.days).selectinload(AvailabilityDay.windows)
        )

    def get_by_booking_type(self, booking_type: str) -> Optional[AvailabilityTemplate]:
        """Template for a booking type with days and windows loaded."""
        try:
            query = self.db.query(AvailabilityTemplate).filter(
                AvailabilityTemplate.booking_type == booking_type
            )
            return self._apply_eager_loading(query).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading template for {booking_type}: {e}")
            raise RepositoryException(f"Failed to load availability template: {str(e)}")

    def get_active_day(self, booking_type: str, day: DayOfWeek) -> Optional[AvailabilityDay]:
        """
        The enabled template day for a weekday, or None.

        Returns None when the template is missing or inactive, or the day is
        missing or disabled.
        """
        try:
            return (
                self.db.query(AvailabilityDay)
                .join(AvailabilityTemplate, AvailabilityDay.template_id == AvailabilityTemplate.id)
                .options(selectinload(AvailabilityDay.windows))
                .filter(
                    AvailabilityTemplate.booking_type == booking_type,
                    AvailabilityTemplate.is_active.is_(True),
                    AvailabilityDay.day_of_week == day.value,
                    AvailabilityDay.is_enabled.is_(True),
                )
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading {day.value} for {booking_type}: {e}")
            raise RepositoryException(f"Failed to load availability day: {str(e)}")
