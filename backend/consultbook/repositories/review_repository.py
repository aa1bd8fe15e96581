# backend/consultbook/repositories/review_repository.py
"""Review data access."""

from typing import Optional

from sqlalchemy.orm import Session

from ..models.review import Review
from .base_repository import BaseRepository


class ReviewRepository(BaseRepository[Review]):
    def __init__(self, db: Session):
        super().__init__(db, Review)

    def get_by_booking_id(self, booking_id: str) -> Optional[Review]:
        return self.find_one_by(booking_id=booking_id)
