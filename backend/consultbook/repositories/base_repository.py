# backend/consultbook/repositories/base_repository.py
"""
Base repository for consultbook.

Every repository wraps one model and one session. Writes flush but never
commit: the calling service decides where the unit of work ends, either
through BaseService.transaction() or through ``repository.transaction()``
when it needs IntegrityError to reach it unwrapped (slot claims).
"""

from contextlib import contextmanager
import logging
from typing import Any, Generic, Iterator, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException

ModelT = TypeVar("ModelT")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[ModelT]):
    """Lookups, counts and inserts shared by all consultbook repositories."""

    def __init__(self, db: Session, model: Type[ModelT]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @property
    def _name(self) -> str:
        return self.model.__name__

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Commit on success, roll back and re-raise on any error.

        Unlike BaseService.transaction(), SQLAlchemy errors are not wrapped,
        so callers can translate IntegrityError into a domain conflict.
        """
        try:
            yield self.db
            self.db.commit()
        except SQLAlchemyError as exc:
            self.logger.error("%s transaction rolled back: %s", self._name, exc)
            self.db.rollback()
            raise
        except Exception:
            self.db.rollback()
            raise

    def flush(self) -> None:
        self.db.flush()

    def get_by_id(self, id: str, load_relationships: bool = True) -> Optional[ModelT]:
        try:
            query = self.db.query(self.model).filter(self.model.id == id)
            if load_relationships:
                query = self._apply_eager_loading(query)
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading {self._name} {id}: {e}")
            raise RepositoryException(f"Failed to retrieve {self._name}: {str(e)}")

    def create(self, **fields: Any) -> ModelT:
        """
        Add and flush a new row so its generated id is available.

        Raises:
            RepositoryException: Constraint violation or store failure
        """
        try:
            entity = self.model(**fields)
            self.db.add(entity)
            self.db.flush()
            return entity
        except IntegrityError as exc:
            self.logger.error("Constraint violated inserting %s: %s", self._name, exc)
            self.db.rollback()
            raise RepositoryException(f"Integrity constraint violated: {exc}") from exc
        except SQLAlchemyError as e:
            self.logger.error(f"Error inserting {self._name}: {e}")
            self.db.rollback()
            raise RepositoryException(f"Failed to create {self._name}: {str(e)}")

    def exists(self, **criteria: Any) -> bool:
        return self.find_one_by(**criteria) is not None

    def count(self, **criteria: Any) -> int:
        try:
            return self.db.query(self.model).filter_by(**criteria).count()
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting {self._name} rows: {e}")
            raise RepositoryException(f"Failed to count records: {str(e)}")

    def find_by(self, **criteria: Any) -> List[ModelT]:
        """All rows whose columns equal ``criteria``."""
        try:
            return self.db.query(self.model).filter_by(**criteria).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error querying {self._name} by {sorted(criteria)}: {e}")
            raise RepositoryException(f"Failed to find records: {str(e)}")

    def find_one_by(self, **criteria: Any) -> Optional[ModelT]:
        try:
            return self.db.query(self.model).filter_by(**criteria).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error querying {self._name} by {sorted(criteria)}: {e}")
            raise RepositoryException(f"Failed to find record: {str(e)}")

    def _apply_eager_loading(self, query: Query) -> Query:
        """Subclasses add joinedload/selectinload options for their relationships."""
        return query

    def _paginate(self, query: Query, page: int, limit: int) -> List[Any]:
        return query.offset((page - 1) * limit).limit(limit).all()
