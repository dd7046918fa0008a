"""
Base repository class for data access.

Repositories are the only code that writes persisted entities. Writes that
must be idempotent go through ``upsert_by`` which performs a
check-then-insert keyed on a unique column and recovers from the
IntegrityError raised when a concurrent writer won the insert.

Example:
    class GameRepository(BaseRepository[Game]):
        def find_by_external_id(self, external_id: str) -> Optional[Game]:
            return self.find_one_by(external_id=external_id)
"""
import uuid
from abc import ABC
from typing import TypeVar, Generic, Type, Optional, List, Any, Dict

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from oddsedge.core.errors import PersistenceError
from oddsedge.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class BaseRepository(Generic[T], ABC):
    """
    Base repository providing common data access methods.

    Attributes:
        model_type: The SQLAlchemy model class this repository manages
        db: The database session
    """

    def __init__(self, model_type: Type[T], db: Session):
        self.model_type = model_type
        self.db = db

    def find_by_id(self, id: str) -> Optional[T]:
        return self.db.query(self.model_type).filter(self.model_type.id == id).first()

    def find_one_by(self, **filters: Any) -> Optional[T]:
        return self.db.query(self.model_type).filter_by(**filters).first()

    def find_all(
        self,
        limit: Optional[int] = None,
        order_by: Optional[str] = None,
    ) -> List[T]:
        """
        Find all records.

        Args:
            limit: Maximum number of records to return
            order_by: Column name to order by (prefix with '-' for descending)
        """
        query = self.db.query(self.model_type)
        if order_by:
            if order_by.startswith("-"):
                query = query.order_by(desc(getattr(self.model_type, order_by[1:])))
            else:
                query = query.order_by(getattr(self.model_type, order_by))
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def upsert_by(self, key_column: str, key_value: Any, values: Dict[str, Any]) -> T:
        """
        Insert or update the row whose ``key_column`` equals ``key_value``.

        The session is committed on success. On any database failure the
        session is rolled back and PersistenceError is raised.

        Args:
            key_column: Name of a uniquely constrained column
            key_value: Value identifying the row
            values: Column values to write

        Returns:
            The persisted entity
        """
        model = self.model_type
        try:
            existing = self.find_one_by(**{key_column: key_value})
            if existing is not None:
                self._apply(existing, values)
                self.db.commit()
                return existing

            entity = model(id=str(uuid.uuid4()), **{key_column: key_value}, **values)
            self.db.add(entity)
            try:
                self.db.flush()
            except IntegrityError:
                # Another writer inserted the same key between check and insert
                self.db.rollback()
                existing = self.find_one_by(**{key_column: key_value})
                if existing is None:
                    raise
                self._apply(existing, values)
                entity = existing

            self.db.commit()
            return entity
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Upsert failed for {model.__tablename__} {key_column}={key_value}: {e}")
            raise PersistenceError(f"{model.__tablename__} upsert failed: {e}") from e

    @staticmethod
    def _apply(entity: Any, values: Dict[str, Any]) -> None:
        for field, value in values.items():
            setattr(entity, field, value)
