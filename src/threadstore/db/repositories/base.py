"""
Base repository with generic CRUD operations.
"""

from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from threadstore.exceptions import ConstraintViolationError, InvalidInputError
from threadstore.models.db import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Generic repository for a single model class."""

    def __init__(self, model: Type[ModelType], session: Session):
        self.model = model
        self.session = session

    def get(self, id: Any) -> Optional[ModelType]:
        """
        Get a record by primary key.

        Args:
            id: Primary key value

        Returns:
            Model instance or None
        """
        return self.session.get(self.model, id)

    def get_all(self, limit: Optional[int] = None, offset: int = 0) -> List[ModelType]:
        """
        Get all records.

        Args:
            limit: Maximum number of records to return
            offset: Number of records to skip

        Returns:
            List of model instances
        """
        query = self.session.query(self.model).offset(offset)
        if limit:
            query = query.limit(limit)
        return query.all()

    def count(self) -> int:
        """Count all records."""
        return self.session.query(self.model).count()

    def create(self, **kwargs) -> ModelType:
        """
        Create a new record and flush it so defaults are populated.

        Args:
            **kwargs: Model field values

        Returns:
            Created model instance

        Raises:
            InvalidInputError: If a required field is missing
            ConstraintViolationError: If a unique constraint is violated
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        self.flush()
        return instance

    def flush(self) -> None:
        """
        Flush pending changes, reporting constraint failures.

        Raises:
            InvalidInputError: If a required field is missing
            ConstraintViolationError: If a unique constraint is violated
        """
        try:
            self.session.flush()
        except IntegrityError as e:
            detail = f"{self.model.__tablename__}: {e.orig}"
            if "NOT NULL constraint failed" in str(e.orig):
                raise InvalidInputError(detail) from e
            raise ConstraintViolationError(detail) from e


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the value matches literally with ESCAPE '\\'."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def resolve_prefix(session: Session, column, prefix: str) -> List[str]:
    """Ids in ``column`` starting with ``prefix``."""
    stmt = select(column).where(
        column.like(f"{escape_like(prefix)}%", escape="\\")
    )
    return list(session.scalars(stmt))
