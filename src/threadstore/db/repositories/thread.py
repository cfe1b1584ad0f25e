"""
Thread repository.
"""

from typing import List, Optional

from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from threadstore.db.repositories.base import BaseRepository, resolve_prefix
from threadstore.exceptions import AmbiguousIdError, ThreadNotFoundError
from threadstore.models.db import Thread, ThreadStatus, utcnow


class ThreadRepository(BaseRepository[Thread]):
    """Repository for Thread model."""

    def __init__(self, session: Session):
        super().__init__(Thread, session)

    def get_by_name(self, name: str) -> Optional[Thread]:
        """
        Get thread by its short alias.

        Args:
            name: Thread name

        Returns:
            Thread instance or None
        """
        return self.session.query(Thread).filter(Thread.name == name).first()

    def upsert(self, **kwargs) -> bool:
        """
        Insert a thread unless its id or name already exists.

        Args:
            **kwargs: Thread field values (id and title required)

        Returns:
            True if a row was inserted, False if it already existed
        """
        now = utcnow()
        kwargs.setdefault("status", ThreadStatus.OPEN)
        kwargs.setdefault("created_at", now)
        kwargs.setdefault("updated_at", now)
        stmt = sqlite_insert(Thread).values(**kwargs).on_conflict_do_nothing()
        result = self.session.execute(stmt)
        return result.rowcount > 0

    def list(self, status: Optional[ThreadStatus] = None) -> List[Thread]:
        """
        List threads, most recently updated first.

        Args:
            status: Only return threads with this status

        Returns:
            List of threads
        """
        query = self.session.query(Thread)
        if status is not None:
            query = query.filter(Thread.status == status)
        return query.order_by(Thread.updated_at.desc(), Thread.id).all()

    def update_status(self, id: str, status: ThreadStatus) -> Thread:
        """
        Set a thread's status (open or closed).

        Raises:
            ThreadNotFoundError: If no thread has this id
        """
        thread = self.get(id)
        if thread is None:
            raise ThreadNotFoundError(id)
        if thread.status != status:
            thread.status = status
            thread.updated_at = utcnow()
            self.flush()
        return thread

    def resolve_short_id(self, prefix: str) -> str:
        """
        Resolve an id prefix to a full thread id.

        Raises:
            ThreadNotFoundError: If nothing matches
            AmbiguousIdError: If more than one thread matches
        """
        ids = resolve_prefix(self.session, Thread.id, prefix)
        if not ids:
            raise ThreadNotFoundError(prefix)
        if len(ids) > 1:
            raise AmbiguousIdError(prefix, len(ids))
        return ids[0]

