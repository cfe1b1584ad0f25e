"""
Message repository.

The only code path that writes ``messages.content``. Every insert, content
update and delete is paired with the matching search index write in the
caller's session, so a committed transaction always carries both sides.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Iterable, Iterator, List, Optional, Tuple

from sqlalchemy import delete, literal_column, select, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from threadstore.db.repositories.base import BaseRepository, escape_like, resolve_prefix
from threadstore.exceptions import (
    AmbiguousIdError,
    MessageNotFoundError,
    SearchQueryError,
)
from threadstore.models.db import Message, MessageRole, utcnow
from threadstore.search.shingles import SearchTerms
from threadstore.search.synchronizer import SearchIndexSynchronizer

logger = logging.getLogger(__name__)

ROWID = literal_column("messages.rowid")

SEARCH_BATCH_SIZE = 100


class MessageRepository(BaseRepository[Message]):
    """Repository for Message model with search index synchronization."""

    def __init__(
        self,
        session: Session,
        synchronizer: Optional[SearchIndexSynchronizer] = None,
    ):
        super().__init__(Message, session)
        self.synchronizer = synchronizer or SearchIndexSynchronizer()

    def _indexed_rows(self, *criteria) -> List[Tuple[int, str]]:
        """(rowid, content) pairs of messages matching the criteria."""
        stmt = select(ROWID, Message.content).where(*criteria)
        return [(row[0], row[1]) for row in self.session.execute(stmt)]

    def create(self, **kwargs) -> Message:
        """
        Insert a message and index its content.

        The thread referenced by ``thread_id`` is not checked: callers must
        verify it exists first. An orphaned message is stored as given.

        Args:
            **kwargs: Message field values (thread_id required)

        Returns:
            Created message instance

        Raises:
            ConstraintViolationError: If the message id already exists
        """
        kwargs.setdefault("id", str(uuid.uuid4()))
        kwargs.setdefault("content", "")
        kwargs.setdefault("role", MessageRole.USER)
        if kwargs.get("extra_data") is None:
            kwargs["extra_data"] = {}
        now = utcnow()
        kwargs.setdefault("created_at", now)
        kwargs.setdefault("updated_at", now)

        message = super().create(**kwargs)
        rows = self._indexed_rows(Message.id == message.id)
        rowid, content = rows[0]
        self.synchronizer.on_insert(self.session, rowid, content)
        return message

    def create_many(self, messages: Iterable[dict[str, Any]]) -> List[Message]:
        """
        Insert several messages in the current transaction.

        Args:
            messages: Field values for each message

        Returns:
            Created message instances, in input order
        """
        return [self.create(**fields) for fields in messages]

    def update_content(self, id: str, content: str) -> Message:
        """
        Replace a message's content and re-index it.

        The index sees a tombstone for the old content followed by an entry
        for the new content. Unchanged content leaves the index untouched.

        Raises:
            MessageNotFoundError: If no message has this id
        """
        rows = self._indexed_rows(Message.id == id)
        if not rows:
            raise MessageNotFoundError(id)
        rowid, old_content = rows[0]

        message = self.get(id)
        message.content = content
        message.updated_at = utcnow()
        self.flush()

        self.synchronizer.on_update(self.session, rowid, old_content, content)
        return message

    def delete(self, id: str) -> None:
        """
        Delete a message and tombstone its index entry.

        Raises:
            MessageNotFoundError: If no message has this id
        """
        removed = self._delete_where(Message.id == id)
        if removed == 0:
            raise MessageNotFoundError(id)

    def delete_by_thread(self, thread_id: str) -> int:
        """Delete all messages of a thread. Returns the number removed."""
        return self._delete_where(Message.thread_id == thread_id)

    def delete_by_session(self, session_id: str) -> int:
        """Delete all messages of a session. Returns the number removed."""
        return self._delete_where(Message.session_id == session_id)

    def delete_older_than(self, before: datetime) -> int:
        """Delete messages created before a cutoff. Returns the number removed."""
        return self._delete_where(Message.created_at < before)

    def _delete_where(self, *criteria) -> int:
        rows = self._indexed_rows(*criteria)
        if not rows:
            return 0
        for rowid, content in rows:
            self.synchronizer.on_delete(self.session, rowid, content)
        self.session.execute(
            delete(Message)
            .where(*criteria)
            .execution_options(synchronize_session="fetch")
        )
        logger.debug("Deleted %d message(s)", len(rows))
        return len(rows)

    def get_by_thread(self, thread_id: str) -> List[Message]:
        """
        Get all messages of a thread, oldest first.

        Args:
            thread_id: Thread id

        Returns:
            List of messages
        """
        return (
            self.session.query(Message)
            .filter(Message.thread_id == thread_id)
            .order_by(Message.created_at.asc(), ROWID.asc())
            .all()
        )

    def list_recent(self, limit: int = 20) -> List[Message]:
        """Most recently created messages across all threads."""
        return (
            self.session.query(Message)
            .order_by(Message.created_at.desc(), ROWID.desc())
            .limit(limit)
            .all()
        )

    def resolve_short_id(self, prefix: str) -> str:
        """
        Resolve an id prefix to a full message id.

        Raises:
            MessageNotFoundError: If nothing matches
            AmbiguousIdError: If more than one message matches
        """
        ids = resolve_prefix(self.session, Message.id, prefix)
        if not ids:
            raise MessageNotFoundError(prefix)
        if len(ids) > 1:
            raise AmbiguousIdError(prefix, len(ids))
        return ids[0]

    def search(
        self, terms: SearchTerms, thread_id: Optional[str] = None
    ) -> Iterator[Message]:
        """
        Stream messages matching every search term.

        Indexed terms are matched through the trigram index and ranked by it;
        terms too short to form a shingle, and a query containing whitespace
        as a whole, filter on content substrings. With no indexed terms the
        result is ordered newest first.

        Raises:
            SearchQueryError: If the index rejects the query
        """
        params: dict[str, Any] = {}
        where = []

        if terms.indexed:
            sql = (
                "SELECT messages.* FROM ("
                f"SELECT rowid, rank FROM {self.synchronizer.index_table} "
                f"WHERE {self.synchronizer.index_table} MATCH :match"
                ") AS hits JOIN messages ON messages.rowid = hits.rowid"
            )
            order = "ORDER BY hits.rank, messages.created_at DESC"
            params["match"] = terms.match_expression
        else:
            sql = "SELECT messages.* FROM messages"
            order = "ORDER BY messages.created_at DESC, messages.rowid DESC"

        substrings = list(terms.short)
        if terms.phrase is not None:
            substrings.append(terms.phrase)
        for i, term in enumerate(substrings):
            where.append(f"messages.content LIKE :short_{i} ESCAPE '\\'")
            params[f"short_{i}"] = f"%{escape_like(term)}%"

        if thread_id is not None:
            where.append("messages.thread_id = :thread_id")
            params["thread_id"] = thread_id

        if where:
            sql += " WHERE " + " AND ".join(where)
        sql = f"{sql} {order}"

        stmt = (
            select(Message)
            .from_statement(text(sql).bindparams(**params))
            .execution_options(yield_per=SEARCH_BATCH_SIZE)
        )
        try:
            result = self.session.execute(stmt)
        except OperationalError as e:
            raise SearchQueryError(f"invalid search query: {e.orig}") from e
        yield from result.scalars()
