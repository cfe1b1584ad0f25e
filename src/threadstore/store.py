"""
Storage facade for threadstore.

``ThreadStore`` is the narrow interface the application layer talks to. Each
public method is one transaction: a message content change and its search
index mirror commit together or not at all. Writes are retried on transient
lock contention; nothing else is retried.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Iterable, Iterator, List, Optional, TypeVar, Union

from sqlalchemy import Engine
from sqlalchemy.orm import Session

from threadstore.config import Settings, settings as default_settings
from threadstore.db.connection import (
    create_session_factory,
    create_store_engine,
    is_memory_database,
    transaction,
)
from threadstore.db.migrations import Migration, apply_migrations
from threadstore.db.repositories import MessageRepository, ThreadRepository
from threadstore.exceptions import InvalidInputError, ThreadNotFoundError
from threadstore.models.db import Message, MessageRole, Thread, ThreadStatus
from threadstore.retry import RetryConfig, run_with_retry
from threadstore.search.shingles import parse_query
from threadstore.search.synchronizer import SearchIndexSynchronizer

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _coerce_status(status: Union[ThreadStatus, str]) -> ThreadStatus:
    try:
        return ThreadStatus(status.lower() if isinstance(status, str) else status)
    except ValueError:
        raise InvalidInputError(f"unknown thread status: {status}") from None


def _coerce_role(role: Union[MessageRole, str]) -> MessageRole:
    try:
        return MessageRole(role.lower() if isinstance(role, str) else role)
    except ValueError:
        raise InvalidInputError(f"unknown role: {role}") from None


class ThreadStore:
    """
    Thread and message storage with a synchronized search index.

    Use :meth:`open` to build a store from settings; it migrates the schema
    before returning, so a returned store always serves a current schema.

    Example:
        >>> with ThreadStore.open() as store:
        >>>     thread = store.create_thread("Design review")
        >>>     store.create_message(thread.id, "hello world")
        >>>     [m.id for m in store.search_messages("hello")]
    """

    def __init__(
        self,
        engine: Engine,
        config: Optional[Settings] = None,
        synchronizer: Optional[SearchIndexSynchronizer] = None,
    ):
        self.engine = engine
        self.config = config or default_settings
        self.synchronizer = synchronizer or SearchIndexSynchronizer()
        self.retry_config = RetryConfig.from_settings(self.config)
        self._session_factory = create_session_factory(engine)
        self._buffer_search = is_memory_database(engine)

    @classmethod
    def open(
        cls,
        config: Optional[Settings] = None,
        migrations: Optional[Iterable[Migration]] = None,
    ) -> "ThreadStore":
        """
        Create the engine, migrate the schema, and return a ready store.

        Raises:
            MigrationError: If the schema cannot be brought current; the
                engine is disposed and no store is returned
        """
        config = config or default_settings
        engine = create_store_engine(config)
        store = cls(engine, config)
        try:
            store.migrate(migrations)
        except Exception:
            engine.dispose()
            raise
        return store

    def migrate(self, migrations: Optional[Iterable[Migration]] = None) -> List[int]:
        """Apply pending migrations. Returns the versions applied."""
        return apply_migrations(self.engine, migrations)

    def close(self) -> None:
        """Release all pooled connections."""
        self.engine.dispose()

    def __enter__(self) -> "ThreadStore":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _run(self, description: str, work: Callable[[Session], T]) -> T:
        def attempt() -> T:
            with transaction(self._session_factory) as session:
                return work(session)

        return run_with_retry(attempt, self.retry_config, description)

    def _messages(self, session: Session) -> MessageRepository:
        return MessageRepository(session, self.synchronizer)

    # Threads

    def create_thread(
        self,
        title: str,
        *,
        name: Optional[str] = None,
        source_url: Optional[str] = None,
        thread_id: Optional[str] = None,
        status: Union[ThreadStatus, str] = ThreadStatus.OPEN,
    ) -> Thread:
        """
        Create a thread.

        Raises:
            ConstraintViolationError: If the id or name is already taken
            InvalidInputError: If the title is missing or the status unknown
        """
        status = _coerce_status(status)
        thread_id = thread_id or str(uuid.uuid4())
        return self._run(
            "create_thread",
            lambda s: ThreadRepository(s).create(
                id=thread_id,
                name=name,
                title=title,
                source_url=source_url,
                status=status,
            ),
        )

    def upsert_thread(
        self,
        thread_id: str,
        title: str,
        *,
        name: Optional[str] = None,
        source_url: Optional[str] = None,
    ) -> bool:
        """Create a thread unless its id or name exists. Returns True if created."""
        return self._run(
            "upsert_thread",
            lambda s: ThreadRepository(s).upsert(
                id=thread_id, name=name, title=title, source_url=source_url
            ),
        )

    def update_thread_status(
        self, thread_id: str, status: Union[ThreadStatus, str]
    ) -> Thread:
        """
        Close or reopen a thread.

        Raises:
            ThreadNotFoundError: If the thread does not exist
            InvalidInputError: If the status is not open/closed
        """
        status = _coerce_status(status)
        return self._run(
            "update_thread_status",
            lambda s: ThreadRepository(s).update_status(thread_id, status),
        )

    def get_thread(self, thread_id: str) -> Optional[Thread]:
        return self._run("get_thread", lambda s: ThreadRepository(s).get(thread_id))

    def get_thread_by_name(self, name: str) -> Optional[Thread]:
        return self._run(
            "get_thread_by_name", lambda s: ThreadRepository(s).get_by_name(name)
        )

    def list_threads(
        self, status: Optional[Union[ThreadStatus, str]] = None
    ) -> List[Thread]:
        """List threads, most recently updated first, optionally by status."""
        if status is not None:
            status = _coerce_status(status)
        return self._run("list_threads", lambda s: ThreadRepository(s).list(status))

    def resolve_thread_id(self, prefix: str) -> str:
        """Expand a unique id prefix to the full thread id."""
        return self._run(
            "resolve_thread_id",
            lambda s: ThreadRepository(s).resolve_short_id(prefix),
        )

    # Messages

    def create_message(
        self,
        thread_id: str,
        content: str,
        *,
        role: Union[MessageRole, str] = MessageRole.USER,
        session_id: Optional[str] = None,
        sender: Optional[str] = None,
        metadata: Optional[dict] = None,
        parent_id: Optional[str] = None,
        source: Optional[str] = None,
        message_id: Optional[str] = None,
    ) -> Message:
        """
        Insert a message and index it in one transaction.

        Precondition: ``thread_id`` names an existing thread. Storage does not
        check this; the caller must (a message with a dangling thread_id is
        stored as-is).

        Raises:
            ConstraintViolationError: If the message id already exists
        """
        fields = {
            "id": message_id or str(uuid.uuid4()),
            "thread_id": thread_id,
            "content": content,
            "role": _coerce_role(role),
            "session_id": session_id,
            "sender": sender,
            "extra_data": metadata,
            "parent_id": parent_id,
            "source": source,
        }
        return self._run(
            "create_message", lambda s: self._messages(s).create(**fields)
        )

    def create_messages(self, messages: Iterable[dict[str, Any]]) -> List[Message]:
        """
        Insert a batch of messages in a single transaction.

        Each item takes the keyword arguments of :meth:`create_message` plus
        ``thread_id`` and ``content``. Either every message is stored or none.
        """
        batch = []
        for item in messages:
            item = dict(item)
            if "role" in item:
                item["role"] = _coerce_role(item["role"])
            if "metadata" in item:
                item["extra_data"] = item.pop("metadata")
            if "message_id" in item:
                item["id"] = item.pop("message_id")
            batch.append(item)
        return self._run(
            "create_messages", lambda s: self._messages(s).create_many(batch)
        )

    def update_message_content(self, message_id: str, content: str) -> Message:
        """
        Replace a message's content; the index is re-synchronized atomically.

        Raises:
            MessageNotFoundError: If the message does not exist
            InvalidInputError: If the content is None
        """
        return self._run(
            "update_message_content",
            lambda s: self._messages(s).update_content(message_id, content),
        )

    def delete_message(self, message_id: str) -> None:
        """
        Delete a message and its index entry.

        Raises:
            MessageNotFoundError: If the message does not exist
        """
        self._run("delete_message", lambda s: self._messages(s).delete(message_id))

    def get_message(self, message_id: str) -> Optional[Message]:
        return self._run("get_message", lambda s: self._messages(s).get(message_id))

    def resolve_message_id(self, prefix: str) -> str:
        """Expand a unique id prefix to the full message id."""
        return self._run(
            "resolve_message_id",
            lambda s: self._messages(s).resolve_short_id(prefix),
        )

    def list_thread_messages(self, thread_id: str) -> List[Message]:
        """All messages of a thread, oldest first."""
        return self._run(
            "list_thread_messages",
            lambda s: self._messages(s).get_by_thread(thread_id),
        )

    def list_recent_messages(self, limit: int = 20) -> List[Message]:
        return self._run(
            "list_recent_messages", lambda s: self._messages(s).list_recent(limit)
        )

    def delete_thread_messages(self, thread_id: str) -> int:
        """Delete every message of a thread. Returns the number removed."""
        return self._run(
            "delete_thread_messages",
            lambda s: self._messages(s).delete_by_thread(thread_id),
        )

    def delete_session_messages(self, session_id: str) -> int:
        """Delete every message of a session. Returns the number removed."""
        return self._run(
            "delete_session_messages",
            lambda s: self._messages(s).delete_by_session(session_id),
        )

    def delete_messages_older_than(self, cutoff: datetime) -> int:
        """Delete messages created before ``cutoff`` (naive UTC)."""
        return self._run(
            "delete_messages_older_than",
            lambda s: self._messages(s).delete_older_than(cutoff),
        )

    # Search

    def search_messages(
        self, query: str, thread_id: Optional[str] = None
    ) -> Iterator[Message]:
        """
        Search message content.

        The query is validated immediately; results are streamed lazily in
        index rank order. The returned iterator is single-pass and holds a
        read session open until exhausted or closed. On an in-memory store
        the session is shared with writers, so results are fetched in full
        on first iteration and the session released before yielding.

        Raises:
            SearchQueryError: If the query is empty (at call time) or rejected
                by the index (on first iteration)
        """
        terms = parse_query(query)

        def results() -> Iterator[Message]:
            session = self._session_factory()
            try:
                matches = self._messages(session).search(terms, thread_id)
                if not self._buffer_search:
                    yield from matches
                    return
                buffered = list(matches)
            finally:
                session.close()
            yield from buffered

        return results()

    def rebuild_search_index(self) -> None:
        """
        Regenerate the search index from canonical message content.

        Required after VACUUM, which may renumber message rowids.
        """
        self._run("rebuild_search_index", self.synchronizer.rebuild)

    def check_search_index(self) -> bool:
        """Whether the search index matches canonical message content."""
        return self._run("check_search_index", self.synchronizer.integrity_check)

    def search_index_size(self) -> int:
        """Number of entries held by the search index."""
        return self._run("search_index_size", self.synchronizer.entry_count)

    def require_thread(self, thread_id: str) -> Thread:
        """
        Fetch a thread or raise.

        Convenience for callers enforcing the thread-exists precondition of
        :meth:`create_message`.

        Raises:
            ThreadNotFoundError: If the thread does not exist
        """
        thread = self.get_thread(thread_id)
        if thread is None:
            raise ThreadNotFoundError(thread_id)
        return thread
