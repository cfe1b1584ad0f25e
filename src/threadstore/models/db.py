"""
SQLAlchemy database models for threadstore.

These models map the canonical tables at the current schema head. The tables
themselves are created and evolved by the migration engine
(``threadstore.db.migrations``), never by ``Base.metadata.create_all``.
"""

import enum
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, DateTime, Enum, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, truncated to whole seconds.

    SQLite keeps no offset, so timestamps are stored and read back as naive UTC.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class ThreadStatus(str, enum.Enum):
    """Lifecycle status of a thread. Closed threads may be reopened."""

    OPEN = "open"
    CLOSED = "closed"


class MessageRole(str, enum.Enum):
    """Role of the message author."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


class SchemaVersion(Base):
    """Ledger row recording one successfully applied migration."""

    __tablename__ = "schema_version"

    version: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=False
    )
    applied_at: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=lambda: utcnow().strftime("%Y-%m-%d %H:%M:%S"),
    )

    def __repr__(self) -> str:
        return f"<SchemaVersion(version={self.version}, applied_at={self.applied_at!r})>"


class Thread(Base):
    """A conversation thread grouping messages."""

    __tablename__ = "threads"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True, unique=True
    )  # Short alias for lookups
    title: Mapped[str] = mapped_column(Text, nullable=False)
    source_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[ThreadStatus] = mapped_column(
        Enum(
            ThreadStatus,
            native_enum=False,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=ThreadStatus.OPEN,
        server_default=ThreadStatus.OPEN.value,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return (
            f"<Thread(id={self.id!r}, name={self.name!r}, "
            f"status={self.status.value if self.status else None!r})>"
        )


class Message(Base):
    """
    Individual message within a thread.

    ``thread_id`` is deliberately not a foreign key: callers must make sure
    the thread exists before inserting. Content changes must go through
    ``MessageRepository`` so the search index stays in step.

    The search index is keyed by the implicit rowid, which VACUUM may
    renumber on this TEXT-keyed table: run ``rebuild_search_index()`` after
    any VACUUM.
    """

    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    thread_id: Mapped[str] = mapped_column(Text, nullable=False)
    session_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sender: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    role: Mapped[MessageRole] = mapped_column(
        Enum(
            MessageRole,
            native_enum=False,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=MessageRole.USER,
        server_default=MessageRole.USER.value,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    extra_data: Mapped[dict] = mapped_column(
        "metadata", JSON, nullable=True, default=dict
    )  # Opaque to storage
    parent_id: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True
    )  # Threaded reply target
    source: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True
    )  # Provenance tag
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return (
            f"<Message(id={self.id!r}, thread_id={self.thread_id!r}, "
            f"role={self.role.value if self.role else None!r})>"
        )
