"""Database models for threadstore."""

from threadstore.models.db import (
    Base,
    Message,
    MessageRole,
    SchemaVersion,
    Thread,
    ThreadStatus,
)

__all__ = [
    "Base",
    "Message",
    "MessageRole",
    "SchemaVersion",
    "Thread",
    "ThreadStatus",
]
