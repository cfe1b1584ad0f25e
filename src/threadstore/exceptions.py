"""Custom exceptions for threadstore."""

from typing import Optional


class ThreadStoreError(Exception):
    """Base class for all storage-layer errors."""


class MigrationError(ThreadStoreError):
    """Raised when a schema migration cannot be committed.

    The store is left at ``last_applied`` and must not serve traffic until the
    failing step is fixed and the run retried.
    """

    def __init__(
        self,
        message: str,
        version: Optional[int] = None,
        last_applied: Optional[int] = None,
    ):
        self.version = version
        self.last_applied = last_applied
        if version is not None:
            message = f"migration v{version} failed: {message}"
        super().__init__(message)


class ConstraintViolationError(ThreadStoreError):
    """Raised on uniqueness violations (thread name, thread or message id)."""


class ThreadNotFoundError(ThreadStoreError):
    """Raised when a thread id or prefix matches nothing."""

    def __init__(self, thread_id: str):
        self.thread_id = thread_id
        super().__init__(f"thread not found: {thread_id}")


class MessageNotFoundError(ThreadStoreError):
    """Raised when a message id or prefix matches nothing."""

    def __init__(self, message_id: str):
        self.message_id = message_id
        super().__init__(f"message not found: {message_id}")


class AmbiguousIdError(ThreadStoreError):
    """Raised when an id prefix matches more than one record."""

    def __init__(self, prefix: str, matches: int):
        self.prefix = prefix
        self.matches = matches
        super().__init__(f"ambiguous short id '{prefix}': matched {matches} records")


class SearchQueryError(ThreadStoreError):
    """Raised for empty or malformed search queries."""


class InvalidInputError(ThreadStoreError):
    """Raised for values outside a column's allowed set (status, role) or
    a missing required field."""


class TransientStorageError(ThreadStoreError):
    """Raised when lock contention persists after all retries."""
