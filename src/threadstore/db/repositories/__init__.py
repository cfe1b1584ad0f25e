"""
Repository layer for database operations.

Provides a clean API for CRUD operations on database models.
"""

from threadstore.db.repositories.base import BaseRepository
from threadstore.db.repositories.message import MessageRepository
from threadstore.db.repositories.thread import ThreadRepository

__all__ = [
    "BaseRepository",
    "MessageRepository",
    "ThreadRepository",
]
