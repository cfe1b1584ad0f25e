"""
threadstore - storage layer for threaded message archives.

Persists threads and messages in an embedded SQLite database, keeps a
trigram full-text index in step with message content, and migrates its
own schema forward on open.
"""

from threadstore.store import ThreadStore

__version__ = "0.1.0"

__all__ = ["ThreadStore", "__version__"]
