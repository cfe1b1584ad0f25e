"""
Search index synchronization.

Mirrors canonical message content into the ``messages_fts`` FTS5 index. The
index is an external-content table: it keeps only tokenized entries keyed by
the message rowid, so every write to ``messages.content`` must be paired with
the matching index write here, in the same transaction. Nothing reconciles
drift on the read path.

Removal uses the FTS5 ``'delete'`` command with the old content (a tombstone
the index applies against its token lists) rather than a row delete, and an
update is a tombstone for the old content followed by a fresh insert.
"""

import logging

from sqlalchemy import text
from sqlalchemy.exc import DatabaseError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

DEFAULT_INDEX_TABLE = "messages_fts"


class SearchIndexSynchronizer:
    """Write-path hooks that keep the search index equal to message content."""

    def __init__(self, index_table: str = DEFAULT_INDEX_TABLE):
        self.index_table = index_table
        self._insert_sql = text(
            f"INSERT INTO {index_table}(rowid, content) VALUES (:rowid, :content)"
        )
        self._delete_sql = text(
            f"INSERT INTO {index_table}({index_table}, rowid, content) "
            f"VALUES ('delete', :rowid, :content)"
        )

    def on_insert(self, session: Session, rowid: int, content: str) -> None:
        """Append an index entry for a newly inserted message row."""
        session.execute(self._insert_sql, {"rowid": rowid, "content": content})

    def on_delete(self, session: Session, rowid: int, content: str) -> None:
        """
        Tombstone the index entry of a deleted message row.

        ``content`` must be the content the row was indexed with.
        """
        session.execute(self._delete_sql, {"rowid": rowid, "content": content})

    def on_update(
        self, session: Session, rowid: int, old_content: str, new_content: str
    ) -> bool:
        """
        Re-index a message whose content changed.

        Returns:
            True if the index was touched, False if content was unchanged
        """
        if old_content == new_content:
            return False
        self.on_delete(session, rowid, old_content)
        self.on_insert(session, rowid, new_content)
        return True

    def rebuild(self, session: Session) -> None:
        """Regenerate the whole index from canonical message content."""
        logger.info("Rebuilding search index %s", self.index_table)
        session.execute(
            text(
                f"INSERT INTO {self.index_table}({self.index_table}) VALUES ('rebuild')"
            )
        )

    def integrity_check(self, session: Session) -> bool:
        """
        Verify the index against canonical content.

        Returns:
            True if every index entry matches its message row
        """
        try:
            session.execute(
                text(
                    f"INSERT INTO {self.index_table}({self.index_table}, rank) "
                    f"VALUES ('integrity-check', 1)"
                )
            )
        except DatabaseError as e:
            logger.warning("Search index %s failed integrity check: %s", self.index_table, e)
            return False
        return True

    def entry_count(self, session: Session) -> int:
        """Number of entries held by the index itself."""
        return session.execute(
            text(f"SELECT COUNT(*) FROM {self.index_table}_docsize")
        ).scalar_one()
