"""
Schema operations used by migration steps.

Each operation is a tagged variant that knows how to check whether its target
already exists and how to create it. The engine only calls ``apply`` when
``exists`` is false, so re-issuing a step that was partially applied never
fails on "already exists".

DDL is emitted through Alembic's ``Operations`` API bound to the migration's
connection, so it runs inside the engine's per-version transaction.
"""

from dataclasses import dataclass
from typing import Callable, Sequence

import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy.engine import Connection


def _ops(connection: Connection) -> Operations:
    return Operations(MigrationContext.configure(connection))


class Operation:
    """Base class for an idempotent schema operation."""

    def exists(self, connection: Connection) -> bool:
        raise NotImplementedError

    def apply(self, connection: Connection) -> None:
        raise NotImplementedError

    def run(self, connection: Connection) -> bool:
        """
        Apply the operation unless its target already exists.

        Returns:
            True if DDL was emitted, False if the target was already present
        """
        if self.exists(connection):
            return False
        self.apply(connection)
        return True


@dataclass(eq=False)
class CreateTable(Operation):
    """
    Create a table from SQLAlchemy columns.

    ``columns`` builds fresh Column objects on each call: a Column binds to
    the table it is created with, and a rolled-back attempt must be
    retryable with the same operation.
    """

    name: str
    columns: Callable[[], Sequence[sa.Column]]

    def exists(self, connection: Connection) -> bool:
        return sa.inspect(connection).has_table(self.name)

    def apply(self, connection: Connection) -> None:
        _ops(connection).create_table(self.name, *self.columns())

    def __str__(self) -> str:
        return f"CreateTable({self.name})"


@dataclass(eq=False)
class AddColumn(Operation):
    """Add a column to an existing table. ``column`` builds a fresh Column."""

    table: str
    column: Callable[[], sa.Column]

    @property
    def name(self) -> str:
        return self.column().name

    def exists(self, connection: Connection) -> bool:
        columns = sa.inspect(connection).get_columns(self.table)
        return any(c["name"] == self.name for c in columns)

    def apply(self, connection: Connection) -> None:
        _ops(connection).add_column(self.table, self.column())

    def __str__(self) -> str:
        return f"AddColumn({self.table}.{self.name})"


@dataclass(eq=False)
class CreateIndex(Operation):
    """Create a (optionally unique) index on a table."""

    name: str
    table: str
    columns: Sequence[str]
    unique: bool = False

    def exists(self, connection: Connection) -> bool:
        indexes = sa.inspect(connection).get_indexes(self.table)
        return any(i["name"] == self.name for i in indexes)

    def apply(self, connection: Connection) -> None:
        _ops(connection).create_index(
            self.name, self.table, list(self.columns), unique=self.unique
        )

    def __str__(self) -> str:
        return f"CreateIndex({self.name} on {self.table})"


@dataclass(eq=False)
class CreateSearchIndex(Operation):
    """
    Create an FTS5 external-content index over one text column.

    The index stores no copy of the rows itself: entries are keyed by the
    content table's rowid and maintained explicitly by the write path
    (see ``threadstore.search.synchronizer``).
    """

    name: str
    content_table: str
    column: str
    tokenize: str = "trigram"

    def exists(self, connection: Connection) -> bool:
        row = connection.execute(
            sa.text(
                "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = :name"
            ),
            {"name": self.name},
        ).first()
        return row is not None

    def apply(self, connection: Connection) -> None:
        _ops(connection).execute(
            f"CREATE VIRTUAL TABLE {self.name} USING fts5("
            f"{self.column}, "
            f"content={self.content_table}, "
            f"content_rowid=rowid, "
            f"tokenize='{self.tokenize}')"
        )

    def __str__(self) -> str:
        return f"CreateSearchIndex({self.name} over {self.content_table}.{self.column})"
