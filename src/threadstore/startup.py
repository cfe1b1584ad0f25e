"""
Startup checks for threadstore.

Validates that a store is reachable, migrated, and that its search index agrees
with canonical content before an application admits traffic. Fails fast with
actionable messages.
"""

import logging
import time
from typing import Optional, Sequence

from sqlalchemy import Engine, text

from threadstore.db.migrations import Migration, current_version, pending_migrations
from threadstore.store import ThreadStore

logger = logging.getLogger(__name__)


class StartupCheckError(Exception):
    """Raised when a critical startup check fails."""

    def __init__(self, message: str, hint: Optional[str] = None):
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        error_msg = f"\n{'='*70}\nSTARTUP CHECK FAILED\n{'='*70}\n\n{self.message}\n"
        if self.hint:
            error_msg += f"\nHint: {self.hint}\n"
        error_msg += f"{'='*70}\n"
        return error_msg


def check_database_connection(engine: Engine) -> None:
    """
    Verify the SQLite database can be opened and queried.

    Raises:
        StartupCheckError: If the database is unreachable
    """
    try:
        with engine.connect() as connection:
            result = connection.execute(text("SELECT 1")).scalar()
    except Exception as e:
        error_str = str(e).lower()
        if "unable to open" in error_str:
            hint = "Check that the data directory exists and is writable"
        elif "locked" in error_str or "busy" in error_str:
            hint = "Another process holds an exclusive lock on the database"
        else:
            hint = f"Check the database configuration\nError: {e}"
        raise StartupCheckError(
            f"Cannot open database\nURL: {engine.url}", hint
        ) from e

    if result != 1:
        raise StartupCheckError(
            "Database query returned unexpected result",
            "Database may be corrupted",
        )


def check_schema_current(
    engine: Engine, migrations: Optional[Sequence[Migration]] = None
) -> None:
    """
    Verify every known migration has been applied.

    Raises:
        StartupCheckError: If the ledger is empty or migrations are pending
    """
    pending = pending_migrations(engine, migrations)
    if not pending:
        return

    version = current_version(engine)
    pending_list = "\n".join(f"  - {m}" for m in pending)
    if version == 0:
        raise StartupCheckError(
            "Database has no schema version\nDatabase appears uninitialized",
            "Run: threadstore migrate",
        )
    raise StartupCheckError(
        f"Database schema is out of date\n"
        f"Current version: v{version}\n"
        f"Expected version: v{pending[-1].version}\n"
        f"\nPending migrations:\n{pending_list}",
        "Run: threadstore migrate",
    )


def check_search_index(store: ThreadStore) -> None:
    """
    Verify the search index matches canonical message content.

    Raises:
        StartupCheckError: If the index has drifted
    """
    if not store.check_search_index():
        raise StartupCheckError(
            "Search index does not match message content",
            "Run: threadstore reindex",
        )


def run_all_startup_checks(store: ThreadStore) -> None:
    """
    Run every startup check in order, stopping at the first failure.

    Raises:
        StartupCheckError: From the first failing check
    """
    checks = [
        ("database connection", lambda: check_database_connection(store.engine)),
        ("schema version", lambda: check_schema_current(store.engine)),
        ("search index", lambda: check_search_index(store)),
    ]

    for check_name, check_func in checks:
        started = time.perf_counter()
        check_func()
        logger.info(
            "Startup check passed: %s (%.1fms)",
            check_name,
            (time.perf_counter() - started) * 1000,
        )
