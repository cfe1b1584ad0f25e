"""
Database connection management for threadstore.

Builds SQLite engines with the store's PRAGMAs applied on every connection and
with transactional DDL enabled, and provides session scopes that own
commit/rollback.
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from threadstore.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def create_store_engine(config: Optional[Settings] = None) -> Engine:
    """
    Create a SQLite engine configured for the store.

    Every new DBAPI connection gets:
    - journal_mode / synchronous / busy_timeout from settings
    - foreign_keys = OFF (thread_id integrity is a caller contract)
    - pysqlite's implicit transaction handling disabled, with SQLAlchemy
      emitting BEGIN itself so DDL participates in transactions

    Args:
        config: Settings to read from (defaults to the global settings)

    Returns:
        Engine: A configured SQLAlchemy engine
    """
    config = config or default_settings
    url = config.database_url

    if not config.database_url_override:
        config.data_directory.mkdir(parents=True, exist_ok=True)

    engine = create_engine(
        url,
        echo=config.echo_sql,
        connect_args={"check_same_thread": False},
    )

    journal_mode = config.journal_mode
    synchronous = config.synchronous
    busy_timeout_ms = int(config.busy_timeout_ms)

    @event.listens_for(engine, "connect")
    def _configure_connection(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute(f"PRAGMA journal_mode = {journal_mode}")
            cursor.execute(f"PRAGMA synchronous = {synchronous}")
            cursor.execute(f"PRAGMA busy_timeout = {busy_timeout_ms}")
            cursor.execute("PRAGMA foreign_keys = OFF")
        finally:
            cursor.close()

    @event.listens_for(engine, "begin")
    def _begin_transaction(conn):
        conn.exec_driver_sql("BEGIN")

    logger.debug("Created store engine for %s", url)
    return engine


def is_memory_database(engine: Engine) -> bool:
    """
    Whether the engine points at an in-memory SQLite database.

    Such an engine hands every session on a thread the same connection, so
    two sessions cannot hold transactions at once.
    """
    database = engine.url.database
    if not database or database == ":memory:":
        return True
    return engine.url.query.get("mode") == "memory"


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """
    Create a session factory bound to an engine.

    Objects stay readable after commit so callers can use returned rows
    outside the transaction scope.
    """
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


@contextmanager
def transaction(
    session_factory: sessionmaker[Session],
) -> Generator[Session, None, None]:
    """
    Context manager for explicit transaction handling.

    Yields:
        Session: A SQLAlchemy session with transaction support

    Example:
        >>> with transaction(SessionLocal) as db:
        >>>     db.add(Thread(id="t1", title="Design"))
        >>>     # Commits automatically on success
        >>>     # Rolls back on exception
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

