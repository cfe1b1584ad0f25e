"""
Pytest configuration and fixtures for threadstore tests.

Every test gets its own in-memory SQLite database, migrated to head by the
real migration engine.
"""

from typing import Generator

import pytest
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from threadstore.config import Settings
from threadstore.db.connection import create_session_factory, create_store_engine
from threadstore.db.migrations import apply_migrations
from threadstore.models.db import Message, Thread
from threadstore.store import ThreadStore


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings for an in-memory store with file logging off."""
    return Settings(
        database_url_override="sqlite://",
        data_dir=str(tmp_path / "data"),
        log_dir=str(tmp_path / "logs"),
        log_file_enabled=False,
        retry_initial_delay=0.0,
        retry_max_delay=0.0,
    )


@pytest.fixture
def bare_engine(test_settings: Settings) -> Generator[Engine, None, None]:
    """An engine over an empty database (no migrations applied)."""
    engine = create_store_engine(test_settings)
    yield engine
    engine.dispose()


@pytest.fixture
def test_engine(bare_engine: Engine) -> Engine:
    """An engine over a database migrated to head."""
    apply_migrations(bare_engine)
    return bare_engine


@pytest.fixture
def db_session(test_engine: Engine) -> Generator[Session, None, None]:
    """
    A session on the migrated database.

    The session's transaction is rolled back after the test.
    """
    session = create_session_factory(test_engine)()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def store(test_engine: Engine, test_settings: Settings) -> ThreadStore:
    """A ThreadStore over the migrated database."""
    return ThreadStore(test_engine, test_settings)


@pytest.fixture
def sample_thread(store: ThreadStore) -> Thread:
    """Create a sample open thread."""
    return store.create_thread(
        "Test Thread",
        name="test-thread",
        source_url="https://example.com/issues/1",
        thread_id="thread-0001",
    )


@pytest.fixture
def sample_message(store: ThreadStore, sample_thread: Thread) -> Message:
    """Create a sample message in the sample thread."""
    return store.create_message(
        sample_thread.id,
        "hello world",
        sender="alice",
        session_id="session-1",
        metadata={"msg_type": "note"},
        message_id="message-0001",
    )
