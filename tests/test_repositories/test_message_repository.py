"""
Tests for MessageRepository.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import Session

from threadstore.db.repositories import MessageRepository
from threadstore.exceptions import (
    AmbiguousIdError,
    ConstraintViolationError,
    MessageNotFoundError,
    SearchQueryError,
)
from threadstore.models.db import MessageRole
from threadstore.search import parse_query


def search_ids(repo: MessageRepository, query: str, thread_id=None) -> list[str]:
    return [m.id for m in repo.search(parse_query(query), thread_id)]


class TestMessageRepository:
    """Tests for MessageRepository writes and reads."""

    def test_create_fills_defaults(self, db_session: Session):
        """Test defaults for id, role, metadata and timestamps."""
        repo = MessageRepository(db_session)

        message = repo.create(thread_id="t1", content="hello")

        assert message.id
        assert message.role == MessageRole.USER
        assert message.extra_data == {}
        assert message.created_at == message.updated_at

    def test_metadata_round_trips(self, db_session: Session):
        repo = MessageRepository(db_session)
        repo.create(id="m1", thread_id="t1", content="x", extra_data={"k": [1, 2]})
        db_session.expire_all()

        assert repo.get("m1").extra_data == {"k": [1, 2]}

    def test_duplicate_id_rejected(self, db_session: Session):
        """Test that message ids are unique."""
        repo = MessageRepository(db_session)
        repo.create(id="m1", thread_id="t1", content="first")
        db_session.expunge_all()

        with pytest.raises(ConstraintViolationError):
            repo.create(id="m1", thread_id="t1", content="second")

    def test_orphaned_message_is_stored(self, db_session: Session):
        """Test that a message with no matching thread is still stored."""
        repo = MessageRepository(db_session)

        repo.create(id="m1", thread_id="no-such-thread", content="orphan")

        assert repo.get("m1").thread_id == "no-such-thread"

    def test_create_many(self, db_session: Session):
        """Test inserting a batch keeps input order."""
        repo = MessageRepository(db_session)

        created = repo.create_many(
            [
                {"id": "m1", "thread_id": "t1", "content": "one"},
                {"id": "m2", "thread_id": "t1", "content": "two"},
            ]
        )

        assert [m.id for m in created] == ["m1", "m2"]
        assert repo.synchronizer.entry_count(db_session) == 2

    def test_update_content(self, db_session: Session):
        repo = MessageRepository(db_session)
        repo.create(id="m1", thread_id="t1", content="before")

        message = repo.update_content("m1", "after")

        assert message.content == "after"
        assert search_ids(repo, "aft") == ["m1"]
        assert search_ids(repo, "bef") == []

    def test_update_missing_message(self, db_session: Session):
        repo = MessageRepository(db_session)

        with pytest.raises(MessageNotFoundError):
            repo.update_content("nope", "x")

    def test_delete_missing_message(self, db_session: Session):
        repo = MessageRepository(db_session)

        with pytest.raises(MessageNotFoundError):
            repo.delete("nope")

    def test_get_by_thread_oldest_first(self, db_session: Session):
        """Test ordering within a thread."""
        repo = MessageRepository(db_session)
        base = datetime(2025, 1, 1, 12, 0, 0)
        repo.create(id="m2", thread_id="t1", content="b", created_at=base + timedelta(minutes=1))
        repo.create(id="m1", thread_id="t1", content="a", created_at=base)
        repo.create(id="m3", thread_id="t2", content="c", created_at=base)

        assert [m.id for m in repo.get_by_thread("t1")] == ["m1", "m2"]

    def test_list_recent_newest_first(self, db_session: Session):
        repo = MessageRepository(db_session)
        base = datetime(2025, 1, 1, 12, 0, 0)
        for i in range(3):
            repo.create(id=f"m{i}", thread_id="t1", content="x", created_at=base + timedelta(minutes=i))

        assert [m.id for m in repo.list_recent(limit=2)] == ["m2", "m1"]

    def test_resolve_short_id(self, db_session: Session):
        repo = MessageRepository(db_session)
        repo.create(id="abc123", thread_id="t1", content="a")
        repo.create(id="abd456", thread_id="t1", content="b")

        assert repo.resolve_short_id("abd") == "abd456"
        with pytest.raises(AmbiguousIdError):
            repo.resolve_short_id("ab")
        with pytest.raises(MessageNotFoundError):
            repo.resolve_short_id("x")


class TestBulkDelete:
    """Tests for bulk cleanup deletes."""

    def test_delete_by_thread(self, db_session: Session):
        """Test that only the thread's messages and entries go."""
        repo = MessageRepository(db_session)
        repo.create(id="m1", thread_id="t1", content="alpha")
        repo.create(id="m2", thread_id="t1", content="beta")
        repo.create(id="m3", thread_id="t2", content="gamma")

        assert repo.delete_by_thread("t1") == 2
        assert repo.count() == 1
        assert repo.synchronizer.entry_count(db_session) == 1
        assert search_ids(repo, "alpha") == []
        assert search_ids(repo, "gamma") == ["m3"]

    def test_delete_by_session(self, db_session: Session):
        repo = MessageRepository(db_session)
        repo.create(id="m1", thread_id="t1", session_id="s1", content="alpha")
        repo.create(id="m2", thread_id="t1", session_id="s2", content="beta")

        assert repo.delete_by_session("s1") == 1
        assert [m.id for m in repo.get_all()] == ["m2"]
        assert repo.synchronizer.entry_count(db_session) == 1

    def test_delete_older_than(self, db_session: Session):
        """Test cutoff is exclusive."""
        repo = MessageRepository(db_session)
        cutoff = datetime(2025, 6, 1)
        repo.create(id="old", thread_id="t1", content="old", created_at=cutoff - timedelta(days=1))
        repo.create(id="edge", thread_id="t1", content="edge", created_at=cutoff)

        assert repo.delete_older_than(cutoff) == 1
        assert [m.id for m in repo.get_all()] == ["edge"]

    def test_delete_nothing_matches(self, db_session: Session):
        repo = MessageRepository(db_session)

        assert repo.delete_by_thread("t1") == 0


class TestSearch:
    """Tests for MessageRepository.search()."""

    def test_all_terms_must_match(self, db_session: Session):
        """Test AND semantics across indexed terms."""
        repo = MessageRepository(db_session)
        repo.create(id="m1", thread_id="t1", content="hello world")
        repo.create(id="m2", thread_id="t1", content="hello there")

        assert search_ids(repo, "hello world") == ["m1"]
        assert sorted(search_ids(repo, "hello")) == ["m1", "m2"]

    def test_substring_match(self, db_session: Session):
        """Test that terms match inside words."""
        repo = MessageRepository(db_session)
        repo.create(id="m1", thread_id="t1", content="unbelievable")

        assert search_ids(repo, "lieva") == ["m1"]

    def test_case_insensitive(self, db_session: Session):
        repo = MessageRepository(db_session)
        repo.create(id="m1", thread_id="t1", content="Hello World")

        assert search_ids(repo, "WORLD") == ["m1"]

    def test_thread_filter(self, db_session: Session):
        repo = MessageRepository(db_session)
        repo.create(id="m1", thread_id="t1", content="shared words")
        repo.create(id="m2", thread_id="t2", content="shared words")

        assert search_ids(repo, "shared", thread_id="t2") == ["m2"]

    def test_short_terms_filter_indexed_results(self, db_session: Session):
        """Test that a short term narrows an indexed match."""
        repo = MessageRepository(db_session)
        repo.create(id="m1", thread_id="t1", content="deploy to prod")
        repo.create(id="m2", thread_id="t1", content="deploy later")

        assert search_ids(repo, "deploy to") == ["m1"]

    def test_short_only_query(self, db_session: Session):
        """Test a query with no indexed terms, newest first."""
        repo = MessageRepository(db_session)
        base = datetime(2025, 1, 1)
        repo.create(id="m1", thread_id="t1", content="go", created_at=base)
        repo.create(id="m2", thread_id="t1", content="ago", created_at=base + timedelta(hours=1))
        repo.create(id="m3", thread_id="t1", content="stop", created_at=base)

        assert search_ids(repo, "go") == ["m2", "m1"]

    def test_short_term_wildcards_are_literal(self, db_session: Session):
        repo = MessageRepository(db_session)
        repo.create(id="m1", thread_id="t1", content="100% sure")
        repo.create(id="m2", thread_id="t1", content="100 sure")

        assert search_ids(repo, "0%") == ["m1"]

    def test_quotes_in_query_are_literal(self, db_session: Session):
        """Test that FTS syntax characters cannot break the query."""
        repo = MessageRepository(db_session)
        repo.create(id="m1", thread_id="t1", content='he said "stop" AND left')

        assert search_ids(repo, '"stop"') == ["m1"]
        assert search_ids(repo, "AND") == ["m1"]

    def test_no_match(self, db_session: Session):
        repo = MessageRepository(db_session)
        repo.create(id="m1", thread_id="t1", content="hello")

        assert search_ids(repo, "xyz") == []

    def test_empty_query(self):
        with pytest.raises(SearchQueryError):
            parse_query("")
