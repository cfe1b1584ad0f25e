"""
Tests for CLI commands.
"""

import logging

import pytest
from typer.testing import CliRunner

from threadstore.cli import app
from threadstore.config import Settings
from threadstore.store import ThreadStore

# Disable Rich formatting in tests using NO_COLOR environment variable
runner = CliRunner(env={"NO_COLOR": "1", "TERM": "dumb"})


@pytest.fixture
def cli_settings(tmp_path, monkeypatch) -> Settings:
    """Point the CLI at a fresh on-disk store."""
    config = Settings(
        _env_file=None,
        data_dir=str(tmp_path / "data"),
        log_file_enabled=False,
        log_console_enabled=False,
    )
    monkeypatch.setattr("threadstore.cli.settings", config)
    yield config
    root = logging.getLogger("threadstore")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.propagate = True


class TestMigrateCommand:
    """Tests for migrate command."""

    def test_migrate_fresh_store(self, cli_settings):
        """Test that migrate applies every version once."""
        result = runner.invoke(app, ["migrate"])

        assert result.exit_code == 0
        assert "Applied 3 migration(s)" in result.stdout
        assert cli_settings.database_path.exists()

    def test_migrate_twice_is_noop(self, cli_settings):
        runner.invoke(app, ["migrate"])

        result = runner.invoke(app, ["migrate"])

        assert result.exit_code == 0
        assert "Schema is current" in result.stdout


class TestStatusCommand:
    """Tests for status command."""

    def test_status_before_migrate(self, cli_settings):
        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "Current version: v0" in result.stdout
        assert "Pending: 3" in result.stdout

    def test_status_after_migrate(self, cli_settings):
        runner.invoke(app, ["migrate"])

        result = runner.invoke(app, ["status"])

        assert "Current version: v3" in result.stdout
        assert "Pending: none" in result.stdout


class TestCheckCommand:
    """Tests for check command."""

    def test_check_fails_before_migrate(self, cli_settings):
        result = runner.invoke(app, ["check"])

        assert result.exit_code == 1
        assert "threadstore migrate" in result.stdout

    def test_check_passes_after_migrate(self, cli_settings):
        runner.invoke(app, ["migrate"])

        result = runner.invoke(app, ["check"])

        assert result.exit_code == 0
        assert "All checks passed" in result.stdout


class TestSearchAndReindex:
    """Tests for search and reindex commands."""

    @pytest.fixture
    def populated(self, cli_settings):
        with ThreadStore.open(cli_settings) as store:
            store.create_thread("CLI", thread_id="thread-cli")
            store.create_message("thread-cli", "the quick brown fox", message_id="msg-fox")
            store.create_message("thread-cli", "lazy dog", message_id="msg-dog")
        return cli_settings

    def test_search_finds_message(self, populated):
        result = runner.invoke(app, ["search", "brown"])

        assert result.exit_code == 0
        assert "msg-fox" in result.stdout
        assert "msg-dog" not in result.stdout

    def test_search_no_matches(self, populated):
        result = runner.invoke(app, ["search", "zebra"])

        assert result.exit_code == 0
        assert "No matches" in result.stdout

    def test_search_empty_query(self, populated):
        """Test that an empty query exits with status 2."""
        result = runner.invoke(app, ["search", ""])

        assert result.exit_code == 2
        assert "Error" in result.stdout

    def test_search_limit(self, populated):
        result = runner.invoke(app, ["search", "o", "--limit", "1"])

        assert result.exit_code == 0
        assert result.stdout.count("msg-") == 1

    def test_reindex(self, populated):
        result = runner.invoke(app, ["reindex"])

        assert result.exit_code == 0
        assert "Search index rebuilt" in result.stdout
        assert "(2 entries)" in result.stdout
