"""
threadstore Configuration.

Centralized configuration management using Pydantic Settings.
Loads configuration from environment variables prefixed with THREADSTORE_.
"""

import os
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


def get_xdg_data_dir() -> str:
    """
    Get XDG-compliant data directory for threadstore.

    Follows XDG Base Directory Specification:
    - Uses $XDG_DATA_HOME/threadstore if XDG_DATA_HOME is set
    - Falls back to $HOME/.local/share/threadstore if not set
    - Returns relative path .threadstore if HOME not available (dev/testing)

    Returns:
        str: Path to data directory
    """
    xdg_data_home = os.getenv("XDG_DATA_HOME")
    if xdg_data_home:
        return str(Path(xdg_data_home) / "threadstore")

    home = os.getenv("HOME")
    if home:
        return str(Path(home) / ".local" / "share" / "threadstore")

    return ".threadstore"


def get_xdg_state_dir() -> str:
    """
    Get XDG-compliant state directory for threadstore logs.

    Returns:
        str: Path to state/logs directory
    """
    xdg_state_home = os.getenv("XDG_STATE_HOME")
    if xdg_state_home:
        return str(Path(xdg_state_home) / "threadstore" / "logs")

    home = os.getenv("HOME")
    if home:
        return str(Path(home) / ".local" / "state" / "threadstore" / "logs")

    return "./logs"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="THREADSTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    data_dir: str = ""  # Defaults to XDG data dir if empty
    database_filename: str = "threadstore.db"
    database_url_override: Optional[str] = None  # e.g. "sqlite://" for in-memory
    busy_timeout_ms: int = 5000
    journal_mode: str = "WAL"
    synchronous: str = "NORMAL"
    echo_sql: bool = False

    # Lock contention retry
    retry_max_attempts: int = 3
    retry_initial_delay: float = 0.05  # seconds
    retry_max_delay: float = 2.0  # seconds

    # Logging
    log_level: str = "INFO"
    log_dir: str = ""  # Defaults to XDG state dir if empty
    log_format: str = "standard"  # standard or json
    log_console_enabled: bool = True
    log_file_enabled: bool = True
    log_max_bytes: int = 10_485_760  # 10MB per log file
    log_backup_count: int = 5

    @property
    def data_directory(self) -> Path:
        """Get the data directory path, using XDG default if not specified."""
        if self.data_dir:
            return Path(self.data_dir).expanduser()
        return Path(get_xdg_data_dir())

    @property
    def database_path(self) -> Path:
        """Path of the SQLite database file."""
        return self.data_directory / self.database_filename

    @property
    def database_url(self) -> str:
        """Construct database URL, honoring an explicit override."""
        if self.database_url_override:
            return self.database_url_override
        return f"sqlite:///{self.database_path}"

    @property
    def log_directory(self) -> Path:
        """Get the log directory path, using XDG default if not specified."""
        if self.log_dir:
            return Path(self.log_dir).expanduser()
        return Path(get_xdg_state_dir())


# Global settings instance
settings = Settings()
