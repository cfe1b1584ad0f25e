"""
Retry logic with exponential backoff.

Only transient lock contention ("database is locked" / "database is busy")
is retried; every other error propagates on the first attempt.
"""

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from sqlalchemy.exc import OperationalError

from threadstore.config import Settings
from threadstore.exceptions import TransientStorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_MARKERS = ("database is locked", "database is busy", "database table is locked")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3
    initial_delay: float = 0.05
    max_delay: float = 2.0
    exponential_base: float = 2.0
    jitter: bool = True

    @classmethod
    def from_settings(cls, config: Settings) -> "RetryConfig":
        return cls(
            max_retries=config.retry_max_attempts,
            initial_delay=config.retry_initial_delay,
            max_delay=config.retry_max_delay,
        )


def is_transient(error: BaseException) -> bool:
    """Whether an error is lock contention that may clear on retry."""
    if not isinstance(error, OperationalError):
        return False
    message = str(error.orig if error.orig is not None else error).lower()
    return any(marker in message for marker in TRANSIENT_MARKERS)


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """
    Calculate delay before next retry using exponential backoff.

    Args:
        attempt: Current attempt number (0-indexed)
        config: Retry configuration

    Returns:
        Delay in seconds
    """
    delay = config.initial_delay * (config.exponential_base**attempt)
    delay = min(delay, config.max_delay)

    if config.jitter:
        # Up to 25% jitter so contending writers don't wake in lockstep
        delay += delay * 0.25 * random.random()

    return delay


def run_with_retry(
    operation: Callable[[], T],
    config: Optional[RetryConfig] = None,
    description: str = "operation",
) -> T:
    """
    Run an operation, retrying transient lock errors with backoff.

    The operation must be a complete unit of work (its own transaction) so a
    retry starts from a clean state.

    Raises:
        TransientStorageError: If the lock persists after all retries
    """
    config = config or RetryConfig()

    for attempt in range(config.max_retries + 1):
        try:
            return operation()
        except OperationalError as e:
            if not is_transient(e):
                raise
            if attempt >= config.max_retries:
                logger.error(
                    "Max retries (%d) exceeded for %s: %s",
                    config.max_retries,
                    description,
                    e.orig,
                )
                raise TransientStorageError(
                    f"{description} failed after {config.max_retries} retries: {e.orig}"
                ) from e
            delay = calculate_delay(attempt, config)
            logger.warning(
                "Retry %d/%d for %s: %s, waiting %.2fs",
                attempt + 1,
                config.max_retries,
                description,
                e.orig,
                delay,
            )
            time.sleep(delay)

    raise RuntimeError("Unexpected retry loop exit")

