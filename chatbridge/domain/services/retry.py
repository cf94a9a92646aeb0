"""
Retry logic - exponential backoff for transient backend failures.
Retries are local to one call: a failure is retried only while the policy
allows it, then surfaced as BackendUnavailable.
"""

from __future__ import annotations
import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from ..errors import BackendOverloaded, BackendUnavailable
from ..interfaces.llm_client import RetryPolicy

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter: float = 0.1


class ExponentialBackoffPolicy(RetryPolicy):
    """Retry BackendOverloaded with delays of base * 2**attempt plus jitter."""

    def __init__(self, config: Optional[RetryConfig] = None):
        self._config = config or RetryConfig()

    @property
    def config(self) -> RetryConfig:
        return self._config

    def should_retry(self, attempt: int, error: Exception) -> bool:
        if attempt >= self._config.max_retries:
            return False
        return isinstance(error, BackendOverloaded)

    def get_delay(self, attempt: int) -> float:
        delay = min(self._config.base_delay * (2 ** attempt), self._config.max_delay)
        return delay + random.uniform(0, self._config.jitter * delay)

    def get_max_attempts(self) -> int:
        return self._config.max_retries + 1


class NoRetryPolicy(RetryPolicy):
    """Single attempt; transient failures surface immediately as BackendUnavailable."""

    def should_retry(self, attempt: int, error: Exception) -> bool:
        return False

    def get_delay(self, attempt: int) -> float:
        return 0.0

    def get_max_attempts(self) -> int:
        return 1


def call_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    logger: Optional[logging.Logger] = None,
) -> T:
    """Execute `operation`, retrying transient failures per `policy`.

    BackendOverloaded that outlives the policy becomes BackendUnavailable.
    Every other exception propagates unchanged on first occurrence.
    """
    log = logger or logging.getLogger(__name__)
    attempt = 0
    while True:
        try:
            return operation()
        except BackendOverloaded as e:
            if not policy.should_retry(attempt, e):
                log.error(f"Final attempt {attempt + 1} failed: {e}")
                raise BackendUnavailable(
                    f"Backend unavailable after {attempt + 1} attempt(s): {e}",
                    status_code=e.status_code,
                ) from e
            delay = policy.get_delay(attempt)
            log.debug(f"Attempt {attempt + 1} failed: {e}; retrying in {delay:.2f}s")
            time.sleep(delay)
            attempt += 1
