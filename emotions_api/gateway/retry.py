"""Retry Policy: exponential backoff with jitter for transient upstream errors.

Backoff strategy:
  delay  = min(base * multiplier^attempt, max_delay)
  delay += random(0, jitter_factor * delay)

Only the outbound call is retried; validation and breaker checks never are.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable

from emotions_api.gateway.types import RetryAttempt

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

RETRYABLE_ERROR_CODES = frozenset(
    {
        "connection_reset",
        "connection_refused",
        "timeout",
        "dns_failure",
        "dns_temporary_failure",
        "broken_pipe",
        "host_unreachable",
    }
)

_RETRYABLE_MESSAGE_FRAGMENTS = ("timeout", "socket hang up")


def is_retryable(exc: BaseException) -> bool:
    """Classify an upstream failure as transient."""
    status_code = getattr(exc, "status_code", 0)
    if status_code in RETRYABLE_STATUS_CODES:
        return True

    error_code = getattr(exc, "error_code", "")
    if error_code in RETRYABLE_ERROR_CODES:
        return True

    message = str(exc).lower()
    return any(fragment in message for fragment in _RETRYABLE_MESSAGE_FRAGMENTS)


class RetryPolicy:
    """Fixed retry budget with capped exponential backoff."""

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        multiplier: float = 2.0,
        max_delay: float = 10.0,
        jitter_factor: float = 0.1,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.multiplier = multiplier
        self.max_delay = max_delay
        self.jitter_factor = jitter_factor
        self._sleep = sleep
        self._rand = rand

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def compute_delay(self, attempt: int) -> float:
        """Delay in seconds after the failed attempt with 0-based index ``attempt``."""
        delay = min(self.base_delay * (self.multiplier**attempt), self.max_delay)
        return delay + self._rand() * self.jitter_factor * delay

    def should_retry(self, attempt: int, exc: BaseException) -> bool:
        return attempt + 1 < self.max_attempts and is_retryable(exc)

    async def wait(self, attempt: RetryAttempt) -> None:
        logger.warning(
            "Transient upstream error on attempt %d/%d (%s), retrying in %.2fs",
            attempt.index + 1,
            self.max_attempts,
            attempt.error,
            attempt.delay,
        )
        await self._sleep(attempt.delay)
