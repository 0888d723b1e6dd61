"""
Retry with jittered exponential backoff for push API calls.

Only transient network failures and rate-limit rejections are retried, and
only while still marked retryable. Everything else propagates on the first
attempt.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from app.config import Settings
from app.services.github.exceptions import (
    GitHubPushError,
    RateLimitError,
    TransientNetworkError,
)
from app.services.github.rate_limiter import RateLimiterGateway

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]

RETRYABLE_ERRORS: tuple[type[GitHubPushError], ...] = (TransientNetworkError, RateLimitError)


class RetryAbandonedError(Exception):
    """Raised instead of a further attempt once the caller asked to stop."""


@dataclass
class RetryPolicy:
    """Attempt ceiling and backoff bounds."""

    max_attempts: int = 4
    base_delay: float = 0.5
    max_delay: float = 8.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.push_max_attempts,
            base_delay=settings.push_backoff_base_seconds,
            max_delay=settings.push_backoff_max_seconds,
        )

    def backoff(self, attempt: int, rng: Callable[[], float] = random.random) -> float:
        """
        Delay before the attempt following `attempt` (1-indexed).

        Equal jitter: half the exponential step is fixed, half is random, so
        concurrent workers spread out without ever retrying immediately.
        """
        step = min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))
        return step / 2 + rng() * step / 2


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    description: str,
    policy: RetryPolicy,
    gateway: RateLimiterGateway,
    sleep: SleepFunc = asyncio.sleep,
    should_stop: Callable[[], bool] | None = None,
) -> T:
    """
    Run `operation` until it succeeds, fails fatally, or attempts run out.

    Args:
        operation: Zero-argument coroutine factory issuing one API call
        description: Label for log lines (e.g. "blob src/index.ts")
        policy: Attempt ceiling and backoff bounds
        gateway: Computes the wait after a rate-limit response
        sleep: Awaitable sleep, injectable for tests
        should_stop: Checked before every retry; True abandons the call

    Returns:
        The operation's result

    Raises:
        RateLimitError: With retryable=False once attempts are exhausted
        RetryAbandonedError: If should_stop() turned True between attempts
        GitHubPushError: Non-retryable errors immediately, others when exhausted
    """
    last_error: GitHubPushError | None = None

    for attempt in range(1, policy.max_attempts + 1):
        if attempt > 1 and should_stop is not None and should_stop():
            raise RetryAbandonedError(description)

        try:
            return await operation()
        except RETRYABLE_ERRORS as e:
            if not e.retryable:
                raise
            last_error = e
            if isinstance(e, RateLimitError):
                delay = gateway.compute_wait(e.headers)
            else:
                delay = policy.backoff(attempt)

        if attempt < policy.max_attempts:
            logger.warning(
                f"{description} failed (attempt {attempt}/{policy.max_attempts}), "
                f"retrying in {delay:.2f}s: {last_error.message}"
            )
            await sleep(delay)

    assert last_error is not None
    logger.error(f"{description} failed after {policy.max_attempts} attempts: {last_error.message}")

    if isinstance(last_error, RateLimitError):
        raise RateLimitError(
            f"{last_error.message} (gave up after {policy.max_attempts} attempts)",
            last_error.status_code,
            rate_limit_reset=last_error.rate_limit_reset,
            retryable=False,
            headers=last_error.headers,
        ) from last_error
    raise last_error
