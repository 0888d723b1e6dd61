"""Rate limiter gateway for GitHub API calls.

Every push request acquires a permit before it is sent and reports the
response headers afterwards. When GitHub answers with a rate-limit status the
gateway tells the caller how long to wait before the next attempt, or
refuses outright when the limit lifts further out than the configured
maximum wait.

`GitHubQuotaGateway` keeps quota bookkeeping in memory from GitHub's own
X-RateLimit-* headers. It is suitable for a single instance; a shared store
would be needed to coordinate quota across instances.
"""

import asyncio
import logging
import math
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Protocol

from app.services.github.exceptions import RateLimitError
from app.services.github.helpers import RateLimitInfo

logger = logging.getLogger(__name__)


class RateLimiterGateway(Protocol):
    """Permit protocol used by every push API call."""

    async def acquire(self, scope: str) -> None:
        """Block until a request in `scope` may be sent."""
        ...

    def report(self, headers: Mapping[str, str]) -> None:
        """Record quota information from a response."""
        ...

    def compute_wait(self, headers: Mapping[str, str]) -> float:
        """Seconds to wait after a rate-limit response with these headers.

        Raises a non-retryable RateLimitError when the wait would be too long.
        """
        ...


@dataclass
class QuotaState:
    """Last known quota for one rate-limit resource."""

    remaining: int
    reset_at: float  # Unix timestamp


class GitHubQuotaGateway:
    """In-memory gateway driven by GitHub's rate-limit headers.

    Quota is tracked per X-RateLimit-Resource (e.g. "core"). Permits are
    checked against the resource GitHub last reported; all Git Data endpoints
    share the "core" bucket on GitHub, so the scope only labels log lines.
    """

    def __init__(
        self,
        default_wait: float = 60.0,
        max_wait: float = 60.0,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.default_wait = default_wait
        self.max_wait = max_wait
        self._clock = clock
        self._sleep = sleep
        self._quotas: dict[str, QuotaState] = {}
        self._last_resource = "core"

    async def acquire(self, scope: str) -> None:
        resource = self._last_resource
        quota = self._quotas.get(resource)
        if quota is None:
            return

        now = self._clock()
        if now >= quota.reset_at:
            # Window rolled over; wait for the next response to refresh it
            del self._quotas[resource]
            return

        if quota.remaining > 0:
            quota.remaining -= 1
            return

        wait = quota.reset_at - now
        if wait > self.max_wait:
            raise self._exhausted(resource, wait, int(quota.reset_at))

        logger.warning(
            f"GitHub quota for '{resource}' exhausted before {scope} call, "
            f"waiting {wait:.1f}s until reset"
        )
        await self._sleep(wait)
        # The window has reset; the next response carries the fresh quota
        self._quotas.pop(resource, None)

    def report(self, headers: Mapping[str, str]) -> None:
        rate_info = RateLimitInfo(headers)
        remaining = rate_info.remaining_count
        reset = rate_info.reset_timestamp
        if remaining is None or reset is None:
            return

        resource = rate_info.resource or "core"
        self._last_resource = resource
        self._quotas[resource] = QuotaState(remaining=remaining, reset_at=float(reset))
        if remaining == 0:
            logger.info(f"GitHub quota for '{resource}' reached 0, resets at {reset}")

    def compute_wait(self, headers: Mapping[str, str]) -> float:
        """
        Seconds the caller sleeps before retrying a rate-limited request.

        The caller owns that wait, so the quota recorded from the same
        response is cleared and `acquire` does not sleep a second time.

        Raises:
            RateLimitError: Non-retryable, when the limit lifts later than
                max_wait from now
        """
        rate_info = RateLimitInfo(headers)
        resource = rate_info.resource or self._last_resource
        now = self._clock()

        retry_after = rate_info.retry_after_seconds
        reset = rate_info.reset_timestamp
        if retry_after is not None:
            wait = float(retry_after)
            reset_at = int(now + retry_after)
        elif reset is not None:
            wait = max(0.0, reset - now)
            reset_at = reset
        else:
            wait = min(self.default_wait, self.max_wait)
            reset_at = None

        if wait > self.max_wait:
            raise self._exhausted(resource, wait, reset_at)

        self._quotas.pop(resource, None)
        return wait

    def get_remaining(self, resource: str = "core") -> int | None:
        """Last reported remaining quota for a resource, if known."""
        quota = self._quotas.get(resource)
        return quota.remaining if quota else None

    def _exhausted(self, resource: str, wait: float, reset_at: int | None) -> RateLimitError:
        logger.warning(
            f"GitHub quota for '{resource}' lifts in {wait:.0f}s, beyond the "
            f"{self.max_wait:g}s wait limit; giving up"
        )
        return RateLimitError(
            f"GitHub rate limit exhausted for '{resource}'",
            status_code=429,
            rate_limit_reset=reset_at,
            retryable=False,
        )


def format_time_until_reset(reset_at: float, now: float | None = None) -> str:
    """
    Human-readable time until a rate limit resets.

    Returns "now" once the reset time has passed, otherwise whole minutes, or
    seconds when less than a minute remains.
    """
    current = time.time() if now is None else now
    diff = reset_at - current
    if diff <= 0:
        return "now"

    minutes = math.floor(diff / 60)
    if minutes > 0:
        return f"{minutes} minute{'s' if minutes != 1 else ''}"

    seconds = math.floor(diff)
    return f"{seconds} second{'s' if seconds != 1 else ''}"
