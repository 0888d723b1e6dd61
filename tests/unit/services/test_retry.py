"""Unit tests for retry policy and call_with_retry."""

from __future__ import annotations

import pytest

from app.services.github.exceptions import (
    AuthError,
    RateLimitError,
    RefConflictError,
    TransientNetworkError,
)
from app.services.github.rate_limiter import GitHubQuotaGateway
from app.services.github.retry import RetryAbandonedError, RetryPolicy, call_with_retry
from tests.helpers.fakes import ImmediateGateway, RecordingSleep


def _flaky(errors: list[Exception], result: str = "ok"):
    """Operation raising the given errors in order, then returning result."""
    calls = {"count": 0}

    async def operation() -> str:
        calls["count"] += 1
        if errors:
            raise errors.pop(0)
        return result

    return operation, calls


class TestRetryPolicy:
    """Tests for backoff computation."""

    def test_backoff_grows_exponentially_within_jitter_bounds(self):
        policy = RetryPolicy(max_attempts=5, base_delay=1.0, max_delay=100.0)

        assert policy.backoff(1, rng=lambda: 0.0) == 0.5
        assert policy.backoff(1, rng=lambda: 1.0) == 1.0
        assert policy.backoff(3, rng=lambda: 0.0) == 2.0
        assert policy.backoff(3, rng=lambda: 1.0) == 4.0

    def test_backoff_is_capped(self):
        policy = RetryPolicy(max_attempts=10, base_delay=1.0, max_delay=8.0)

        assert policy.backoff(10, rng=lambda: 1.0) == 8.0

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    def test_from_settings(self):
        from tests.helpers.config import make_settings

        policy = RetryPolicy.from_settings(
            make_settings(push_max_attempts=7, push_backoff_base_seconds=0.2)
        )

        assert policy.max_attempts == 7
        assert policy.base_delay == 0.2


class TestCallWithRetry:
    """Tests for the retry loop."""

    @pytest.mark.anyio
    async def test_returns_first_success(self):
        operation, calls = _flaky([])
        sleep = RecordingSleep()

        result = await call_with_retry(
            operation,
            description="op",
            policy=RetryPolicy(max_attempts=3),
            gateway=ImmediateGateway(),
            sleep=sleep,
        )

        assert result == "ok"
        assert calls["count"] == 1
        assert sleep.delays == []

    @pytest.mark.anyio
    async def test_retries_transient_errors_with_backoff(self):
        operation, calls = _flaky([TransientNetworkError("boom", 502), TransientNetworkError("boom", 503)])
        sleep = RecordingSleep()

        result = await call_with_retry(
            operation,
            description="op",
            policy=RetryPolicy(max_attempts=3, base_delay=0.1, max_delay=1.0),
            gateway=ImmediateGateway(),
            sleep=sleep,
        )

        assert result == "ok"
        assert calls["count"] == 3
        assert len(sleep.delays) == 2
        assert 0.05 <= sleep.delays[0] <= 0.1
        assert 0.1 <= sleep.delays[1] <= 0.2

    @pytest.mark.anyio
    async def test_rate_limit_waits_for_gateway_delay(self):
        operation, _ = _flaky([RateLimitError("slow down", 429, headers={"Retry-After": "3"})])
        sleep = RecordingSleep()
        gateway = ImmediateGateway(wait=3.0)

        await call_with_retry(
            operation,
            description="op",
            policy=RetryPolicy(max_attempts=2),
            gateway=gateway,
            sleep=sleep,
        )

        assert sleep.delays == [3.0]
        assert gateway.wait_requests == 1

    @pytest.mark.anyio
    async def test_exhausted_rate_limit_is_not_retryable(self):
        operation, calls = _flaky([RateLimitError("slow down", 429) for _ in range(3)])

        with pytest.raises(RateLimitError, match="gave up after 3 attempts") as exc_info:
            await call_with_retry(
                operation,
                description="op",
                policy=RetryPolicy(max_attempts=3),
                gateway=ImmediateGateway(),
                sleep=RecordingSleep(),
            )

        assert exc_info.value.retryable is False
        assert calls["count"] == 3

    @pytest.mark.anyio
    async def test_non_retryable_rate_limit_is_raised_at_once(self):
        error = RateLimitError("quota gone", 429, rate_limit_reset=1_700_003_600, retryable=False)
        operation, calls = _flaky([error])
        sleep = RecordingSleep()

        with pytest.raises(RateLimitError) as exc_info:
            await call_with_retry(
                operation,
                description="op",
                policy=RetryPolicy(max_attempts=4),
                gateway=ImmediateGateway(),
                sleep=sleep,
            )

        assert exc_info.value is error
        assert calls["count"] == 1
        assert sleep.delays == []

    @pytest.mark.anyio
    async def test_gives_up_when_gateway_wait_exceeds_limit(self):
        now = 1_700_000_000.0
        gateway = GitHubQuotaGateway(max_wait=60, clock=lambda: now, sleep=RecordingSleep())
        operation, calls = _flaky(
            [RateLimitError("slow down", 429, headers={"X-RateLimit-Reset": str(int(now) + 3600)})]
        )
        sleep = RecordingSleep()

        with pytest.raises(RateLimitError) as exc_info:
            await call_with_retry(
                operation,
                description="op",
                policy=RetryPolicy(max_attempts=4),
                gateway=gateway,
                sleep=sleep,
            )

        assert exc_info.value.retryable is False
        assert exc_info.value.rate_limit_reset == int(now) + 3600
        assert calls["count"] == 1
        assert sleep.delays == []

    @pytest.mark.anyio
    async def test_exhausted_transient_error_propagates(self):
        operation, calls = _flaky([TransientNetworkError("boom", 500) for _ in range(2)])

        with pytest.raises(TransientNetworkError):
            await call_with_retry(
                operation,
                description="op",
                policy=RetryPolicy(max_attempts=2),
                gateway=ImmediateGateway(),
                sleep=RecordingSleep(),
            )

        assert calls["count"] == 2

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "error",
        [AuthError("bad token", 401), RefConflictError("moved")],
    )
    async def test_fatal_errors_are_not_retried(self, error):
        operation, calls = _flaky([error])
        sleep = RecordingSleep()

        with pytest.raises(type(error)):
            await call_with_retry(
                operation,
                description="op",
                policy=RetryPolicy(max_attempts=5),
                gateway=ImmediateGateway(),
                sleep=sleep,
            )

        assert calls["count"] == 1
        assert sleep.delays == []

    @pytest.mark.anyio
    async def test_should_stop_abandons_before_next_attempt(self):
        operation, calls = _flaky([TransientNetworkError("boom", 500)])

        with pytest.raises(RetryAbandonedError):
            await call_with_retry(
                operation,
                description="op",
                policy=RetryPolicy(max_attempts=3),
                gateway=ImmediateGateway(),
                sleep=RecordingSleep(),
                should_stop=lambda: True,
            )

        assert calls["count"] == 1
