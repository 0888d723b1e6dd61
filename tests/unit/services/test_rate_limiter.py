"""Unit tests for the GitHub quota gateway and reset formatting."""

from __future__ import annotations

import pytest

from app.services.github.exceptions import RateLimitError
from app.services.github.rate_limiter import GitHubQuotaGateway, format_time_until_reset
from tests.helpers.fakes import RecordingSleep

NOW = 1_700_000_000.0


def _gateway(sleep: RecordingSleep, **kwargs) -> GitHubQuotaGateway:
    return GitHubQuotaGateway(clock=lambda: NOW, sleep=sleep, **kwargs)


class TestQuotaGatewayAcquire:
    """Tests for permit acquisition against reported quota."""

    @pytest.mark.anyio
    async def test_grants_immediately_without_quota_info(self):
        sleep = RecordingSleep()
        gateway = _gateway(sleep)

        await gateway.acquire("git.blobs")

        assert sleep.delays == []

    @pytest.mark.anyio
    async def test_grants_and_counts_down_remaining(self):
        sleep = RecordingSleep()
        gateway = _gateway(sleep)
        gateway.report({"X-RateLimit-Remaining": "2", "X-RateLimit-Reset": str(int(NOW) + 600)})

        await gateway.acquire("git.blobs")
        await gateway.acquire("git.trees")

        assert sleep.delays == []
        assert gateway.get_remaining() == 0

    @pytest.mark.anyio
    async def test_waits_until_reset_when_exhausted(self):
        sleep = RecordingSleep()
        gateway = _gateway(sleep, max_wait=600)
        gateway.report({"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": str(int(NOW) + 45)})

        await gateway.acquire("git.blobs")

        assert sleep.delays == [45.0]

    @pytest.mark.anyio
    async def test_fails_fast_when_reset_is_beyond_max_wait(self):
        sleep = RecordingSleep()
        gateway = _gateway(sleep, max_wait=10)
        gateway.report({"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": str(int(NOW) + 3600)})

        with pytest.raises(RateLimitError) as exc_info:
            await gateway.acquire("git.blobs")

        assert exc_info.value.retryable is False
        assert exc_info.value.rate_limit_reset == int(NOW) + 3600
        assert sleep.delays == []

    @pytest.mark.anyio
    async def test_waits_only_once_per_exhausted_window(self):
        sleep = RecordingSleep()
        gateway = _gateway(sleep, max_wait=600)
        gateway.report({"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": str(int(NOW) + 45)})

        await gateway.acquire("git.blobs")
        await gateway.acquire("git.blobs")

        assert sleep.delays == [45.0]

    @pytest.mark.anyio
    async def test_expired_window_is_forgotten(self):
        sleep = RecordingSleep()
        gateway = _gateway(sleep)
        gateway.report({"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": str(int(NOW) - 1)})

        await gateway.acquire("git.blobs")

        assert sleep.delays == []
        assert gateway.get_remaining() is None

    def test_report_tracks_resource(self):
        gateway = _gateway(RecordingSleep())
        gateway.report(
            {
                "X-RateLimit-Remaining": "99",
                "X-RateLimit-Reset": str(int(NOW) + 60),
                "X-RateLimit-Resource": "core",
            }
        )

        assert gateway.get_remaining("core") == 99

    def test_report_ignores_partial_headers(self):
        gateway = _gateway(RecordingSleep())
        gateway.report({"X-RateLimit-Remaining": "99"})

        assert gateway.get_remaining() is None


class TestQuotaGatewayComputeWait:
    """Tests for the wait computed after a rate-limit response."""

    def test_prefers_retry_after(self):
        gateway = _gateway(RecordingSleep())

        wait = gateway.compute_wait({"Retry-After": "7", "X-RateLimit-Reset": str(int(NOW) + 50)})

        assert wait == 7.0

    def test_uses_reset_header(self):
        gateway = _gateway(RecordingSleep())

        assert gateway.compute_wait({"X-RateLimit-Reset": str(int(NOW) + 20)}) == 20.0

    def test_reset_in_the_past_waits_zero(self):
        gateway = _gateway(RecordingSleep())

        assert gateway.compute_wait({"X-RateLimit-Reset": str(int(NOW) - 20)}) == 0.0

    def test_falls_back_to_default(self):
        gateway = _gateway(RecordingSleep(), default_wait=15, max_wait=60)

        assert gateway.compute_wait({}) == 15

    def test_fails_fast_beyond_max_wait(self):
        gateway = _gateway(RecordingSleep(), max_wait=5)

        with pytest.raises(RateLimitError) as exc_info:
            gateway.compute_wait({"Retry-After": "120"})

        assert exc_info.value.retryable is False
        assert exc_info.value.rate_limit_reset == int(NOW) + 120

    def test_reset_beyond_max_wait_carries_reset_time(self):
        gateway = _gateway(RecordingSleep(), max_wait=60)

        with pytest.raises(RateLimitError) as exc_info:
            gateway.compute_wait({"X-RateLimit-Reset": str(int(NOW) + 3600)})

        assert exc_info.value.rate_limit_reset == int(NOW) + 3600

    def test_default_wait_is_capped(self):
        gateway = _gateway(RecordingSleep(), default_wait=120, max_wait=30)

        assert gateway.compute_wait({}) == 30

    @pytest.mark.anyio
    async def test_clears_quota_so_acquire_does_not_wait_again(self):
        sleep = RecordingSleep()
        gateway = _gateway(sleep, max_wait=60)
        headers = {"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": str(int(NOW) + 30)}
        gateway.report(headers)

        assert gateway.compute_wait(headers) == 30.0
        await gateway.acquire("git.blobs")

        assert sleep.delays == []
        assert gateway.get_remaining() is None


class TestFormatTimeUntilReset:
    """Tests for the human-readable reset countdown."""

    def test_past_reset_is_now(self):
        assert format_time_until_reset(NOW - 5, now=NOW) == "now"

    def test_minutes(self):
        assert format_time_until_reset(NOW + 185, now=NOW) == "3 minutes"

    def test_single_minute(self):
        assert format_time_until_reset(NOW + 60, now=NOW) == "1 minute"

    def test_seconds(self):
        assert format_time_until_reset(NOW + 42, now=NOW) == "42 seconds"

    def test_single_second(self):
        assert format_time_until_reset(NOW + 1, now=NOW) == "1 second"
