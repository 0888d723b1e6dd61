"""Root conftest: shared fixtures for push pipeline tests.

Provides:
- An in-memory fake GitHub Git Data API (httpx.MockTransport)
- Deterministic rate limiter gateway and sleep stand-ins
- Settings with test-friendly values
- Factories for GitHubWriteOperations and PushOrchestrator wired to the fake
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest

from app.services.github import (
    GitHubWriteOperations,
    PushOrchestrator,
    PushTarget,
    RetryPolicy,
    static_token,
)
from tests.helpers.config import TOKEN, make_settings
from tests.helpers.fake_github import FakeGitHub
from tests.helpers.fakes import ImmediateGateway, RecordingSleep


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def fake_github() -> AsyncIterator[FakeGitHub]:
    fake = FakeGitHub(owner="octocat", repo="scaffold")
    yield fake
    await fake.aclose()


@pytest.fixture
def target() -> PushTarget:
    return PushTarget(owner="octocat", repo="scaffold", branch="main")


@pytest.fixture
def gateway() -> ImmediateGateway:
    return ImmediateGateway()


@pytest.fixture
def no_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay=0.01, max_delay=0.05)


@pytest.fixture
def operations(fake_github: FakeGitHub, gateway: ImmediateGateway) -> GitHubWriteOperations:
    return GitHubWriteOperations(TOKEN, fake_github.client(), gateway)


@pytest.fixture
def make_orchestrator(
    fake_github: FakeGitHub,
    gateway: ImmediateGateway,
    no_sleep: RecordingSleep,
) -> Callable[..., PushOrchestrator]:
    """Build a PushOrchestrator against the fake; keyword overrides go to Settings."""

    def factory(**setting_overrides: Any) -> PushOrchestrator:
        return PushOrchestrator(
            static_token(TOKEN),
            gateway=gateway,
            client=fake_github.client(),
            config=make_settings(**setting_overrides),
            sleep=no_sleep,
        )

    return factory
