"""API test fixtures: HTTP clients wired to the fake Git Data API.

The push orchestrator dependency is overridden so requests reach the
in-memory fake instead of api.github.com, while the bearer token still flows
through the real get_github_token dependency.
"""

from __future__ import annotations

import pytest
from fastapi import Depends
from httpx import ASGITransport, AsyncClient

from app.services.github import PushOrchestrator, static_token
from tests.helpers.config import make_settings


@pytest.fixture
async def api_client(fake_github, gateway, no_sleep):
    """HTTP client whose pushes go to fake_github."""
    from app.api.deps import get_github_token, get_push_orchestrator
    from app.main import app

    def override_orchestrator(token: str = Depends(get_github_token)) -> PushOrchestrator:
        return PushOrchestrator(
            static_token(token),
            gateway=gateway,
            client=fake_github.client(),
            config=make_settings(),
            sleep=no_sleep,
        )

    app.dependency_overrides[get_push_orchestrator] = override_orchestrator

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport, base_url="http://test", follow_redirects=True
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def unauth_client():
    """HTTP client using the real dependencies."""
    from app.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport, base_url="http://test", follow_redirects=True
    ) as client:
        yield client
