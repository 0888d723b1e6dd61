"""Push pipeline dependencies.

The rate limiter gateway is shared across requests so quota learned from one
push throttles the next.
"""

from typing import Annotated

from fastapi import Depends

from app.api.deps.auth import get_github_token
from app.config import settings
from app.services.github import (
    GitHubQuotaGateway,
    PushOrchestrator,
    RateLimiterGateway,
    static_token,
)

# Singleton instance for application-wide use
_gateway = GitHubQuotaGateway(
    default_wait=settings.rate_limit_default_wait_seconds,
    max_wait=settings.rate_limit_max_wait_seconds,
)


def get_rate_limiter_gateway() -> RateLimiterGateway:
    return _gateway


def get_push_orchestrator(
    token: str = Depends(get_github_token),
    gateway: RateLimiterGateway = Depends(get_rate_limiter_gateway),
) -> PushOrchestrator:
    """Build a PushOrchestrator for the caller's token."""
    return PushOrchestrator(static_token(token), gateway=gateway)


Orchestrator = Annotated[PushOrchestrator, Depends(get_push_orchestrator)]
