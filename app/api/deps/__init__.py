"""API dependencies - re-exports from submodules."""

from .auth import GitHubToken, get_github_token, security
from .push import Orchestrator, get_push_orchestrator, get_rate_limiter_gateway

__all__ = [
    # Auth
    "GitHubToken",
    "get_github_token",
    "security",
    # Push
    "Orchestrator",
    "get_push_orchestrator",
    "get_rate_limiter_gateway",
]
