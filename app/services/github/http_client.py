"""
Shared HTTP client for GitHub API operations.

Provides a singleton AsyncClient with connection pooling for all push calls.
A push issues one request per file, so reusing connections avoids an SSL
handshake per blob. Timeouts and pool sizes come from Settings.
"""

import logging

import httpx

from app.config.settings import Settings, settings

logger = logging.getLogger(__name__)

# Module-level singleton client
_client: httpx.AsyncClient | None = None


def build_github_client(config: Settings | None = None) -> httpx.AsyncClient:
    """Create an AsyncClient sized and timed by the given settings."""
    config = config or settings
    return httpx.AsyncClient(
        timeout=httpx.Timeout(
            config.github_http_timeout_seconds,
            connect=config.github_http_connect_timeout_seconds,
        ),
        limits=httpx.Limits(
            max_connections=config.github_http_max_connections,
            max_keepalive_connections=config.github_http_max_keepalive_connections,
        ),
        http2=True,
    )


def get_github_client(config: Settings | None = None) -> httpx.AsyncClient:
    """
    Get or create the shared HTTP client for GitHub API calls.

    Auth headers are passed per-request, not stored on the client, so one
    client serves pushes for every user. ``config`` only applies when the
    client is (re)created.

    Returns:
        Shared httpx.AsyncClient configured for GitHub API
    """
    global _client
    if _client is None or _client.is_closed:
        _client = build_github_client(config)
        logger.debug("Created new GitHub HTTP client with connection pooling")
    return _client


async def close_github_client() -> None:
    """
    Close the shared HTTP client.

    Call on app shutdown for graceful termination.
    """
    global _client
    if _client is not None and not _client.is_closed:
        await _client.aclose()
        _client = None
        logger.debug("Closed GitHub HTTP client")
