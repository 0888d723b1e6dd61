"""
GitHub API helper utilities.

Provides rate limit header parsing and classification of GitHub responses
into the push pipeline's error taxonomy.
"""

import logging
from collections.abc import Mapping

import httpx

from app.services.github.constants import (
    HEADER_REMAINING,
    HEADER_RESET,
    HEADER_RESOURCE,
    HEADER_RETRY_AFTER,
)
from app.services.github.exceptions import (
    AuthError,
    NotFoundError,
    RateLimitError,
    TransientNetworkError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class RateLimitInfo:
    """Rate limit information from GitHub API response headers."""

    def __init__(self, headers: Mapping[str, str]) -> None:
        self.remaining = headers.get(HEADER_REMAINING)
        self.reset = headers.get(HEADER_RESET)
        self.resource = headers.get(HEADER_RESOURCE)
        self.retry_after = headers.get(HEADER_RETRY_AFTER)

    @classmethod
    def from_response(cls, response: httpx.Response) -> "RateLimitInfo":
        return cls(response.headers)

    @property
    def remaining_count(self) -> int | None:
        """Get remaining requests as integer, or None if not available."""
        return int(self.remaining) if self.remaining and self.remaining.isdigit() else None

    @property
    def reset_timestamp(self) -> int | None:
        """Get reset timestamp as integer, or None if not available."""
        return int(self.reset) if self.reset and self.reset.isdigit() else None

    @property
    def retry_after_seconds(self) -> float | None:
        """Get Retry-After as seconds, or None if absent or not numeric."""
        if not self.retry_after:
            return None
        try:
            return max(0.0, float(self.retry_after))
        except ValueError:
            return None

    @property
    def is_exhausted(self) -> bool:
        """Check if rate limit is exhausted."""
        return self.remaining_count == 0


def error_message_from(response: httpx.Response) -> str | None:
    """Extract GitHub's `message` field from an error body, if any."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        message = body.get("message")
        return str(message) if message else None
    return None


def is_rate_limited(response: httpx.Response) -> bool:
    """
    Check whether a response is a primary or secondary rate-limit rejection.

    GitHub signals primary limits with 403/429 and X-RateLimit-Remaining: 0,
    and secondary (abuse) limits with 403/429 plus Retry-After or a message
    mentioning the rate limit.
    """
    if response.status_code == 429:
        return True
    if response.status_code != 403:
        return False

    rate_info = RateLimitInfo.from_response(response)
    if rate_info.is_exhausted or rate_info.retry_after is not None:
        return True
    message = error_message_from(response) or ""
    return "rate limit" in message.lower()


def raise_for_push_status(response: httpx.Response, context: str) -> None:
    """
    Raise the classified pipeline error for a non-success response.

    Args:
        response: The HTTP response from GitHub API
        context: Short description for error messages (e.g. "create blob in owner/repo")

    Raises:
        RateLimitError: 429, or 403 with rate-limit semantics
        AuthError: 401, or plain 403
        NotFoundError: 404
        ValidationError: 409, 422 and other 4xx rejections
        TransientNetworkError: 5xx
    """
    status = response.status_code
    if 200 <= status < 300:
        return

    detail = error_message_from(response)
    suffix = f": {detail}" if detail else ""

    if is_rate_limited(response):
        rate_info = RateLimitInfo.from_response(response)
        raise RateLimitError(
            f"GitHub API rate limit exceeded during {context}",
            status,
            rate_limit_reset=rate_info.reset_timestamp,
            headers=response.headers,
        )
    if status == 401:
        raise AuthError("Invalid or expired GitHub token", 401)
    if status == 403:
        raise AuthError(f"GitHub API forbidden during {context}{suffix}", 403)
    if status == 404:
        raise NotFoundError(f"Repository or resource not found during {context}", 404)
    if status >= 500:
        raise TransientNetworkError(f"GitHub API error {status} during {context}", status)

    logger.debug(f"GitHub rejected {context} with {status}{suffix}")
    raise ValidationError(f"GitHub rejected {context} ({status}){suffix}", status)
