"""Exceptions for GitHub service and the repository push pipeline."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.services.github.types import PushStage


class GitHubAPIError(Exception):
    """Error from GitHub API."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        rate_limit_reset: int | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.rate_limit_reset = rate_limit_reset  # Unix timestamp when rate limit resets
        super().__init__(message)


class GitHubPushError(GitHubAPIError):
    """Base class for classified push pipeline failures.

    `kind` is the stable machine-readable category surfaced in PushFailure,
    `retryable` tells the caller whether trying the same push again can help.
    """

    kind = "unknown"
    retryable = False

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        rate_limit_reset: int | None = None,
        retryable: bool | None = None,
    ):
        super().__init__(message, status_code, rate_limit_reset)
        if retryable is not None:
            self.retryable = retryable


class TransientNetworkError(GitHubPushError):
    """Connection failure or 5xx from GitHub. Retried with backoff."""

    kind = "transient_network"
    retryable = True


class RateLimitError(GitHubPushError):
    """429, or 403 carrying rate-limit semantics.

    Retried after the wait computed by the rate limiter gateway. Becomes
    non-retryable once the attempt ceiling is exhausted.
    """

    kind = "rate_limit"
    retryable = True

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        rate_limit_reset: int | None = None,
        retryable: bool | None = None,
        headers: Mapping[str, str] | None = None,
    ):
        super().__init__(message, status_code, rate_limit_reset, retryable)
        self.headers: Mapping[str, str] = headers or {}


class AuthError(GitHubPushError):
    """401, or 403 without rate-limit semantics. Caller should re-authenticate."""

    kind = "auth"


class NotFoundError(GitHubPushError):
    """Repository missing or not visible to the token."""

    kind = "not_found"


class ValidationError(GitHubPushError):
    """Rejected path, mode or content. Retrying identical input cannot succeed."""

    kind = "validation"


class RefConflictError(GitHubPushError):
    """The branch moved since it was read.

    Fatal for this attempt; the caller may re-read the head and start a new push.
    """

    kind = "ref_conflict"
    retryable = True


class AmbiguousCommitStateError(GitHubPushError):
    """A commit or ref write was sent but its response was lost.

    Never retried blindly: the write may or may not have been applied.
    """

    kind = "ambiguous_commit_state"


class PushTimeoutError(GitHubPushError):
    """The overall push deadline expired."""

    kind = "timeout"
    retryable = True


class BlobUploadError(GitHubPushError):
    """One or more files could not be uploaded as blobs.

    Carries every failed path. The category comes from the first failure,
    which is the one that stopped the worker pool.
    """

    def __init__(self, failures: dict[str, GitHubPushError]):
        self.failures = failures
        first = next(iter(failures.values()))
        self.kind = first.kind
        paths = ", ".join(sorted(failures))
        super().__init__(
            f"Failed to upload {len(failures)} file(s): {paths} ({first.message})",
            status_code=first.status_code,
            rate_limit_reset=first.rate_limit_reset,
            retryable=first.retryable,
        )

    @property
    def failed_paths(self) -> list[str]:
        return sorted(self.failures)


class PushStageError(Exception):
    """A pipeline error tagged with the stage it occurred in."""

    def __init__(self, stage: PushStage, error: GitHubPushError):
        self.stage = stage
        self.error = error
        super().__init__(f"{stage.value}: {error.message}")
