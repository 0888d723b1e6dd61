"""
GitHub service package.

Re-exports the push pipeline's public types and classes.
Usage: `from app.services.github import PushOrchestrator, PushTarget`

Module structure:
- push_orchestrator.py: PushOrchestrator state machine (main entry point)
- blob_uploader.py: Bounded-concurrency blob upload stage
- tree_builder.py: Path validation and chunked tree composition
- commit_builder.py: Commit creation stage
- ref_updater.py: Head read and conditional branch update
- write_operations.py: Git Data API calls
- rate_limiter.py: Rate limiter gateway protocol and quota tracking
- retry.py: Retry policy with jittered exponential backoff
- helpers.py: Rate limit header parsing and response classification
- types.py: Data types and results
- exceptions.py: Error taxonomy
- constants.py: API constants
"""

from app.services.github.blob_uploader import BlobUploader, classify_encoding
from app.services.github.commit_builder import CommitBuilder
from app.services.github.exceptions import (
    AmbiguousCommitStateError,
    AuthError,
    BlobUploadError,
    GitHubAPIError,
    GitHubPushError,
    NotFoundError,
    PushStageError,
    PushTimeoutError,
    RateLimitError,
    RefConflictError,
    TransientNetworkError,
    ValidationError,
)
from app.services.github.helpers import RateLimitInfo, raise_for_push_status
from app.services.github.http_client import close_github_client
from app.services.github.push_orchestrator import PushOrchestrator, static_token
from app.services.github.rate_limiter import (
    GitHubQuotaGateway,
    RateLimiterGateway,
    format_time_until_reset,
)
from app.services.github.ref_updater import RefUpdater
from app.services.github.retry import RetryPolicy
from app.services.github.tree_builder import TreeBuilder, validate_files
from app.services.github.types import (
    CommitInfo,
    GeneratedFile,
    GitAuthor,
    PushFailure,
    PushResult,
    PushStage,
    PushSuccess,
    PushTarget,
    TreeEntry,
)
from app.services.github.write_operations import GitHubWriteOperations

__all__ = [
    # Orchestrator (main entry point)
    "PushOrchestrator",
    "static_token",
    # Stages (for direct use if needed)
    "BlobUploader",
    "TreeBuilder",
    "CommitBuilder",
    "RefUpdater",
    "GitHubWriteOperations",
    # Rate limiting and retry
    "RateLimiterGateway",
    "GitHubQuotaGateway",
    "RetryPolicy",
    "RateLimitInfo",
    "format_time_until_reset",
    # HTTP client lifecycle
    "close_github_client",
    # Utilities
    "classify_encoding",
    "raise_for_push_status",
    "validate_files",
    # Exceptions
    "GitHubAPIError",
    "GitHubPushError",
    "TransientNetworkError",
    "RateLimitError",
    "AuthError",
    "NotFoundError",
    "ValidationError",
    "RefConflictError",
    "AmbiguousCommitStateError",
    "PushTimeoutError",
    "BlobUploadError",
    "PushStageError",
    # Types
    "CommitInfo",
    "GeneratedFile",
    "GitAuthor",
    "PushFailure",
    "PushResult",
    "PushStage",
    "PushSuccess",
    "PushTarget",
    "TreeEntry",
]
