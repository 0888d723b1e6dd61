"""Commit creation stage of the push pipeline."""

import asyncio
import logging

from app.services.github.rate_limiter import RateLimiterGateway
from app.services.github.retry import RetryPolicy, SleepFunc, call_with_retry
from app.services.github.types import CommitInfo, GitAuthor, PushTarget
from app.services.github.write_operations import GitHubWriteOperations

logger = logging.getLogger(__name__)


class CommitBuilder:
    """
    Creates the single commit of a push.

    Commits embed a timestamp, so two calls with the same tree and message
    yield two different SHAs. Retrying after a 5xx or rate limit can leave an
    extra unreferenced commit behind, which is harmless. A lost response is
    not retried (see AmbiguousCommitStateError).
    """

    def __init__(
        self,
        operations: GitHubWriteOperations,
        gateway: RateLimiterGateway,
        policy: RetryPolicy | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self._operations = operations
        self._gateway = gateway
        self._policy = policy or RetryPolicy()
        self._sleep = sleep

    async def create(
        self,
        target: PushTarget,
        tree_sha: str,
        parent_sha: str | None,
        author: GitAuthor,
        message: str,
    ) -> CommitInfo:
        """
        Create a commit for tree_sha on top of parent_sha.

        Args:
            target: Repository to create the commit in
            tree_sha: Final tree of the push
            parent_sha: Current branch head, or None for a root commit
            author: Used as both author and committer
            message: Commit message

        Returns:
            The created commit
        """
        parents = [parent_sha] if parent_sha else []
        commit = await call_with_retry(
            lambda: self._operations.create_commit(target, tree_sha, parents, author, message),
            description=f"Commit creation in {target.full_name}",
            policy=self._policy,
            gateway=self._gateway,
            sleep=self._sleep,
        )
        logger.info(
            f"Created commit {commit.sha[:7]} in {target.full_name} "
            f"({'root commit' if not parents else f'parent {parents[0][:7]}'})"
        )
        return commit
