"""
Branch reference stage of the push pipeline.

The ref write is the only externally visible effect of a push. It is gated by
optimistic concurrency: the head read at push start must still be the head
when the ref is written, and the write itself is fast-forward only. A ref
that moved is surfaced as RefConflictError, never overwritten.
"""

import asyncio
import logging
from collections.abc import Awaitable

from app.services.github.exceptions import (
    AmbiguousCommitStateError,
    RefConflictError,
    TransientNetworkError,
    ValidationError,
)
from app.services.github.rate_limiter import RateLimiterGateway
from app.services.github.retry import RetryPolicy, SleepFunc, call_with_retry
from app.services.github.types import PushTarget
from app.services.github.write_operations import GitHubWriteOperations

logger = logging.getLogger(__name__)

# GitHub answers a rejected ref write with 422 ("not a fast forward",
# "Reference already exists") or 409
_REF_CONFLICT_STATUSES = (409, 422)


class RefUpdater:
    """Reads and conditionally moves the target branch."""

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

    async def read_head(self, target: PushTarget) -> str | None:
        """
        Get the current head of the target branch.

        Returns:
            Commit SHA, or None when the branch (or any commit) does not exist yet
        """
        return await call_with_retry(
            lambda: self._operations.get_branch_head(target),
            description=f"Head read of {target.ref_name}",
            policy=self._policy,
            gateway=self._gateway,
            sleep=self._sleep,
        )

    async def update(
        self,
        target: PushTarget,
        new_sha: str,
        expected_sha: str | None,
    ) -> None:
        """
        Point the branch at new_sha if it still points at expected_sha.

        Args:
            target: Repository and branch to update
            new_sha: Commit created by this push
            expected_sha: Head observed at push start, None if the branch was absent

        Raises:
            RefConflictError: If the branch moved, or appeared, since it was read
            AmbiguousCommitStateError: If the write's response was lost
        """
        current = await self.read_head(target)
        if current != expected_sha:
            logger.warning(
                f"{target.ref_name} in {target.full_name} moved from "
                f"{expected_sha or '(absent)'} to {current or '(absent)'} during push"
            )
            raise RefConflictError(
                f"Branch '{target.branch}' changed while the push was in progress"
            )

        try:
            if expected_sha is None:
                await call_with_retry(
                    lambda: self._guard_write(self._operations.create_ref(target, new_sha)),
                    description=f"Ref creation of {target.ref_name}",
                    policy=self._policy,
                    gateway=self._gateway,
                    sleep=self._sleep,
                )
            else:
                await call_with_retry(
                    lambda: self._guard_write(self._operations.update_ref(target, new_sha)),
                    description=f"Ref update of {target.ref_name}",
                    policy=self._policy,
                    gateway=self._gateway,
                    sleep=self._sleep,
                )
        except ValidationError as e:
            if e.status_code in _REF_CONFLICT_STATUSES:
                raise RefConflictError(
                    f"Branch '{target.branch}' was updated by someone else: {e.message}",
                    e.status_code,
                ) from e
            raise

        logger.info(f"{target.ref_name} in {target.full_name} now at {new_sha[:7]}")

    @staticmethod
    async def _guard_write(write: Awaitable[None]) -> None:
        """Treat a 5xx on a ref write as unknown outcome rather than retrying it."""
        try:
            await write
        except TransientNetworkError as e:
            if e.status_code is not None:
                raise AmbiguousCommitStateError(
                    f"GitHub returned {e.status_code} while updating the branch; "
                    "the update may or may not have been applied",
                    e.status_code,
                ) from e
            raise
