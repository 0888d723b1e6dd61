"""
Repository push pipeline.

Pushes a generated file set to a GitHub branch as one commit, using only the
Git Data API:

1. Validate the file set locally
2. Read the current branch head (the commit's parent)
3. Upload every file as a blob (bounded worker pool)
4. Build the tree (chunked base_tree composition for large sets)
5. Create the commit
6. Move the branch ref, fast-forward only

Nothing is visible in the repository until step 6 succeeds. Blobs, trees and
commits created by a push that fails earlier are left unreferenced; GitHub
garbage-collects them, so no cleanup is attempted.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager

import httpx

from app.config import Settings, settings
from app.services.github.blob_uploader import (
    BlobUploader,
    EncodingClassifier,
    classify_encoding,
)
from app.services.github.commit_builder import CommitBuilder
from app.services.github.exceptions import (
    AuthError,
    GitHubPushError,
    PushStageError,
    PushTimeoutError,
)
from app.services.github.http_client import get_github_client
from app.services.github.rate_limiter import (
    GitHubQuotaGateway,
    RateLimiterGateway,
    format_time_until_reset,
)
from app.services.github.ref_updater import RefUpdater
from app.services.github.retry import RetryPolicy, SleepFunc
from app.services.github.tree_builder import TreeBuilder, build_entries, validate_files
from app.services.github.types import (
    GeneratedFile,
    GitAuthor,
    PushFailure,
    PushResult,
    PushStage,
    PushSuccess,
    PushTarget,
)
from app.services.github.write_operations import GitHubWriteOperations

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Awaitable[str]]
PushProgress = Callable[[PushStage, int, int], None]


def static_token(token: str) -> TokenProvider:
    """Token provider for a token the caller already holds."""

    async def provide() -> str:
        return token

    return provide


class PushOrchestrator:
    """
    State machine sequencing the push stages.

    Collaborators are injected so tests can substitute fakes: the token
    provider, the rate limiter gateway, the HTTP client and the sleep function
    used for backoff. One instance runs one push at a time.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        gateway: RateLimiterGateway | None = None,
        client: httpx.AsyncClient | None = None,
        config: Settings | None = None,
        policy: RetryPolicy | None = None,
        classifier: EncodingClassifier = classify_encoding,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self._config = config or settings
        self._token_provider = token_provider
        self._gateway = gateway or GitHubQuotaGateway(
            default_wait=self._config.rate_limit_default_wait_seconds,
            max_wait=self._config.rate_limit_max_wait_seconds,
        )
        self._client = client
        self._policy = policy or RetryPolicy.from_settings(self._config)
        self._classifier = classifier
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self.state = PushStage.IDLE

    async def push_files(
        self,
        target: PushTarget,
        files: list[GeneratedFile],
        message: str,
        author: GitAuthor | None = None,
        on_progress: PushProgress | None = None,
        timeout: float | None = None,
    ) -> PushResult:
        """
        Push files to target as a single commit.

        Never raises: every outcome is returned as a PushResult.

        Args:
            target: Repository and branch to push to
            files: Complete file set for the commit
            message: Commit message
            author: Author and committer; defaults to the configured identity
            on_progress: Advisory callback (stage, completed, total)
            timeout: Overall deadline in seconds; defaults to configuration

        Returns:
            PushSuccess with the commit SHA and URL, or PushFailure naming the
            stage, error kind and whether retrying may help
        """
        async with self._lock:
            self.state = PushStage.IDLE
            budget = timeout if timeout is not None else self._config.push_timeout_seconds
            identity = author or GitAuthor(
                name=self._config.push_author_name,
                email=self._config.push_author_email,
            )

            try:
                async with asyncio.timeout(budget):
                    return await self._run(target, files, message, identity, on_progress)
            except PushStageError as e:
                return self._fail(target, e.stage, e.error)
            except TimeoutError:
                stage = self.state
                # Only an interrupted ref write can leave the branch in an unknown state
                retryable = stage != PushStage.UPDATING_REF
                error = PushTimeoutError(
                    f"Push to {target.full_name} timed out after {budget:g}s "
                    f"while {stage.value.replace('_', ' ')}",
                    retryable=retryable,
                )
                return self._fail(target, stage, error)
            except Exception:
                stage = self.state
                logger.exception(f"Unexpected error pushing to {target.full_name} during {stage.value}")
                self.state = PushStage.FAILED
                return PushFailure(
                    stage=stage,
                    kind="internal",
                    message="Unexpected error while pushing files to GitHub",
                    retryable=False,
                )

    async def _run(
        self,
        target: PushTarget,
        files: list[GeneratedFile],
        message: str,
        author: GitAuthor,
        on_progress: PushProgress | None,
    ) -> PushResult:
        def report(stage: PushStage, completed: int, total: int) -> None:
            if on_progress is None:
                return
            try:
                on_progress(stage, completed, total)
            except Exception as e:
                logger.warning(f"Progress callback failed at {stage.value}: {e}")

        with self._stage(PushStage.VALIDATING, target):
            validate_files(files)
            token = await self._get_token()
            report(PushStage.VALIDATING, 1, 1)

        operations = GitHubWriteOperations(
            token,
            self._client or get_github_client(self._config),
            self._gateway,
            base_url=self._config.github_api_url,
            web_url=self._config.github_web_url,
            api_version=self._config.github_api_version,
        )
        ref_updater = RefUpdater(operations, self._gateway, self._policy, sleep=self._sleep)

        with self._stage(PushStage.READING_HEAD, target):
            head_sha = await ref_updater.read_head(target)
            report(PushStage.READING_HEAD, 1, 1)

        with self._stage(PushStage.UPLOADING_BLOBS, target):
            uploader = BlobUploader(
                operations,
                self._gateway,
                self._policy,
                concurrency=self._config.push_max_concurrency,
                classifier=self._classifier,
                sleep=self._sleep,
            )
            report(PushStage.UPLOADING_BLOBS, 0, len(files))
            blob_shas = await uploader.upload(
                target,
                files,
                on_progress=lambda done, total: report(PushStage.UPLOADING_BLOBS, done, total),
            )

        with self._stage(PushStage.BUILDING_TREE, target):
            tree_builder = TreeBuilder(
                operations,
                self._gateway,
                self._policy,
                chunk_size=self._config.push_tree_chunk_size,
                sleep=self._sleep,
            )
            tree_sha = await tree_builder.build(
                target,
                build_entries(files, blob_shas),
                on_progress=lambda done, total: report(PushStage.BUILDING_TREE, done, total),
            )

        with self._stage(PushStage.CREATING_COMMIT, target):
            commit_builder = CommitBuilder(operations, self._gateway, self._policy, sleep=self._sleep)
            commit = await commit_builder.create(target, tree_sha, head_sha, author, message)
            report(PushStage.CREATING_COMMIT, 1, 1)

        with self._stage(PushStage.UPDATING_REF, target):
            await ref_updater.update(target, commit.sha, head_sha)
            report(PushStage.UPDATING_REF, 1, 1)

        self.state = PushStage.COMPLETED
        report(PushStage.COMPLETED, len(files), len(files))
        logger.info(f"Pushed {len(files)} files to {target.full_name}@{target.branch} as {commit.sha}")

        return PushSuccess(
            commit_sha=commit.sha,
            html_url=commit.html_url or operations.commit_html_url(target, commit.sha),
            tree_sha=tree_sha,
        )

    @contextmanager
    def _stage(self, stage: PushStage, target: PushTarget) -> Iterator[None]:
        """Enter a stage and tag any pipeline error raised inside it."""
        self.state = stage
        logger.info(f"Push to {target.full_name}@{target.branch}: {stage.value}")
        try:
            yield
        except GitHubPushError as e:
            raise PushStageError(stage, e) from e

    async def _get_token(self) -> str:
        try:
            token = await self._token_provider()
        except GitHubPushError:
            raise
        except Exception as e:
            raise AuthError(f"Could not obtain a GitHub access token: {e}") from e
        if not token:
            raise AuthError("No GitHub access token available")
        return token

    def _fail(self, target: PushTarget, stage: PushStage, error: GitHubPushError) -> PushFailure:
        self.state = PushStage.FAILED
        message = error.message
        if error.rate_limit_reset:
            message = f"{message}. Rate limit resets in {format_time_until_reset(error.rate_limit_reset)}."

        logger.error(
            f"Push to {target.full_name}@{target.branch} failed while {stage.value} "
            f"[{error.kind}]: {error.message}"
        )
        return PushFailure(
            stage=stage,
            kind=error.kind,
            message=message,
            retryable=error.retryable,
        )
