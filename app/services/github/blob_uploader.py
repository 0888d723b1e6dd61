"""
Blob upload stage of the push pipeline.

Uploads every generated file as a Git blob through a fixed-size worker pool.
Each file is retried on transient and rate-limit failures. The first file that
fails for good stops the pool from taking new work; requests already in
flight are allowed to finish before the aggregate error is raised.
"""

import asyncio
import logging
from collections.abc import Callable

from app.services.github.exceptions import BlobUploadError, GitHubPushError
from app.services.github.rate_limiter import RateLimiterGateway
from app.services.github.retry import (
    RetryAbandonedError,
    RetryPolicy,
    SleepFunc,
    call_with_retry,
)
from app.services.github.types import BlobEncoding, GeneratedFile, PushTarget
from app.services.github.write_operations import GitHubWriteOperations

logger = logging.getLogger(__name__)

EncodingClassifier = Callable[[GeneratedFile], BlobEncoding]
BlobProgress = Callable[[int, int], None]

DEFAULT_CONCURRENCY = 6


def classify_encoding(file: GeneratedFile) -> BlobEncoding:
    """Default classifier: base64 for files the generator flagged as binary."""
    return "base64" if file.binary else "utf-8"


class BlobUploader:
    """Turns generated files into remote blobs with bounded concurrency."""

    def __init__(
        self,
        operations: GitHubWriteOperations,
        gateway: RateLimiterGateway,
        policy: RetryPolicy | None = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        classifier: EncodingClassifier = classify_encoding,
        sleep: SleepFunc = asyncio.sleep,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._operations = operations
        self._gateway = gateway
        self._policy = policy or RetryPolicy()
        self._concurrency = concurrency
        self._classifier = classifier
        self._sleep = sleep

    async def upload(
        self,
        target: PushTarget,
        files: list[GeneratedFile],
        on_progress: BlobProgress | None = None,
    ) -> dict[str, str]:
        """
        Upload all files as blobs.

        Args:
            target: Repository to create blobs in
            files: Files to upload (paths already validated as unique)
            on_progress: Called with (completed, total) after each blob

        Returns:
            Dict mapping file path to blob SHA, covering every input file

        Raises:
            BlobUploadError: If any file could not be uploaded
        """
        total = len(files)
        queue: asyncio.Queue[GeneratedFile] = asyncio.Queue()
        for file in files:
            queue.put_nowait(file)

        blob_shas: dict[str, str] = {}
        failures: dict[str, GitHubPushError] = {}
        stop = asyncio.Event()

        async def upload_one(file: GeneratedFile) -> str:
            encoding = self._classifier(file)
            return await call_with_retry(
                lambda: self._operations.create_blob(target, file.content, encoding),
                description=f"Blob upload for {file.path}",
                policy=self._policy,
                gateway=self._gateway,
                sleep=self._sleep,
                should_stop=stop.is_set,
            )

        async def worker() -> None:
            while not stop.is_set():
                try:
                    file = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return

                try:
                    blob_shas[file.path] = await upload_one(file)
                except RetryAbandonedError:
                    logger.debug(f"Abandoned blob upload for {file.path} after pool stop")
                    return
                except GitHubPushError as e:
                    failures[file.path] = e
                    stop.set()
                    return
                except Exception:
                    stop.set()
                    raise

                if on_progress is not None:
                    on_progress(len(blob_shas), total)

        workers = [asyncio.create_task(worker()) for _ in range(min(self._concurrency, total))]
        try:
            results = await asyncio.gather(*workers, return_exceptions=True)
        except asyncio.CancelledError:
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            raise

        for result in results:
            if isinstance(result, BaseException):
                raise result

        if failures:
            error = BlobUploadError(failures)
            logger.error(
                f"Blob upload to {target.full_name} failed: {len(failures)} failed, "
                f"{len(blob_shas)}/{total} uploaded, {queue.qsize()} never started"
            )
            raise error

        logger.info(f"Uploaded {total} blobs to {target.full_name}")
        return blob_shas
