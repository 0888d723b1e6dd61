"""
Tree construction stage of the push pipeline.

Small file sets become one create-tree call. Larger ones are split into
chunks and layered: every call after the first passes the previous tree's
SHA as base_tree, so the last returned SHA covers every entry. Chunk calls
are strictly sequential since each depends on the one before.
"""

import asyncio
import logging
from collections.abc import Callable

from app.services.github.constants import FILE_MODE_EXECUTABLE, FILE_MODE_REGULAR
from app.services.github.exceptions import ValidationError
from app.services.github.rate_limiter import RateLimiterGateway
from app.services.github.retry import RetryPolicy, SleepFunc, call_with_retry
from app.services.github.types import GeneratedFile, PushTarget, TreeEntry
from app.services.github.write_operations import GitHubWriteOperations

logger = logging.getLogger(__name__)

TreeProgress = Callable[[int, int], None]

DEFAULT_CHUNK_SIZE = 300


def validate_path(path: str) -> None:
    """
    Check that a path is a safe relative POSIX path.

    Raises:
        ValidationError: If the path is absolute, escapes the repository,
            or contains empty segments, backslashes or NUL bytes
    """
    if not path:
        raise ValidationError("File path cannot be empty")
    if path.startswith("/"):
        raise ValidationError(f"File path must be relative: {path}")
    if "\\" in path or "\x00" in path:
        raise ValidationError(f"File path contains invalid characters: {path!r}")

    segments = path.split("/")
    if any(segment == "" for segment in segments):
        raise ValidationError(f"File path contains an empty segment: {path}")
    if any(segment in (".", "..") for segment in segments):
        raise ValidationError(f"File path cannot contain '.' or '..' segments: {path}")
    if segments[0] == ".git":
        raise ValidationError(f"File path cannot point into .git: {path}")


def validate_files(files: list[GeneratedFile]) -> None:
    """
    Validate a whole file set before any network call.

    Raises:
        ValidationError: On an empty set, an invalid path, duplicate paths, or
            a path that is also the directory of another file
    """
    if not files:
        raise ValidationError("No files to push")

    seen: set[str] = set()
    duplicates: set[str] = set()
    for file in files:
        validate_path(file.path)
        if file.path in seen:
            duplicates.add(file.path)
        seen.add(file.path)

    if duplicates:
        raise ValidationError(f"Duplicate file paths: {', '.join(sorted(duplicates))}")

    # A path cannot be a file and a directory in the same tree
    conflicts: set[str] = set()
    for path in seen:
        parts = path.split("/")
        for depth in range(1, len(parts)):
            prefix = "/".join(parts[:depth])
            if prefix in seen:
                conflicts.add(prefix)

    if conflicts:
        raise ValidationError(
            f"Paths used as both a file and a directory: {', '.join(sorted(conflicts))}"
        )


def build_entries(files: list[GeneratedFile], blob_shas: dict[str, str]) -> list[TreeEntry]:
    """
    Pair every file with its uploaded blob, sorted by path.

    Raises:
        ValidationError: If a file has no uploaded blob
    """
    missing = [file.path for file in files if file.path not in blob_shas]
    if missing:
        raise ValidationError(f"No blob uploaded for: {', '.join(sorted(missing))}")

    return sorted(
        (
            TreeEntry(
                path=file.path,
                sha=blob_shas[file.path],
                mode=FILE_MODE_EXECUTABLE if file.executable else FILE_MODE_REGULAR,
            )
            for file in files
        ),
        key=lambda entry: entry.path,
    )


def chunk_entries(entries: list[TreeEntry], chunk_size: int) -> list[list[TreeEntry]]:
    return [entries[i : i + chunk_size] for i in range(0, len(entries), chunk_size)]


class TreeBuilder:
    """Creates the tree for a push, composing chunked calls when needed."""

    def __init__(
        self,
        operations: GitHubWriteOperations,
        gateway: RateLimiterGateway,
        policy: RetryPolicy | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        sleep: SleepFunc = asyncio.sleep,
    ):
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self._operations = operations
        self._gateway = gateway
        self._policy = policy or RetryPolicy()
        self.chunk_size = chunk_size
        self._sleep = sleep

    async def build(
        self,
        target: PushTarget,
        entries: list[TreeEntry],
        on_progress: TreeProgress | None = None,
    ) -> str:
        """
        Create the tree holding all entries.

        Args:
            target: Repository to create the tree in
            entries: Tree entries with unique paths
            on_progress: Called with (chunks_done, chunk_count) after each call

        Returns:
            SHA of the final tree
        """
        chunks = chunk_entries(entries, self.chunk_size)
        if len(chunks) > 1:
            logger.info(
                f"Building tree for {len(entries)} entries in {len(chunks)} chunks "
                f"of up to {self.chunk_size}"
            )

        tree_sha: str | None = None
        for index, chunk in enumerate(chunks, start=1):
            base_tree = tree_sha
            tree_sha = await call_with_retry(
                lambda: self._operations.create_tree(target, chunk, base_tree=base_tree),
                description=f"Tree chunk {index}/{len(chunks)}",
                policy=self._policy,
                gateway=self._gateway,
                sleep=self._sleep,
            )
            logger.debug(f"Tree chunk {index}/{len(chunks)} -> {tree_sha}")
            if on_progress is not None:
                on_progress(index, len(chunks))

        if tree_sha is None:
            raise ValidationError("Cannot build a tree without entries")
        return tree_sha
