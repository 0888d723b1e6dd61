"""Data types for the GitHub push pipeline."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

BlobEncoding = Literal["utf-8", "base64"]


class PushStage(str, Enum):
    """States of a push, in pipeline order."""

    IDLE = "idle"
    VALIDATING = "validating"
    READING_HEAD = "reading_head"
    UPLOADING_BLOBS = "uploading_blobs"
    BUILDING_TREE = "building_tree"
    CREATING_COMMIT = "creating_commit"
    UPDATING_REF = "updating_ref"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PushStage.COMPLETED, PushStage.FAILED)


@dataclass
class GeneratedFile:
    """A file produced by the scaffold generator."""

    path: str  # Relative POSIX path, e.g. "src/index.ts"
    content: str  # Text, or base64 text when binary is set
    binary: bool = False
    executable: bool = False


@dataclass
class PushTarget:
    """Repository and branch a push writes to."""

    owner: str
    repo: str
    branch: str = "main"

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def ref_name(self) -> str:
        return f"refs/heads/{self.branch}"


@dataclass
class GitAuthor:
    """Author and committer identity for the pushed commit."""

    name: str
    email: str
    date: datetime | None = None

    def to_payload(self) -> dict[str, str]:
        when = self.date or datetime.now(UTC)
        return {
            "name": self.name,
            "email": self.email,
            "date": when.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ"),
        }


@dataclass
class TreeEntry:
    """Single path -> blob mapping in a tree."""

    path: str
    sha: str
    mode: str = "100644"  # "100644" regular, "100755" executable
    type: str = "blob"

    def to_payload(self) -> dict[str, Any]:
        return {"path": self.path, "mode": self.mode, "type": self.type, "sha": self.sha}


@dataclass
class CommitInfo:
    """A commit created by the pipeline."""

    sha: str
    tree_sha: str
    parents: list[str] = field(default_factory=list)
    html_url: str | None = None


@dataclass
class PushSuccess:
    """Push finished and the branch points at the new commit."""

    commit_sha: str
    html_url: str
    tree_sha: str
    ok: Literal[True] = True


@dataclass
class PushFailure:
    """Push stopped; the branch is unchanged unless kind says otherwise."""

    stage: PushStage
    kind: str
    message: str
    retryable: bool
    ok: Literal[False] = False


PushResult = PushSuccess | PushFailure
