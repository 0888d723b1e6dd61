"""
GitHub integration endpoints for pushing generated scaffolds.
"""

import logging
from dataclasses import asdict

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from app.api.deps import Orchestrator
from app.services.github import (
    GeneratedFile,
    GitAuthor,
    PushFailure,
    PushTarget,
)

router = APIRouter(prefix="/github", tags=["github"])
logger = logging.getLogger(__name__)

# HTTP status for each failure kind; anything unlisted maps to 502
FAILURE_STATUS_CODES: dict[str, int] = {
    "validation": 422,  # Unprocessable Content
    "auth": status.HTTP_401_UNAUTHORIZED,
    "not_found": status.HTTP_404_NOT_FOUND,
    "ref_conflict": status.HTTP_409_CONFLICT,
    "rate_limit": status.HTTP_429_TOO_MANY_REQUESTS,
    "timeout": status.HTTP_504_GATEWAY_TIMEOUT,
}


# --- Request / Response Models ---


class PushFileIn(BaseModel):
    """One generated file."""

    path: str
    content: str
    binary: bool = False
    executable: bool = False


class PushAuthorIn(BaseModel):
    """Commit identity."""

    name: str = Field(min_length=1)
    email: str = Field(min_length=3)


class PushRequest(BaseModel):
    """Request to push a generated file set as one commit."""

    owner: str = Field(min_length=1)
    repo: str = Field(min_length=1)
    branch: str = Field("main", min_length=1)
    message: str = Field("Initial scaffold", min_length=1)
    author: PushAuthorIn | None = None
    files: list[PushFileIn]


class PushResponse(BaseModel):
    """Outcome of a push; success fields or failure fields are set."""

    ok: bool
    commit_sha: str | None = None
    html_url: str | None = None
    tree_sha: str | None = None
    stage: str | None = None
    kind: str | None = None
    message: str | None = None
    retryable: bool | None = None


# --- Endpoints ---


@router.post("/push", response_model=PushResponse)
async def push_files(body: PushRequest, orchestrator: Orchestrator) -> PushResponse | JSONResponse:
    """
    Push generated files to a GitHub branch as a single commit.

    The branch only moves once every blob, the tree and the commit exist.
    Failures report the stage they happened in, so the wizard can render
    stage-specific messaging.
    """
    target = PushTarget(owner=body.owner, repo=body.repo, branch=body.branch)
    files = [
        GeneratedFile(
            path=f.path,
            content=f.content,
            binary=f.binary,
            executable=f.executable,
        )
        for f in body.files
    ]
    author = GitAuthor(name=body.author.name, email=body.author.email) if body.author else None

    result = await orchestrator.push_files(target, files, body.message, author=author)

    if isinstance(result, PushFailure):
        return _failure_response(result)

    return PushResponse(
        ok=True,
        commit_sha=result.commit_sha,
        html_url=result.html_url,
        tree_sha=result.tree_sha,
    )


def _failure_response(failure: PushFailure) -> JSONResponse:
    content = asdict(failure)
    content["stage"] = failure.stage.value
    return JSONResponse(
        status_code=FAILURE_STATUS_CODES.get(failure.kind, status.HTTP_502_BAD_GATEWAY),
        content=content,
    )
