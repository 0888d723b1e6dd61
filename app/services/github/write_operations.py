"""
GitHub Git Data API write operations.

One method per endpoint the push pipeline uses:
- Reading a branch head
- Creating blobs, trees and commits
- Updating or creating the branch reference

Every call acquires a rate limiter permit first, reports the response headers
afterwards, and raises a classified GitHubPushError on failure. Retrying is
left to the callers, which know whether the call is safe to repeat.
"""

import logging
from typing import Any

import httpx

from app.config import settings
from app.services.github.constants import (
    SCOPE_BLOBS,
    SCOPE_COMMITS,
    SCOPE_REFS,
    SCOPE_TREES,
)
from app.services.github.exceptions import (
    AmbiguousCommitStateError,
    TransientNetworkError,
)
from app.services.github.helpers import raise_for_push_status
from app.services.github.rate_limiter import RateLimiterGateway
from app.services.github.types import (
    BlobEncoding,
    CommitInfo,
    GitAuthor,
    PushTarget,
    TreeEntry,
)

logger = logging.getLogger(__name__)

# Failures raised before the request left the client; safe to resend anything
_NOT_SENT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout)


class GitHubWriteOperations:
    """
    Write operations for GitHub API.

    Uses the Git Data API so a full file set lands as one commit, made visible
    by a single ref write.
    """

    def __init__(
        self,
        token: str,
        client: httpx.AsyncClient,
        gateway: RateLimiterGateway,
        base_url: str | None = None,
        web_url: str | None = None,
        api_version: str | None = None,
    ):
        self.token = token
        self._client = client
        self._gateway = gateway
        self.base_url = (base_url or settings.github_api_url).rstrip("/")
        self.web_url = (web_url or settings.github_web_url).rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": api_version or settings.github_api_version,
        }

    def _repo_url(self, target: PushTarget, path: str) -> str:
        return f"{self.base_url}/repos/{target.owner}/{target.repo}/{path}"

    async def _request(
        self,
        method: str,
        url: str,
        scope: str,
        context: str,
        json: dict[str, Any] | None = None,
        idempotent: bool = True,
    ) -> httpx.Response:
        """
        Send one request through the rate limiter gateway.

        Transport failures become TransientNetworkError, except when a
        non-idempotent request may already have reached GitHub, which raises
        AmbiguousCommitStateError instead.
        """
        await self._gateway.acquire(scope)
        try:
            response = await self._client.request(method, url, headers=self._headers, json=json)
        except _NOT_SENT_ERRORS as e:
            raise TransientNetworkError(f"Could not reach GitHub during {context}: {e}") from e
        except httpx.TransportError as e:
            if idempotent:
                raise TransientNetworkError(f"Network error during {context}: {e}") from e
            raise AmbiguousCommitStateError(
                f"Response lost during {context}; the write may or may not have been applied"
            ) from e

        self._gateway.report(response.headers)
        return response

    async def get_branch_head(self, target: PushTarget) -> str | None:
        """
        Get the commit SHA the branch currently points at.

        Returns:
            Commit SHA, or None if the branch does not exist or the repository
            has no commits yet
        """
        context = f"read {target.ref_name} in {target.full_name}"
        response = await self._request(
            "GET",
            self._repo_url(target, f"git/ref/heads/{target.branch}"),
            SCOPE_REFS,
            context,
        )

        # 409 is GitHub's answer for a repository without any commits
        if response.status_code in (404, 409):
            logger.debug(f"{target.ref_name} absent in {target.full_name} ({response.status_code})")
            return None
        raise_for_push_status(response, context)

        sha: str = response.json()["object"]["sha"]
        return sha

    async def create_blob(self, target: PushTarget, content: str, encoding: BlobEncoding) -> str:
        """Create a blob and return its SHA. Identical content yields the same SHA."""
        context = f"create blob in {target.full_name}"
        response = await self._request(
            "POST",
            self._repo_url(target, "git/blobs"),
            SCOPE_BLOBS,
            context,
            json={"content": content, "encoding": encoding},
        )
        raise_for_push_status(response, context)

        sha: str = response.json()["sha"]
        return sha

    async def create_tree(
        self,
        target: PushTarget,
        entries: list[TreeEntry],
        base_tree: str | None = None,
    ) -> str:
        """Create a tree from entries, layered on base_tree when given."""
        context = f"create tree in {target.full_name}"
        payload: dict[str, Any] = {"tree": [entry.to_payload() for entry in entries]}
        if base_tree:
            payload["base_tree"] = base_tree

        response = await self._request(
            "POST",
            self._repo_url(target, "git/trees"),
            SCOPE_TREES,
            context,
            json=payload,
        )
        raise_for_push_status(response, context)

        sha: str = response.json()["sha"]
        return sha

    async def create_commit(
        self,
        target: PushTarget,
        tree_sha: str,
        parents: list[str],
        author: GitAuthor,
        message: str,
    ) -> CommitInfo:
        """Create a commit object. Not idempotent: every call yields a new SHA."""
        context = f"create commit in {target.full_name}"
        identity = author.to_payload()
        response = await self._request(
            "POST",
            self._repo_url(target, "git/commits"),
            SCOPE_COMMITS,
            context,
            json={
                "message": message,
                "tree": tree_sha,
                "parents": parents,
                "author": identity,
                "committer": identity,
            },
            idempotent=False,
        )
        raise_for_push_status(response, context)

        data = response.json()
        sha: str = data["sha"]
        return CommitInfo(
            sha=sha,
            tree_sha=tree_sha,
            parents=list(parents),
            html_url=data.get("html_url") or self.commit_html_url(target, sha),
        )

    async def update_ref(self, target: PushTarget, sha: str) -> None:
        """
        Move an existing branch to sha, fast-forward only.

        Raises:
            ValidationError: If GitHub refuses the update (e.g. not a fast-forward)
            AmbiguousCommitStateError: If the response was lost after sending
        """
        context = f"update {target.ref_name} in {target.full_name}"
        response = await self._request(
            "PATCH",
            self._repo_url(target, f"git/refs/heads/{target.branch}"),
            SCOPE_REFS,
            context,
            json={"sha": sha, "force": False},
            idempotent=False,
        )
        raise_for_push_status(response, context)

    async def create_ref(self, target: PushTarget, sha: str) -> None:
        """
        Create the branch pointing at sha.

        Raises:
            ValidationError: If the reference already exists
            AmbiguousCommitStateError: If the response was lost after sending
        """
        context = f"create {target.ref_name} in {target.full_name}"
        response = await self._request(
            "POST",
            self._repo_url(target, "git/refs"),
            SCOPE_REFS,
            context,
            json={"ref": target.ref_name, "sha": sha},
            idempotent=False,
        )
        raise_for_push_status(response, context)

    def commit_html_url(self, target: PushTarget, sha: str) -> str:
        return f"{self.web_url}/{target.owner}/{target.repo}/commit/{sha}"

