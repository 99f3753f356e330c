"""GitHub REST client: the subset of the API the maintenance pipeline needs."""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, model_validator

from sitekeeper.errors import ConfigError, HostingError

logger = logging.getLogger(__name__)


class PullRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    number: int
    html_url: str = ""
    state: str = "open"
    merged: bool = False
    mergeable: Optional[bool] = None
    mergeable_state: Optional[str] = None
    merge_commit_sha: Optional[str] = None
    head_ref: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def flatten_head(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("head"), dict) and "head_ref" not in data:
            data = {**data, "head_ref": data["head"].get("ref")}
        return data


class HostingPlatform(Protocol):
    """What the merge gate and PR stage need from a hosted git platform."""

    async def get_ref(self, owner: str, repo: str, branch: str) -> dict: ...

    async def create_ref(self, owner: str, repo: str, branch: str, sha: str) -> dict: ...

    async def delete_ref(self, owner: str, repo: str, branch: str) -> None: ...

    async def create_pull_request(
        self, owner: str, repo: str, title: str, head: str, base: str, body: str,
    ) -> PullRequest: ...

    async def list_pull_requests(
        self, owner: str, repo: str, head: str, base: str, state: str = "open",
    ) -> list[PullRequest]: ...

    async def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequest: ...

    async def merge_pull_request(
        self, owner: str, repo: str, number: int, merge_method: str,
        commit_title: str, commit_message: str,
    ) -> dict: ...


class GitHubClient:
    """Async client for the GitHub REST API v3.

    Every non-2xx response raises HostingError carrying the HTTP status, so
    callers can tell permission problems (403) from missing refs (404) or
    unmergeable pull requests (405).
    """

    def __init__(self, token: Optional[str], base_url: str = "https://api.github.com",
                 timeout: float = 30.0, transport: httpx.AsyncBaseTransport | None = None):
        if not token:
            raise ConfigError("Missing GitHub token (set GH_TOKEN)")
        self.client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
        )

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        logger.debug("GitHub %s %s", method, path)
        try:
            resp = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise HostingError(f"GitHub {method} {path} failed: {e}") from e

        if resp.status_code >= 400:
            try:
                message = resp.json().get("message", resp.text)
            except ValueError:
                message = resp.text
            raise HostingError(
                f"GitHub {method} {path} returned {resp.status_code}: {message}",
                status=resp.status_code,
            )
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    async def get_ref(self, owner: str, repo: str, branch: str) -> dict:
        return await self._request("GET", f"/repos/{owner}/{repo}/git/ref/heads/{branch}")

    async def create_ref(self, owner: str, repo: str, branch: str, sha: str) -> dict:
        return await self._request(
            "POST", f"/repos/{owner}/{repo}/git/refs",
            json={"ref": f"refs/heads/{branch}", "sha": sha},
        )

    async def delete_ref(self, owner: str, repo: str, branch: str) -> None:
        await self._request("DELETE", f"/repos/{owner}/{repo}/git/refs/heads/{branch}")

    async def create_pull_request(
        self, owner: str, repo: str, title: str, head: str, base: str, body: str,
    ) -> PullRequest:
        data = await self._request(
            "POST", f"/repos/{owner}/{repo}/pulls",
            json={"title": title, "head": head, "base": base, "body": body},
        )
        return PullRequest.model_validate(data)

    async def list_pull_requests(
        self, owner: str, repo: str, head: str, base: str, state: str = "open",
    ) -> list[PullRequest]:
        data = await self._request(
            "GET", f"/repos/{owner}/{repo}/pulls",
            params={"head": f"{owner}:{head}", "base": base, "state": state},
        )
        return [PullRequest.model_validate(item) for item in data or []]

    async def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        data = await self._request("GET", f"/repos/{owner}/{repo}/pulls/{number}")
        return PullRequest.model_validate(data)

    async def merge_pull_request(
        self, owner: str, repo: str, number: int, merge_method: str,
        commit_title: str, commit_message: str,
    ) -> dict:
        return await self._request(
            "PUT", f"/repos/{owner}/{repo}/pulls/{number}/merge",
            json={
                "merge_method": merge_method,
                "commit_title": commit_title,
                "commit_message": commit_message,
            },
        )
