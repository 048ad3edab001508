"""GitHub REST implementation of the hosting API."""

from __future__ import annotations

import contextlib
import logging
from typing import Any
from urllib.parse import quote

import requests
from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import Timeout

from mcpship.github.base import (
    CommitInfo,
    HostingAPI,
    RepositoryInfo,
    SnippetInfo,
    TreeEntry,
    TreeListing,
)
from mcpship.lib.errors import HostingAPIError

logger = logging.getLogger(__name__)


class GitHubClient(HostingAPI):
    """Client for the GitHub REST API (repositories, git data, gists).

    Example:
        >>> client = GitHubClient(token="ghp_...")
        >>> repo = client.create_repository("weather-mcp", private=True)
        >>> print(repo.html_url)
    """

    DEFAULT_BASE_URL = "https://api.github.com"
    DEFAULT_TIMEOUT = 30.0  # seconds
    API_VERSION = "2022-11-28"

    def __init__(
        self,
        token: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize client with credentials and timeout.

        Args:
            token: Personal access or app token
            base_url: API base URL
            timeout: Request timeout in seconds (default: 30.0)
            session: Optional pre-configured session
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": self.API_VERSION,
            }
        )
        if token:
            self._session.headers["Authorization"] = f"Bearer {token}"
        self._login: str | None = None

    # Users

    def get_authenticated_user(self) -> str:
        if self._login is None:
            self._login = self._request("GET", "/user").json()["login"]
        return self._login

    # Repositories

    def create_repository(
        self,
        name: str,
        *,
        description: str = "",
        private: bool = True,
        auto_init: bool = True,
    ) -> RepositoryInfo:
        data = self._request(
            "POST",
            "/user/repos",
            json={
                "name": name,
                "description": description,
                "private": private,
                "auto_init": auto_init,
            },
        ).json()
        return self._parse_repository(data)

    def get_repository(self, owner: str, name: str) -> RepositoryInfo | None:
        try:
            data = self._request("GET", f"/repos/{owner}/{name}").json()
        except HostingAPIError as e:
            if e.status_code == 404:
                return None
            raise
        return self._parse_repository(data)

    def delete_repository(self, owner: str, name: str) -> None:
        self._request("DELETE", f"/repos/{owner}/{name}")

    # Git data

    def get_ref(self, owner: str, repo: str, branch: str) -> str:
        path = f"/repos/{owner}/{repo}/git/ref/heads/{quote(branch, safe='')}"
        return str(self._request("GET", path).json()["object"]["sha"])

    def get_commit(self, owner: str, repo: str, sha: str) -> str:
        data = self._request("GET", f"/repos/{owner}/{repo}/git/commits/{sha}").json()
        return str(data["tree"]["sha"])

    def get_tree(
        self, owner: str, repo: str, sha: str, *, recursive: bool = False
    ) -> TreeListing:
        params = {"recursive": "1"} if recursive else None
        data = self._request(
            "GET", f"/repos/{owner}/{repo}/git/trees/{sha}", params=params
        ).json()
        entries = [
            TreeEntry(
                path=item["path"],
                mode=item["mode"],
                type=item["type"],
                sha=item["sha"],
            )
            for item in data.get("tree", [])
        ]
        return TreeListing(
            sha=data["sha"], entries=entries, truncated=bool(data.get("truncated"))
        )

    def create_blob(self, owner: str, repo: str, content: str) -> str:
        data = self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/blobs",
            json={"content": content, "encoding": "utf-8"},
        ).json()
        return str(data["sha"])

    def create_tree(
        self,
        owner: str,
        repo: str,
        entries: list[TreeEntry],
        base_tree: str | None = None,
    ) -> str:
        payload: dict[str, Any] = {
            "tree": [
                {"path": e.path, "mode": e.mode, "type": e.type, "sha": e.sha}
                for e in entries
            ]
        }
        if base_tree:
            payload["base_tree"] = base_tree
        data = self._request(
            "POST", f"/repos/{owner}/{repo}/git/trees", json=payload
        ).json()
        return str(data["sha"])

    def create_commit(
        self, owner: str, repo: str, message: str, tree: str, parents: list[str]
    ) -> CommitInfo:
        data = self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/commits",
            json={"message": message, "tree": tree, "parents": parents},
        ).json()
        return CommitInfo(sha=data["sha"], html_url=data.get("html_url", ""))

    def update_ref(self, owner: str, repo: str, branch: str, sha: str) -> None:
        path = f"/repos/{owner}/{repo}/git/refs/heads/{quote(branch, safe='')}"
        self._request("PATCH", path, json={"sha": sha, "force": False})

    # Gists

    def create_snippet(
        self, files: dict[str, str], *, description: str = "", public: bool = False
    ) -> SnippetInfo:
        data = self._request(
            "POST",
            "/gists",
            json={
                "description": description,
                "public": public,
                "files": {name: {"content": body} for name, body in files.items()},
            },
        ).json()
        return self._parse_snippet(data)

    def get_snippet(self, snippet_id: str) -> SnippetInfo | None:
        try:
            data = self._request("GET", f"/gists/{snippet_id}").json()
        except HostingAPIError as e:
            if e.status_code == 404:
                return None
            raise
        return self._parse_snippet(data)

    def update_snippet(
        self,
        snippet_id: str,
        files: dict[str, str],
        *,
        description: str | None = None,
    ) -> SnippetInfo:
        payload: dict[str, Any] = {
            "files": {name: {"content": body} for name, body in files.items()}
        }
        if description is not None:
            payload["description"] = description
        data = self._request("PATCH", f"/gists/{snippet_id}", json=payload).json()
        return self._parse_snippet(data)

    def delete_snippet(self, snippet_id: str) -> None:
        self._request("DELETE", f"/gists/{snippet_id}")

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> requests.Response:
        """Execute HTTP request with error handling.

        Raises:
            HostingAPIError: Transport failure (no status) or non-2xx status
        """
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(
                method=method,
                url=url,
                json=json,
                params=params,
                timeout=self.timeout,
            )
        except Timeout as e:
            raise HostingAPIError(None, f"Request timed out: {e}", url=url) from e
        except RequestsConnectionError as e:
            raise HostingAPIError(None, f"Connection error: {e}", url=url) from e

        if not response.ok:
            detail = response.reason or "request failed"
            with contextlib.suppress(ValueError, AttributeError):
                detail = response.json().get("message") or detail
            logger.debug("%s %s -> %s: %s", method, url, response.status_code, detail)
            raise HostingAPIError(
                response.status_code, detail, headers=response.headers, url=url
            )

        return response

    @staticmethod
    def _parse_repository(data: dict[str, Any]) -> RepositoryInfo:
        return RepositoryInfo(
            owner=data["owner"]["login"],
            name=data["name"],
            html_url=data["html_url"],
            clone_url=data["clone_url"],
            default_branch=data.get("default_branch") or "main",
            private=bool(data.get("private")),
        )

    @staticmethod
    def _parse_snippet(data: dict[str, Any]) -> SnippetInfo:
        files = {
            name: meta.get("raw_url", "")
            for name, meta in (data.get("files") or {}).items()
            if meta is not None
        }
        return SnippetInfo(
            id=data["id"],
            html_url=data["html_url"],
            files=files,
            description=data.get("description") or "",
            public=bool(data.get("public")),
        )
