"""Publish an MCP server project to a new repository."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable, Sequence
from typing import TypeVar

from mcpship.github.base import HostingAPI, RepositoryInfo
from mcpship.github.commit import atomic_commit
from mcpship.github.rate_limit import with_rate_limit_retry
from mcpship.lib.errors import NameConflictError
from mcpship.lib.naming import MAX_REPO_NAME_LENGTH, sanitize_repo_name
from mcpship.models.deployment import (
    DeploymentFile,
    DeploymentRecord,
    RepoPublishResult,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_NAME_ATTEMPTS = 3
DEFAULT_PROPAGATION_DELAY = 1.0  # seconds

_REPO_URL = re.compile(
    r"^https?://[^/]+/(?P<owner>[^/]+)/(?P<repo>[^/#?]+?)(?:\.git)?/?$"
)


def codespace_url(owner: str, repo: str, web_url: str = "https://github.com") -> str:
    """Deterministic "open in cloud IDE" URL for a repository."""
    return f"{web_url.rstrip('/')}/codespaces/new?repo={owner}/{repo}"


def parse_repo_url(url: str) -> tuple[str, str] | None:
    """Extract ``(owner, repo)`` from a repository web or clone URL."""
    match = _REPO_URL.match(url.strip())
    if match is None:
        return None
    return match.group("owner"), match.group("repo")


def repo_reference(record: DeploymentRecord) -> tuple[str, str] | None:
    """``(owner, repo)`` of a record, from provider metadata or its URL."""
    provider = record.metadata.provider
    if provider.owner and provider.repo:
        return provider.owner, provider.repo
    if record.urls.repository:
        return parse_repo_url(record.urls.repository)
    return None


class RepositoryProvider:
    """Create a repository and push all files in a single commit.

    Example:
        >>> provider = RepositoryProvider(GitHubClient(token))
        >>> result = provider.deploy("Weather Server", files, "Weather tools")
        >>> print(result.codespace_url)
    """

    def __init__(
        self,
        api: HostingAPI,
        *,
        propagation_delay: float = DEFAULT_PROPAGATION_DELAY,
        web_url: str = "https://github.com",
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the provider.

        Args:
            api: Hosting API
            propagation_delay: Wait after creating a repository (seconds)
            web_url: Web base URL used for the cloud IDE link
            sleep: Sleep function (seconds)
            clock: Wall clock (epoch seconds)
        """
        self.api = api
        self.propagation_delay = propagation_delay
        self.web_url = web_url
        self._sleep = sleep
        self._clock = clock

    def deploy(
        self,
        server_name: str,
        files: Sequence[DeploymentFile],
        description: str,
        is_private: bool = True,
        on_created: Callable[[RepositoryInfo], None] | None = None,
    ) -> RepoPublishResult:
        """Create a repository for ``server_name`` and commit ``files`` to it.

        ``on_created`` is called as soon as the repository exists, before any
        file is pushed, so callers can record it for a later rollback.

        Raises:
            NameConflictError: If no free name was found after 3 probes
            HostingAPIError: If any hosting API call fails
        """
        base_name = sanitize_repo_name(server_name)
        owner = self._call(self.api.get_authenticated_user)
        repo_name = self._claim_name(owner, base_name)

        repo = self._call(
            lambda: self.api.create_repository(
                repo_name, description=description, private=is_private, auto_init=True
            )
        )
        logger.info("Created repository %s/%s", repo.owner, repo.name)
        if on_created is not None:
            on_created(repo)

        if self.propagation_delay > 0:
            self._sleep(self.propagation_delay)

        commit = atomic_commit(
            self.api,
            repo.owner,
            repo.name,
            repo.default_branch,
            files,
            f"Add generated MCP server: {server_name}",
            call=self._call,
        )

        return RepoPublishResult(
            owner=repo.owner,
            repo=repo.name,
            repository_url=repo.html_url,
            clone_url=repo.clone_url,
            codespace_url=codespace_url(repo.owner, repo.name, self.web_url),
            commit_sha=commit.sha,
        )

    def exists(self, owner: str, name: str) -> bool:
        return self._call(lambda: self.api.get_repository(owner, name)) is not None

    def delete(self, owner: str, name: str) -> None:
        """Delete a repository."""
        self._call(lambda: self.api.delete_repository(owner, name))
        logger.info("Deleted repository %s/%s", owner, name)

    def _claim_name(self, owner: str, base_name: str) -> str:
        # Check-then-act: a concurrent creator can still win the race, which
        # surfaces later as REPOSITORY_NAME_CONFLICT.
        name = base_name
        for _ in range(MAX_NAME_ATTEMPTS):
            if not self.exists(owner, name):
                return name
            logger.warning("Repository %s already exists, adding a timestamp", name)
            name = self._suffixed(base_name)
        raise NameConflictError(name, MAX_NAME_ATTEMPTS)

    def _suffixed(self, base_name: str) -> str:
        suffix = str(int(self._clock() * 1000))
        stem = base_name[: MAX_REPO_NAME_LENGTH - len(suffix) - 1].rstrip("-")
        return f"{stem}-{suffix}"

    def _call(self, fn: Callable[[], T]) -> T:
        return with_rate_limit_retry(fn, sleep=self._sleep, clock=self._clock)
