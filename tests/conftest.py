"""Pytest configuration and shared fixtures for mcpship tests."""

from __future__ import annotations

import itertools
import threading
from collections import Counter

import pytest

from mcpship.artifacts import Artifact, InMemoryArtifactStore
from mcpship.deploy.classifier import ErrorClassifier
from mcpship.deploy.orchestrator import DeploymentOrchestrator
from mcpship.github.base import (
    CommitInfo,
    HostingAPI,
    RepositoryInfo,
    SnippetInfo,
    TreeEntry,
    TreeListing,
)
from mcpship.lib.errors import HostingAPIError
from mcpship.models.deployment import DeploymentFile, McpToolInfo
from mcpship.providers.repo import RepositoryProvider
from mcpship.providers.snippet import SnippetProvider
from mcpship.storage.memory import InMemoryDeploymentStore, InMemoryHostedServerStore

# 2026-01-15 12:00:00 UTC
FIXED_NOW = 1768478400.0


class FakeHostingAPI(HostingAPI):
    """In-memory hosting API with git objects, snippets and call counting.

    ``fail_next(method, error)`` queues an exception for the next call of a
    method; queued errors are raised in order.
    """

    def __init__(self, login: str = "octo") -> None:
        self.login = login
        self.calls: list[str] = []
        self.repos: dict[tuple[str, str], RepositoryInfo] = {}
        self.refs: dict[tuple[str, str, str], str] = {}
        self.commits: dict[str, tuple[str, list[str], str]] = {}
        self.trees: dict[str, dict[str, TreeEntry]] = {}
        self.blobs: dict[str, str] = {}
        self.snippets: dict[str, SnippetInfo] = {}
        self.snippet_files: dict[str, dict[str, str]] = {}
        self._failures: dict[str, list[BaseException]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    # Test helpers

    def fail_next(self, method: str, error: BaseException) -> None:
        self._failures.setdefault(method, []).append(error)

    def call_counts(self) -> Counter[str]:
        return Counter(self.calls)

    def add_repository(self, owner: str, name: str, files: dict[str, str]) -> None:
        """Create a repository whose main branch holds ``files``."""
        self._new_repo(owner, name, files)

    def files_at(self, owner: str, repo: str, branch: str = "main") -> dict[str, str]:
        commit_sha = self.refs[(owner, repo, branch)]
        tree = self.trees[self.commits[commit_sha][0]]
        return {path: self.blobs[entry.sha] for path, entry in tree.items()}

    def _enter(self, method: str) -> None:
        with self._lock:
            self.calls.append(method)
            queued = self._failures.get(method)
            error = queued.pop(0) if queued else None
        if error is not None:
            raise error

    def _sha(self, kind: str) -> str:
        with self._lock:
            return f"{kind}{next(self._ids):039d}"[:40]

    def _new_repo(self, owner: str, name: str, files: dict[str, str]) -> RepositoryInfo:
        tree: dict[str, TreeEntry] = {}
        for path, content in files.items():
            blob = self._sha("b")
            self.blobs[blob] = content
            tree[path] = TreeEntry(path=path, mode="100644", type="blob", sha=blob)
        tree_sha = self._sha("t")
        self.trees[tree_sha] = tree
        commit_sha = self._sha("c")
        self.commits[commit_sha] = (tree_sha, [], "Initial commit")
        self.refs[(owner, name, "main")] = commit_sha
        info = RepositoryInfo(
            owner=owner,
            name=name,
            html_url=f"https://github.com/{owner}/{name}",
            clone_url=f"https://github.com/{owner}/{name}.git",
        )
        self.repos[(owner, name)] = info
        return info

    # HostingAPI

    def get_authenticated_user(self) -> str:
        self._enter("get_authenticated_user")
        return self.login

    def create_repository(
        self,
        name: str,
        *,
        description: str = "",
        private: bool = True,
        auto_init: bool = True,
    ) -> RepositoryInfo:
        self._enter("create_repository")
        if (self.login, name) in self.repos:
            raise HostingAPIError(422, "name already exists on this account")
        files = {"README.md": f"# {name}\n"} if auto_init else {}
        info = self._new_repo(self.login, name, files)
        info = RepositoryInfo(
            owner=info.owner,
            name=info.name,
            html_url=info.html_url,
            clone_url=info.clone_url,
            private=private,
        )
        self.repos[(self.login, name)] = info
        return info

    def get_repository(self, owner: str, name: str) -> RepositoryInfo | None:
        self._enter("get_repository")
        return self.repos.get((owner, name))

    def delete_repository(self, owner: str, name: str) -> None:
        self._enter("delete_repository")
        if self.repos.pop((owner, name), None) is None:
            raise HostingAPIError(404, "Not Found")

    def get_ref(self, owner: str, repo: str, branch: str) -> str:
        self._enter("get_ref")
        return self.refs[(owner, repo, branch)]

    def get_commit(self, owner: str, repo: str, sha: str) -> str:
        self._enter("get_commit")
        return self.commits[sha][0]

    def get_tree(
        self, owner: str, repo: str, sha: str, *, recursive: bool = False
    ) -> TreeListing:
        self._enter("get_tree")
        entries = list(self.trees[sha].values())
        directories = sorted(
            {path.rsplit("/", 1)[0] for path in self.trees[sha] if "/" in path}
        )
        entries.extend(
            TreeEntry(path=d, mode="040000", type="tree", sha=f"dir-{d}")
            for d in directories
        )
        return TreeListing(sha=sha, entries=entries)

    def create_blob(self, owner: str, repo: str, content: str) -> str:
        self._enter("create_blob")
        sha = self._sha("b")
        with self._lock:
            self.blobs[sha] = content
        return sha

    def create_tree(
        self,
        owner: str,
        repo: str,
        entries: list[TreeEntry],
        base_tree: str | None = None,
    ) -> str:
        self._enter("create_tree")
        tree = dict(self.trees[base_tree]) if base_tree else {}
        for entry in entries:
            tree[entry.path] = entry
        sha = self._sha("t")
        self.trees[sha] = tree
        return sha

    def create_commit(
        self, owner: str, repo: str, message: str, tree: str, parents: list[str]
    ) -> CommitInfo:
        self._enter("create_commit")
        sha = self._sha("c")
        self.commits[sha] = (tree, list(parents), message)
        return CommitInfo(
            sha=sha, html_url=f"https://github.com/{owner}/{repo}/commit/{sha}"
        )

    def update_ref(self, owner: str, repo: str, branch: str, sha: str) -> None:
        self._enter("update_ref")
        self.refs[(owner, repo, branch)] = sha

    def create_snippet(
        self, files: dict[str, str], *, description: str = "", public: bool = False
    ) -> SnippetInfo:
        self._enter("create_snippet")
        snippet_id = f"gist{self._sha('')[-8:]}"
        info = SnippetInfo(
            id=snippet_id,
            html_url=f"https://gist.github.com/{self.login}/{snippet_id}",
            files={
                name: f"https://gist.githubusercontent.com/raw/{snippet_id}/{name}"
                for name in files
            },
            description=description,
            public=public,
        )
        self.snippets[snippet_id] = info
        self.snippet_files[snippet_id] = dict(files)
        return info

    def get_snippet(self, snippet_id: str) -> SnippetInfo | None:
        self._enter("get_snippet")
        return self.snippets.get(snippet_id)

    def update_snippet(
        self,
        snippet_id: str,
        files: dict[str, str],
        *,
        description: str | None = None,
    ) -> SnippetInfo:
        self._enter("update_snippet")
        current = self.snippets.get(snippet_id)
        if current is None:
            raise HostingAPIError(404, "Gist not found")
        merged = {**current.files}
        for name in files:
            merged[name] = f"https://gist.githubusercontent.com/raw/{snippet_id}/{name}"
        info = SnippetInfo(
            id=snippet_id,
            html_url=current.html_url,
            files=merged,
            description=current.description if description is None else description,
            public=current.public,
        )
        self.snippets[snippet_id] = info
        self.snippet_files[snippet_id].update(files)
        return info

    def delete_snippet(self, snippet_id: str) -> None:
        self._enter("delete_snippet")
        if self.snippets.pop(snippet_id, None) is None:
            raise HostingAPIError(404, "Gist not found")


TS_FILES = [
    DeploymentFile(
        path="package.json",
        content=(
            '{"name": "weather-server", "dependencies": '
            '{"@modelcontextprotocol/sdk": "^1.0.0", "zod": "^3.23.0"}}'
        ),
    ),
    DeploymentFile(
        path="src/index.ts",
        content='import { Server } from "@modelcontextprotocol/sdk";\n',
    ),
    DeploymentFile(path="README.md", content="# Weather Server\n"),
]


@pytest.fixture
def api() -> FakeHostingAPI:
    """In-memory hosting API."""
    return FakeHostingAPI()


@pytest.fixture
def deployment_store() -> InMemoryDeploymentStore:
    return InMemoryDeploymentStore()


@pytest.fixture
def server_store() -> InMemoryHostedServerStore:
    return InMemoryHostedServerStore()


@pytest.fixture
def artifact_store() -> InMemoryArtifactStore:
    """Artifact store with one TypeScript artifact and one empty artifact."""
    store = InMemoryArtifactStore()
    store.add(
        Artifact(
            id="art-weather",
            server_name="Weather Server",
            description="Weather tools",
            tools=[McpToolInfo(name="get_forecast", description="Forecast")],
            env_vars=["WEATHER_API_KEY"],
            local_path="/tmp/art-weather",
        ),
        TS_FILES,
    )
    store.add(Artifact(id="art-empty", server_name="Empty Server"))
    return store


@pytest.fixture
def sleeps() -> list[float]:
    """Recorded sleep durations (seconds)."""
    return []


@pytest.fixture
def classifier() -> ErrorClassifier:
    return ErrorClassifier(clock=lambda: FIXED_NOW, sleep=lambda _: None)


@pytest.fixture
def repo_provider(api: FakeHostingAPI, sleeps: list[float]) -> RepositoryProvider:
    return RepositoryProvider(
        api, propagation_delay=0, sleep=sleeps.append, clock=lambda: FIXED_NOW
    )


@pytest.fixture
def snippet_provider(api: FakeHostingAPI, sleeps: list[float]) -> SnippetProvider:
    return SnippetProvider(api, sleep=sleeps.append, clock=lambda: FIXED_NOW)


@pytest.fixture
def orchestrator(
    deployment_store: InMemoryDeploymentStore,
    artifact_store: InMemoryArtifactStore,
    repo_provider: RepositoryProvider,
    snippet_provider: SnippetProvider,
    classifier: ErrorClassifier,
) -> DeploymentOrchestrator:
    """Orchestrator without post-deploy validation."""
    return DeploymentOrchestrator(
        deployment_store,
        artifact_store,
        repo_provider,
        snippet_provider,
        classifier=classifier,
    )


@pytest.fixture
def fixed_now() -> float:
    """Epoch seconds returned by every injected clock."""
    return FIXED_NOW


@pytest.fixture
def ts_files() -> list[DeploymentFile]:
    """Files of the TypeScript sample artifact."""
    return list(TS_FILES)
