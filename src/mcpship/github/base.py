"""Abstract boundary over the git-hosting API.

Providers and the GitOps committer only talk to ``HostingAPI`` so they can
be exercised against an in-memory fake.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class RepositoryInfo:
    """A repository as reported by the hosting API."""

    owner: str
    name: str
    html_url: str
    clone_url: str
    default_branch: str = "main"
    private: bool = False


@dataclass(frozen=True)
class CommitInfo:
    """A commit created through the git data API."""

    sha: str
    html_url: str = ""


@dataclass(frozen=True)
class TreeEntry:
    """One entry of a git tree.

    Attributes:
        path: Path relative to the tree root
        mode: File mode (``100644`` for blobs, ``040000`` for trees)
        type: ``blob`` or ``tree``
        sha: Object SHA
    """

    path: str
    mode: str
    type: str
    sha: str


@dataclass(frozen=True)
class TreeListing:
    """Recursive tree listing; ``truncated`` is set when the API cut it short."""

    sha: str
    entries: list[TreeEntry] = field(default_factory=list)
    truncated: bool = False


@dataclass(frozen=True)
class SnippetInfo:
    """A snippet with the raw content URL of each of its files."""

    id: str
    html_url: str
    files: dict[str, str] = field(default_factory=dict)
    description: str = ""
    public: bool = False


class HostingAPI(ABC):
    """Repository CRUD, git data plumbing and snippet CRUD."""

    @abstractmethod
    def get_authenticated_user(self) -> str:
        """Return the login of the token owner."""

    # Repositories

    @abstractmethod
    def create_repository(
        self,
        name: str,
        *,
        description: str = "",
        private: bool = True,
        auto_init: bool = True,
    ) -> RepositoryInfo:
        """Create a repository owned by the authenticated user.

        Raises:
            HostingAPIError: If the API rejects the request
        """

    @abstractmethod
    def get_repository(self, owner: str, name: str) -> RepositoryInfo | None:
        """Return the repository, or None when it does not exist."""

    @abstractmethod
    def delete_repository(self, owner: str, name: str) -> None:
        """Delete a repository."""

    # Git data

    @abstractmethod
    def get_ref(self, owner: str, repo: str, branch: str) -> str:
        """Return the commit SHA the branch points to."""

    @abstractmethod
    def get_commit(self, owner: str, repo: str, sha: str) -> str:
        """Return the tree SHA of a commit."""

    @abstractmethod
    def get_tree(
        self, owner: str, repo: str, sha: str, *, recursive: bool = False
    ) -> TreeListing:
        """List a tree, optionally recursively."""

    @abstractmethod
    def create_blob(self, owner: str, repo: str, content: str) -> str:
        """Store UTF-8 content as a blob and return its SHA."""

    @abstractmethod
    def create_tree(
        self,
        owner: str,
        repo: str,
        entries: list[TreeEntry],
        base_tree: str | None = None,
    ) -> str:
        """Create a tree, layered on ``base_tree`` when given, and return its SHA."""

    @abstractmethod
    def create_commit(
        self, owner: str, repo: str, message: str, tree: str, parents: list[str]
    ) -> CommitInfo:
        """Create a commit object."""

    @abstractmethod
    def update_ref(self, owner: str, repo: str, branch: str, sha: str) -> None:
        """Point the branch at ``sha``."""

    # Snippets

    @abstractmethod
    def create_snippet(
        self, files: dict[str, str], *, description: str = "", public: bool = False
    ) -> SnippetInfo:
        """Create a snippet from ``{filename: content}``."""

    @abstractmethod
    def get_snippet(self, snippet_id: str) -> SnippetInfo | None:
        """Return the snippet, or None when it does not exist."""

    @abstractmethod
    def update_snippet(
        self,
        snippet_id: str,
        files: dict[str, str],
        *,
        description: str | None = None,
    ) -> SnippetInfo:
        """Replace the content of the given files."""

    @abstractmethod
    def delete_snippet(self, snippet_id: str) -> None:
        """Delete a snippet."""
