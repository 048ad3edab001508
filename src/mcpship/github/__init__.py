"""Git-hosting API boundary, REST client and git data helpers."""

from mcpship.github.base import (
    CommitInfo,
    HostingAPI,
    RepositoryInfo,
    SnippetInfo,
    TreeEntry,
    TreeListing,
)
from mcpship.github.client import GitHubClient
from mcpship.github.commit import atomic_commit, remove_path_commit
from mcpship.github.rate_limit import with_rate_limit_retry

__all__ = [
    "CommitInfo",
    "GitHubClient",
    "HostingAPI",
    "RepositoryInfo",
    "SnippetInfo",
    "TreeEntry",
    "TreeListing",
    "atomic_commit",
    "remove_path_commit",
    "with_rate_limit_retry",
]
