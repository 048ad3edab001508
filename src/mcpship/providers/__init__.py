"""Publishing targets: repositories, single-file snippets and scaffolding."""

from mcpship.providers.repo import (
    RepositoryProvider,
    codespace_url,
    parse_repo_url,
    repo_reference,
)
from mcpship.providers.snippet import SnippetProvider

__all__ = [
    "RepositoryProvider",
    "SnippetProvider",
    "codespace_url",
    "parse_repo_url",
    "repo_reference",
]
