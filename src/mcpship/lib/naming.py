"""Name sanitizers shared by the repository, snippet and hosting paths."""

from __future__ import annotations

import re
import secrets
import string

MAX_REPO_NAME_LENGTH = 100
SERVER_ID_PREFIX_LENGTH = 20
SERVER_ID_SUFFIX_LENGTH = 8
DEFAULT_NAME = "mcp-server"

_INVALID_CHARS = re.compile(r"[^a-z0-9-]")
_HYPHEN_RUNS = re.compile(r"-+")
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def slugify(name: str, max_length: int) -> str:
    """Lowercase ``name`` and reduce it to hyphen-separated ``[a-z0-9]`` runs.

    Args:
        name: Arbitrary input, possibly empty or non-ASCII
        max_length: Maximum length of the returned slug

    Returns:
        Slug without leading or trailing hyphens; empty if nothing survives
    """
    slug = _INVALID_CHARS.sub("-", name.lower())
    slug = _HYPHEN_RUNS.sub("-", slug).strip("-")
    return slug[:max_length].rstrip("-")


def sanitize_repo_name(name: str) -> str:
    """Sanitize a server name into a valid repository name.

    Example:
        >>> sanitize_repo_name("My Weather Server!")
        'my-weather-server'
    """
    return slugify(name, MAX_REPO_NAME_LENGTH) or DEFAULT_NAME


def sanitize_filename(name: str, extension: str) -> str:
    """Build a flat snippet filename such as ``weather-server.ts``."""
    stem = slugify(name, MAX_REPO_NAME_LENGTH) or DEFAULT_NAME
    extension = extension.lstrip(".")
    return f"{stem}.{extension}" if extension else stem


def random_suffix(length: int = SERVER_ID_SUFFIX_LENGTH) -> str:
    """Return a random lowercase alphanumeric suffix."""
    return "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(length))


def generate_server_id(server_name: str) -> str:
    """Generate a collision-resistant, DNS-label-safe hosted server id.

    Example:
        >>> generate_server_id("Weather Tools")  # doctest: +SKIP
        'weather-tools-k3j9x0qa'
    """
    prefix = slugify(server_name, SERVER_ID_PREFIX_LENGTH) or "server"
    return f"{prefix}-{random_suffix()}"
