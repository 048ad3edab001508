"""Publish an MCP server as a single-file snippet.

Multi-file projects are flattened into one runnable file with a generated
documentation header, since snippets have no directory structure.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Sequence
from pathlib import PurePosixPath
from typing import TypeVar

from jinja2 import Template

from mcpship.github.base import HostingAPI, SnippetInfo
from mcpship.github.rate_limit import with_rate_limit_retry
from mcpship.lib.errors import PublishError
from mcpship.lib.naming import sanitize_filename
from mcpship.models.deployment import (
    DeploymentFile,
    McpToolInfo,
    SnippetBundle,
    SnippetPublishResult,
)
from mcpship.models.errors import DeploymentErrorCode

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_DESCRIPTION_LENGTH = 256

ENTRY_CANDIDATES = (
    "src/index.ts",
    "index.ts",
    "src/index.js",
    "index.js",
    "src/server.ts",
    "server.ts",
    "src/main.py",
    "main.py",
    "server.py",
    "src/server.py",
)

SOURCE_EXTENSIONS = (".ts", ".js", ".mjs", ".py")

RUN_COMMANDS = {
    "ts": "npx tsx {filename}",
    "js": "node {filename}",
    "mjs": "node {filename}",
    "py": "python {filename}",
}

INSTALL_COMMANDS = {
    "ts": "npm install {deps}",
    "js": "npm install {deps}",
    "mjs": "npm install {deps}",
    "py": "pip install {deps}",
}

HEADER_TEMPLATE = """\
{{ server_name }}
{{ '=' * server_name|length }}

MCP server generated as a single file.

Quick start:
{% if install %}  1. {{ install }}
  2. {{ run }}
{% else %}  1. {{ run }}
{% endif %}
{% if dependencies %}Dependencies:
{% for dep in dependencies %}  - {{ dep }}
{% endfor %}
{% endif %}{% if tools %}Tools:
{% for tool in tools %}  - {{ tool.name }}{% if tool.description %}: {{ tool.description }}{% endif %}
{% endfor %}
{% endif %}License: MIT
"""


def _extension(path: str) -> str:
    return PurePosixPath(path).suffix.lstrip(".")


def _comment_prefix(extension: str) -> str:
    return "#" if extension == "py" else "//"


def _truncate(text: str, limit: int = MAX_DESCRIPTION_LENGTH) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


def find_entry_file(files: Sequence[DeploymentFile]) -> DeploymentFile | None:
    """Return the project's entry file at a conventional path, if any."""
    by_path = {f.path.removeprefix("./"): f for f in files}
    for candidate in ENTRY_CANDIDATES:
        if candidate in by_path:
            return by_path[candidate]
    return None


def parse_dependencies(files: Sequence[DeploymentFile]) -> list[str]:
    """Read dependencies from ``package.json`` or ``requirements.txt``."""
    by_path = {f.path.removeprefix("./"): f for f in files}

    manifest = by_path.get("package.json")
    if manifest is not None:
        try:
            data = json.loads(manifest.content)
        except json.JSONDecodeError:
            logger.warning("package.json is not valid JSON; skipping dependencies")
        else:
            deps = data.get("dependencies") or {}
            if isinstance(deps, dict):
                return [f"{name}@{version}" for name, version in deps.items()]

    requirements = by_path.get("requirements.txt")
    if requirements is not None:
        return [
            line.strip()
            for line in requirements.content.splitlines()
            if line.strip() and not line.strip().startswith(("#", "-"))
        ]
    return []


class SnippetProvider:
    """Create, update, read and delete single-file snippets."""

    def __init__(
        self,
        api: HostingAPI,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.api = api
        self._sleep = sleep
        self._clock = clock

    def create_single_file_bundle(
        self,
        server_name: str,
        files: Sequence[DeploymentFile],
        description: str,
        tools: Sequence[McpToolInfo] = (),
    ) -> SnippetBundle:
        """Flatten ``files`` into one documented, runnable file.

        The entry file is used when found at a conventional path; otherwise
        all source files are concatenated with path markers.
        """
        entry = find_entry_file(files)
        if entry is not None:
            extension = _extension(entry.path)
            code = entry.content
        else:
            sources = [f for f in files if f.path.endswith(SOURCE_EXTENSIONS)]
            extension = _extension(sources[0].path) if sources else "ts"
            prefix = _comment_prefix(extension)
            code = "\n".join(
                f"{prefix} ---- {f.path} ----\n{f.content.rstrip()}\n" for f in sources
            )

        filename = sanitize_filename(server_name, extension)
        dependencies = parse_dependencies(files)
        run = RUN_COMMANDS.get(extension, "node {filename}").format(filename=filename)
        install = None
        if dependencies and extension in INSTALL_COMMANDS:
            install = INSTALL_COMMANDS[extension].format(deps=" ".join(dependencies))

        header = Template(HEADER_TEMPLATE).render(
            server_name=server_name,
            install=install,
            run=run,
            dependencies=dependencies,
            tools=list(tools),
        )
        prefix = _comment_prefix(extension)
        header_block = "\n".join(
            f"{prefix} {line}".rstrip() for line in header.strip().splitlines()
        )

        summary = f"MCP Server: {server_name} - {description}"
        if tools:
            summary += " | Tools: " + ", ".join(t.name for t in tools)
        summary += f" | Run: {run}"

        return SnippetBundle(
            filename=filename,
            content=f"{header_block}\n\n{code.rstrip()}\n",
            description=_truncate(summary),
            dependencies=dependencies,
        )

    def deploy(
        self,
        server_name: str,
        files: Sequence[DeploymentFile],
        description: str,
        tools: Sequence[McpToolInfo] = (),
        is_public: bool = False,
    ) -> SnippetPublishResult:
        """Bundle ``files`` and create a snippet from the bundle."""
        bundle = self.create_single_file_bundle(server_name, files, description, tools)
        info = self._call(
            lambda: self.api.create_snippet(
                {bundle.filename: bundle.content},
                description=bundle.description,
                public=is_public,
            )
        )
        logger.info("Created snippet %s (%s)", info.id, bundle.filename)
        return self._result(info, bundle.filename)

    def update(
        self,
        snippet_id: str,
        server_name: str,
        files: Sequence[DeploymentFile],
        description: str,
        tools: Sequence[McpToolInfo] = (),
    ) -> SnippetPublishResult:
        """Re-bundle ``files`` and replace the snippet content in place."""
        bundle = self.create_single_file_bundle(server_name, files, description, tools)
        info = self._call(
            lambda: self.api.update_snippet(
                snippet_id,
                {bundle.filename: bundle.content},
                description=bundle.description,
            )
        )
        logger.info("Updated snippet %s (%s)", info.id, bundle.filename)
        return self._result(info, bundle.filename)

    def get(self, snippet_id: str) -> SnippetInfo | None:
        return self._call(lambda: self.api.get_snippet(snippet_id))

    def delete(self, snippet_id: str) -> None:
        self._call(lambda: self.api.delete_snippet(snippet_id))
        logger.info("Deleted snippet %s", snippet_id)

    @staticmethod
    def _result(info: SnippetInfo, filename: str) -> SnippetPublishResult:
        raw_url = info.files.get(filename)
        if not raw_url:
            raise PublishError(
                DeploymentErrorCode.UNKNOWN_ERROR,
                f"Snippet {info.id} has no file named {filename}",
            )
        return SnippetPublishResult(
            snippet_id=info.id,
            snippet_url=info.html_url,
            raw_url=raw_url,
            filename=filename,
        )

    def _call(self, fn: Callable[[], T]) -> T:
        return with_rate_limit_retry(fn, sleep=self._sleep, clock=self._clock)
