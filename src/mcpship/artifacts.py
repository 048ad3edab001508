"""Artifact store: where generated MCP server projects are read from."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mcpship.models.deployment import DeploymentFile, McpToolInfo

logger = logging.getLogger(__name__)

METADATA_FILE = ".artifact.json"
SKIPPED_DIRS = frozenset({"node_modules", ".git", "dist"})


def default_server_name(artifact_id: str) -> str:
    return f"mcp-server-{artifact_id[:8]}"


class Artifact(BaseModel):
    """A generated project that can be published.

    Attributes:
        id: Artifact identifier
        server_name: Name used for repositories, snippets and hosted servers
        description: Optional human description
        tools: Tools exposed by the server
        env_vars: Environment variable names the server requires
        local_path: Build context directory, when the project is on disk
    """

    model_config = ConfigDict(extra="forbid")

    id: str
    server_name: str
    description: str | None = None
    tools: list[McpToolInfo] = Field(default_factory=list)
    env_vars: list[str] = Field(default_factory=list)
    local_path: str | None = None


class _ArtifactMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    server_name: str | None = None
    description: str | None = None
    tools: list[McpToolInfo] = Field(default_factory=list)
    env_vars: list[str] = Field(default_factory=list)


class ArtifactStore(ABC):
    """Upstream source of artifacts and their files."""

    @abstractmethod
    def get_artifact(self, artifact_id: str) -> Artifact | None:
        """Return the artifact, or None when it does not exist."""

    @abstractmethod
    def get_files(self, artifact_id: str) -> list[DeploymentFile]:
        """Return the artifact's files; an empty list is a valid answer."""


class FilesystemArtifactStore(ArtifactStore):
    """Artifacts laid out as ``{root}/{artifact_id}/...`` directories.

    An optional ``.artifact.json`` in the artifact directory supplies the
    server name, description, tool list and required env var names.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _artifact_dir(self, artifact_id: str) -> Path:
        return self.root / artifact_id

    def get_artifact(self, artifact_id: str) -> Artifact | None:
        directory = self._artifact_dir(artifact_id)
        if not directory.is_dir():
            return None

        metadata = _ArtifactMetadata()
        metadata_path = directory / METADATA_FILE
        if metadata_path.exists():
            try:
                metadata = _ArtifactMetadata.model_validate_json(
                    metadata_path.read_text(encoding="utf-8")
                )
            except (OSError, ValidationError) as e:
                logger.warning("Ignoring unreadable %s: %s", metadata_path, e)

        return Artifact(
            id=artifact_id,
            server_name=metadata.server_name or default_server_name(artifact_id),
            description=metadata.description,
            tools=metadata.tools,
            env_vars=metadata.env_vars,
            local_path=str(directory),
        )

    def get_files(self, artifact_id: str) -> list[DeploymentFile]:
        directory = self._artifact_dir(artifact_id)
        if not directory.is_dir():
            logger.warning("Artifact directory not found: %s", directory)
            return []

        files: list[DeploymentFile] = []
        self._collect(directory, "", files)
        return files

    def _collect(self, directory: Path, base: str, files: list[DeploymentFile]) -> None:
        for entry in sorted(directory.iterdir(), key=lambda p: p.name):
            relative = f"{base}/{entry.name}" if base else entry.name
            if entry.is_dir():
                if entry.name not in SKIPPED_DIRS:
                    self._collect(entry, relative, files)
            elif entry.is_file() and relative != METADATA_FILE:
                try:
                    content = entry.read_text(encoding="utf-8")
                except (OSError, UnicodeDecodeError) as e:
                    logger.warning("Failed to read file %s: %s", entry, e)
                    continue
                files.append(DeploymentFile(path=relative, content=content))


class InMemoryArtifactStore(ArtifactStore):
    """Artifacts registered in memory."""

    def __init__(self) -> None:
        self._artifacts: dict[str, Artifact] = {}
        self._files: dict[str, list[DeploymentFile]] = {}

    def add(
        self, artifact: Artifact, files: list[DeploymentFile] | None = None
    ) -> None:
        self._artifacts[artifact.id] = artifact
        self._files[artifact.id] = list(files or [])

    def get_artifact(self, artifact_id: str) -> Artifact | None:
        return self._artifacts.get(artifact_id)

    def get_files(self, artifact_id: str) -> list[DeploymentFile]:
        return list(self._files.get(artifact_id, []))


def write_artifact_metadata(directory: Path, metadata: dict[str, object]) -> Path:
    """Write ``.artifact.json`` into an artifact directory."""
    path = Path(directory) / METADATA_FILE
    path.write_text(json.dumps(metadata, indent=2), encoding="utf-8")
    return path
