"""Write hosted server manifests to the desired-state repository.

Both modes lay out the same four files under ``servers/{server_id}/``:
local mode writes a working-tree directory, remote mode commits atomically
through the git data API.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from mcpship.config.settings import GitOpsSettings
from mcpship.github.base import HostingAPI
from mcpship.github.commit import atomic_commit, remove_path_commit
from mcpship.lib.errors import GitOpsError, HostingAPIError
from mcpship.models.deployment import DeploymentFile
from mcpship.models.hosting import GitOpsCommitResult, ManifestSet

logger = logging.getLogger(__name__)

SERVERS_DIR = "servers"


def server_dir(server_id: str) -> str:
    """Repository-relative directory holding a server's manifests."""
    return f"{SERVERS_DIR}/{server_id}"


def manifest_files(
    server_id: str, manifests: ManifestSet, kustomization: str
) -> list[DeploymentFile]:
    base = server_dir(server_id)
    return [
        DeploymentFile(path=f"{base}/deployment.yaml", content=manifests.deployment),
        DeploymentFile(path=f"{base}/service.yaml", content=manifests.service),
        DeploymentFile(path=f"{base}/ingress.yaml", content=manifests.ingress),
        DeploymentFile(path=f"{base}/kustomization.yaml", content=kustomization),
    ]


class GitOpsCommitter:
    """Commit or remove a server's manifests."""

    def __init__(self, settings: GitOpsSettings, api: HostingAPI | None = None) -> None:
        """Initialize the committer.

        Args:
            settings: GitOps settings (mode, local path, remote repository)
            api: Hosting API, required in remote mode
        """
        self.settings = settings
        self.api = api

    @property
    def is_local(self) -> bool:
        return self.settings.local_dev

    def deploy_server(
        self, server_id: str, manifests: ManifestSet, kustomization: str
    ) -> GitOpsCommitResult:
        """Write all four manifest files for ``server_id``.

        Raises:
            GitOpsError: If writing or committing fails
        """
        files = manifest_files(server_id, manifests, kustomization)
        if self.is_local:
            return self._write_local(server_id, files)
        return self._commit_remote(server_id, files)

    def update_server(
        self, server_id: str, manifests: ManifestSet, kustomization: str
    ) -> GitOpsCommitResult:
        """Overwrite the manifests of an existing server."""
        return self.deploy_server(server_id, manifests, kustomization)

    def remove_server(self, server_id: str) -> GitOpsCommitResult:
        """Remove the manifests of ``server_id`` in one operation.

        Raises:
            GitOpsError: If deleting or committing fails
        """
        if self.is_local:
            target = self.settings.local_path / server_dir(server_id)
            try:
                if target.exists():
                    shutil.rmtree(target)
            except OSError as e:
                raise GitOpsError(server_id, f"Failed to remove {target}: {e}") from e
            logger.info("Removed manifests for %s from %s", server_id, target)
            return GitOpsCommitResult(local_path=str(target))

        api = self._require_api(server_id)
        try:
            commit = remove_path_commit(
                api,
                self.settings.owner,
                self.settings.repo,
                self.settings.branch,
                server_dir(server_id),
                f"Remove MCP server: {server_id}",
            )
        except HostingAPIError as e:
            raise GitOpsError(server_id, str(e)) from e

        if commit is None:
            return GitOpsCommitResult()
        return GitOpsCommitResult(commit_sha=commit.sha, commit_url=commit.html_url)

    def _write_local(
        self, server_id: str, files: list[DeploymentFile]
    ) -> GitOpsCommitResult:
        root: Path = self.settings.local_path
        target = root / server_dir(server_id)
        try:
            target.mkdir(parents=True, exist_ok=True)
            for file in files:
                (root / file.path).write_text(file.content, encoding="utf-8")
        except OSError as e:
            raise GitOpsError(server_id, f"Failed to write {target}: {e}") from e
        logger.info("Wrote manifests for %s to %s", server_id, target)
        return GitOpsCommitResult(local_path=str(target))

    def _commit_remote(
        self, server_id: str, files: list[DeploymentFile]
    ) -> GitOpsCommitResult:
        api = self._require_api(server_id)
        try:
            commit = atomic_commit(
                api,
                self.settings.owner,
                self.settings.repo,
                self.settings.branch,
                files,
                f"Deploy MCP server: {server_id}",
            )
        except HostingAPIError as e:
            raise GitOpsError(server_id, str(e)) from e
        return GitOpsCommitResult(commit_sha=commit.sha, commit_url=commit.html_url)

    def _require_api(self, server_id: str) -> HostingAPI:
        if self.api is None:
            raise GitOpsError(server_id, "No hosting API configured for remote GitOps")
        return self.api
