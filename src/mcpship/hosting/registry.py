"""Container image build, push and delete for hosted MCP servers.

Uses the Docker SDK against the local daemon. Images go to a local registry
in local-dev mode and to GHCR otherwise.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from urllib.parse import quote

import docker
import requests
from docker.errors import APIError, BuildError, DockerException, ImageNotFound
from requests.exceptions import RequestException

from mcpship.config.settings import GitHubSettings, RegistrySettings
from mcpship.lib.errors import DockerNotAvailableError, RegistryError

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    """Result of an image build.

    Attributes:
        image_id: The SHA256 ID of the built image
        repository: Image repository without tag
        tag: The image tag
        full_name: Full image reference (repository:tag)
        log_lines: Build log output lines
    """

    image_id: str
    repository: str
    tag: str
    full_name: str
    log_lines: list[str] = field(default_factory=list)


def get_oci_labels(server_id: str, server_name: str) -> dict[str, str]:
    """OCI labels applied to every hosted server image."""
    return {
        "org.opencontainers.image.title": server_name,
        "org.opencontainers.image.created": datetime.now(timezone.utc).isoformat(),
        "dev.mcpship.server-id": server_id,
        "dev.mcpship.managed": "true",
    }


class ContainerRegistryClient:
    """Build, push and delete server images.

    Example:
        >>> registry = ContainerRegistryClient(RegistrySettings(local_dev=True))
        >>> registry.get_image_name("weather-k3j9x0qa")
        'localhost:5000/weather-k3j9x0qa:latest'
    """

    def __init__(
        self,
        settings: RegistrySettings,
        github: GitHubSettings | None = None,
        client: Any | None = None,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the registry client.

        The Docker client is created on first use so that image naming and
        remote deletes work without a daemon.

        Args:
            settings: Registry settings
            github: API settings used for package deletion
            client: Pre-built Docker client
            session: HTTP session for the packages API
        """
        self.settings = settings
        self.github = github or GitHubSettings()
        self._client = client
        self._session = session or requests.Session()
        self._logged_in = False

    @property
    def client(self) -> Any:
        if self._client is None:
            try:
                self._client = docker.from_env()  # type: ignore[attr-defined]
            except DockerException as e:
                raise DockerNotAvailableError(operation="init") from e
        return self._client

    @property
    def is_local(self) -> bool:
        return self.settings.local_dev

    def get_image_repository(self, server_id: str) -> str:
        """Image repository (no tag) for a server."""
        if self.is_local:
            return f"{self.settings.local_registry}/{server_id}"
        if not self.settings.owner:
            raise RegistryError("name", "GHCR_OWNER is not configured")
        return (
            f"{self.settings.registry}/{self.settings.owner}/"
            f"{self.settings.repo}/{server_id}"
        )

    def get_image_name(self, server_id: str, tag: str = "latest") -> str:
        """Full image reference for a server."""
        return f"{self.get_image_repository(server_id)}:{tag}"

    def login(self) -> None:
        """Authenticate against GHCR; a no-op for the local registry."""
        if self.is_local or self._logged_in:
            return
        token = self.settings.token or self.github.token
        if not token or not self.settings.owner:
            logger.warning("Registry credentials not configured; skipping login")
            return
        try:
            self.client.login(
                username=self.settings.owner,
                password=token,
                registry=self.settings.registry,
            )
        except APIError as e:
            raise RegistryError("login", f"Registry login failed: {e}") from e
        self._logged_in = True
        logger.info(
            "Logged in to %s as %s", self.settings.registry, self.settings.owner
        )

    def build(
        self,
        build_context: str,
        server_id: str,
        tag: str = "latest",
        labels: dict[str, str] | None = None,
        dockerfile: str = "Dockerfile",
    ) -> BuildResult:
        """Build the image for a server from its build context.

        Raises:
            RegistryError: If the context is missing or the build fails
        """
        context_path = Path(build_context)
        if not context_path.exists():
            raise RegistryError("build", f"Build context not found: {build_context}")

        repository = self.get_image_repository(server_id)
        full_name = f"{repository}:{tag}"
        logger.info("Building image %s", full_name)

        try:
            image, build_logs = self.client.images.build(
                path=str(context_path),
                tag=full_name,
                dockerfile=dockerfile,
                labels=labels or {},
                rm=True,
                platform=self.settings.platform,
            )
        except BuildError as e:
            raise RegistryError("build", f"Docker build failed: {e.msg}") from e
        except DockerException as e:
            raise RegistryError("build", f"Docker error during build: {e}") from e

        log_lines: list[str] = []
        for entry in build_logs:
            if isinstance(entry, dict):
                if isinstance(entry.get("stream"), str):
                    log_lines.append(entry["stream"].rstrip("\n"))
                elif "error" in entry:
                    log_lines.append(f"ERROR: {entry['error']}")

        return BuildResult(
            image_id=image.id or "",
            repository=repository,
            tag=tag,
            full_name=full_name,
            log_lines=log_lines,
        )

    def push(self, server_id: str, tag: str = "latest") -> str:
        """Push a built image and return its full reference.

        Raises:
            RegistryError: If the daemon reports an error while pushing
        """
        self.login()
        repository = self.get_image_repository(server_id)
        full_name = f"{repository}:{tag}"
        logger.info("Pushing image %s", full_name)

        try:
            for line in self.client.images.push(
                repository, tag=tag, stream=True, decode=True
            ):
                if isinstance(line, dict) and line.get("error"):
                    raise RegistryError("push", str(line["error"]))
        except DockerException as e:
            raise RegistryError("push", f"Docker error during push: {e}") from e

        logger.info("Pushed image %s", full_name)
        return full_name

    def delete_image(self, server_id: str) -> None:
        """Delete every tag of a server image.

        Missing images are not an error.

        Raises:
            RegistryError: If the registry rejects the delete
        """
        if self.is_local:
            try:
                self.client.images.remove(self.get_image_name(server_id), force=True)
                logger.info("Deleted local image for %s", server_id)
            except ImageNotFound:
                logger.warning("Local image for %s not found", server_id)
            except DockerException as e:
                raise RegistryError("delete", f"Docker error during delete: {e}") from e
            return

        token = self.settings.token or self.github.token
        if not token:
            raise RegistryError("delete", "GITHUB_TOKEN is not configured")

        package = quote(f"{self.settings.repo}/{server_id}", safe="")
        url = f"{self.github.api_url.rstrip('/')}/user/packages/container/{package}"
        try:
            response = self._session.delete(
                url,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": "2022-11-28",
                },
                timeout=self.github.timeout,
            )
        except RequestException as e:
            raise RegistryError("delete", f"Package delete failed: {e}") from e

        if response.status_code == 404:
            logger.warning("Image not found in registry: %s", server_id)
            return
        if not response.ok:
            raise RegistryError(
                "delete", f"Package delete returned HTTP {response.status_code}"
            )
        logger.info("Deleted image from registry: %s", server_id)
