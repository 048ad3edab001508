"""Kubernetes hosting lifecycle for published MCP servers.

The orchestrator never talks to the cluster. It builds and pushes the image,
renders manifests and commits them to the desired-state repository; an
external reconciler applies them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from mcpship.artifacts import ArtifactStore
from mcpship.config.settings import HostingSettings
from mcpship.hosting.gitops import GitOpsCommitter
from mcpship.hosting.manifests import (
    RESERVED_ENV_VARS,
    ManifestGenerator,
    resource_name,
    server_host,
)
from mcpship.hosting.registry import ContainerRegistryClient, get_oci_labels
from mcpship.lib.errors import DeploymentError, InvalidStateError, NotFoundError
from mcpship.lib.naming import generate_server_id
from mcpship.models.deployment import utcnow
from mcpship.models.hosting import (
    HostedServer,
    HostedServerStatus,
    HostingResult,
    ManifestConfig,
)
from mcpship.storage.base import DeploymentStore, HostedServerStore

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_TAG = "latest"


class HostingOrchestrator:
    """Drive the HostedServer state machine.

    Example:
        >>> hosting = HostingOrchestrator(servers, deployments, registry, gitops)
        >>> result = hosting.deploy_to_cloud("01J...")
        >>> result.endpoint_url
        'https://weather-k3j9x0qa.mcp.example.com'
    """

    def __init__(
        self,
        servers: HostedServerStore,
        deployments: DeploymentStore,
        registry: ContainerRegistryClient,
        gitops: GitOpsCommitter,
        settings: HostingSettings | None = None,
        manifests: ManifestGenerator | None = None,
        artifacts: ArtifactStore | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            servers: HostedServer persistence
            deployments: Deployment records (source of name and build context)
            registry: Image build/push/delete client
            gitops: Manifest committer
            settings: Domain and namespace
            manifests: Manifest generator
            artifacts: Optional artifact store for tool metadata
        """
        self.servers = servers
        self.deployments = deployments
        self.registry = registry
        self.gitops = gitops
        self.settings = settings or HostingSettings()
        self.manifests = manifests or ManifestGenerator()
        self.artifacts = artifacts

    def deploy_to_cloud(
        self,
        artifact_id: str,
        user_id: str | None = None,
        env_var_names: Iterable[str] | None = None,
    ) -> HostingResult:
        """Build, push and commit manifests for an artifact's latest deployment.

        Failures after the server row exists are recorded on the row and
        returned as a failed HostingResult.

        Args:
            artifact_id: Artifact whose latest deployment is hosted
            user_id: Owning user
            env_var_names: Variables the server reads from its env Secret;
                defaults to the names the artifact declares

        Raises:
            NotFoundError: If the artifact has no deployment record
            DeploymentError: If the record has no server name
        """
        record = self.deployments.latest_for_artifact(artifact_id)
        if record is None:
            raise NotFoundError("Deployment for artifact", artifact_id)
        if not record.server_name:
            raise DeploymentError(
                "deploy_to_cloud", "Deployment does not have a server name"
            )

        server_id = generate_server_id(record.server_name)
        server = HostedServer(
            server_id=server_id,
            server_name=record.server_name,
            source_artifact_id=artifact_id,
            user_id=user_id,
            description=record.metadata.options.description,
            endpoint_url=f"https://{server_host(server_id, self.settings.domain)}",
            k8s_namespace=self.settings.namespace,
            image_tag=DEFAULT_IMAGE_TAG,
        )
        if self.artifacts is not None:
            artifact = self.artifacts.get_artifact(artifact_id)
            if artifact is not None:
                server.tools = list(artifact.tools)
                server.description = server.description or artifact.description
                if env_var_names is None:
                    env_var_names = artifact.env_vars
        server.env_var_names = sorted(set(env_var_names or ()) - RESERVED_ENV_VARS)
        self.servers.save(server)
        logger.info("Created hosted server %s for artifact %s", server_id, artifact_id)

        try:
            if not record.local_path:
                raise DeploymentError(
                    "deploy_to_cloud", "Deployment does not have a build context path"
                )

            self._set_status(server, HostedServerStatus.BUILDING, "Building image...")
            self.registry.build(
                record.local_path,
                server_id,
                server.image_tag,
                labels=get_oci_labels(server_id, server.server_name),
            )

            self._set_status(server, HostedServerStatus.PUSHING, "Pushing image...")
            self.registry.push(server_id, server.image_tag)
            server.docker_image = self.registry.get_image_repository(server_id)
            self.servers.save(server)

            self._set_status(
                server, HostedServerStatus.DEPLOYING, "Committing manifests..."
            )
            self._commit(server, replicas=1, initial=True)

            server.k8s_deployment_name = resource_name(server_id)
            server.deployed_at = utcnow()
            self._set_status(server, HostedServerStatus.RUNNING, "Server deployed")
        except Exception as e:  # noqa: BLE001 - recorded on the server row
            message = getattr(e, "message", None) or str(e) or type(e).__name__
            logger.error("Hosting deployment failed for %s: %s", server_id, message)
            self._set_status(server, HostedServerStatus.FAILED, message)
            return HostingResult(
                success=False,
                server_id=server_id,
                endpoint_url=server.endpoint_url,
                status=server.status,
                error=message,
            )

        logger.info("Deployed MCP server %s at %s", server_id, server.endpoint_url)
        return HostingResult(
            success=True,
            server_id=server_id,
            endpoint_url=server.endpoint_url,
            status=server.status,
        )

    def stop_server(self, server_id: str) -> HostedServer:
        """Scale a running server to zero replicas.

        Raises:
            NotFoundError: If the server does not exist
            InvalidStateError: If the server is not running
            GitOpsError: If the manifests cannot be committed
        """
        server = self.get_server(server_id)
        if not server.can_transition(HostedServerStatus.STOPPED):
            raise InvalidStateError(
                server.status.value,
                HostedServerStatus.STOPPED.value,
                f"Server {server_id} is not running",
            )
        self._commit(server, replicas=0)
        server.stopped_at = utcnow()
        self._set_status(server, HostedServerStatus.STOPPED, "Server stopped")
        logger.info("Stopped server %s", server_id)
        return server

    def start_server(self, server_id: str) -> HostedServer:
        """Scale a stopped server back to one replica.

        Raises:
            NotFoundError: If the server does not exist
            InvalidStateError: If the server is not stopped
            GitOpsError: If the manifests cannot be committed
        """
        server = self.get_server(server_id)
        if server.status != HostedServerStatus.STOPPED:
            raise InvalidStateError(
                server.status.value,
                HostedServerStatus.RUNNING.value,
                f"Server {server_id} is not stopped",
            )
        self._commit(server, replicas=1)
        server.stopped_at = None
        self._set_status(server, HostedServerStatus.RUNNING, "Server started")
        logger.info("Started server %s", server_id)
        return server

    def delete_server(self, server_id: str) -> HostedServer:
        """Remove manifests, drop the image and soft-delete the row.

        Image deletion is best effort.

        Raises:
            NotFoundError: If the server does not exist
            InvalidStateError: If the server is already deleted
            GitOpsError: If the manifests cannot be removed
        """
        server = self.get_server(server_id)
        if server.status == HostedServerStatus.DELETED:
            raise InvalidStateError(
                server.status.value,
                HostedServerStatus.DELETED.value,
                f"Server {server_id} is already deleted",
            )

        self.gitops.remove_server(server_id)
        try:
            self.registry.delete_image(server_id)
        except Exception as e:  # noqa: BLE001 - image cleanup is best effort
            logger.warning("Failed to delete image for %s: %s", server_id, e)

        server.deleted_at = utcnow()
        self._set_status(server, HostedServerStatus.DELETED, "Server deleted")
        logger.info("Deleted server %s", server_id)
        return server

    def track_request(self, server_id: str) -> HostedServer:
        """Count one proxied request."""
        server = self.get_server(server_id)
        server.request_count += 1
        server.last_request_at = utcnow()
        return self.servers.save(server)

    def get_server(self, server_id: str) -> HostedServer:
        """Return a server, including deleted ones.

        Raises:
            NotFoundError: If the server does not exist
        """
        server = self.servers.get(server_id)
        if server is None:
            raise NotFoundError("Server", server_id)
        return server

    def list_servers(self, user_id: str | None = None) -> list[HostedServer]:
        """Servers that are not deleted, newest first."""
        return self.servers.query(user_id=user_id)

    def manifest_config(
        self, server: HostedServer, replicas: int = 1
    ) -> ManifestConfig:
        return ManifestConfig(
            server_id=server.server_id,
            server_name=server.server_name,
            docker_image=server.docker_image,
            image_tag=server.image_tag,
            domain=self.settings.domain,
            namespace=server.k8s_namespace,
            replicas=replicas,
            secret_env_names=tuple(server.env_var_names),
        )

    def _commit(
        self, server: HostedServer, replicas: int, initial: bool = False
    ) -> None:
        config = self.manifest_config(server, replicas)
        manifests = self.manifests.generate_manifests(config)
        kustomization = self.manifests.generate_kustomization(server.server_id)
        if initial:
            self.gitops.deploy_server(server.server_id, manifests, kustomization)
        else:
            self.gitops.update_server(server.server_id, manifests, kustomization)

    def _set_status(
        self, server: HostedServer, status: HostedServerStatus, message: str
    ) -> None:
        server.transition(status, message)
        self.servers.save(server)
        logger.debug("Server %s -> %s: %s", server.server_id, status.value, message)
