"""Pydantic models for Kubernetes-hosted MCP servers."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, Field

from mcpship.lib.errors import InvalidStateError
from mcpship.models.deployment import McpToolInfo, utcnow


class HostedServerStatus(str, Enum):
    """Lifecycle states of a hosted server."""

    PENDING = "pending"
    BUILDING = "building"
    PUSHING = "pushing"
    DEPLOYING = "deploying"
    RUNNING = "running"
    STOPPED = "stopped"
    FAILED = "failed"
    DELETED = "deleted"


_S = HostedServerStatus

# ``deleted`` is only entered through an explicit delete and never left.
ALLOWED_TRANSITIONS: MappingProxyType[_S, frozenset[_S]] = MappingProxyType(
    {
        _S.PENDING: frozenset({_S.BUILDING, _S.FAILED, _S.DELETED}),
        _S.BUILDING: frozenset({_S.PUSHING, _S.DEPLOYING, _S.FAILED, _S.DELETED}),
        _S.PUSHING: frozenset({_S.DEPLOYING, _S.FAILED, _S.DELETED}),
        _S.DEPLOYING: frozenset({_S.RUNNING, _S.FAILED, _S.DELETED}),
        _S.RUNNING: frozenset({_S.STOPPED, _S.FAILED, _S.DELETED}),
        _S.STOPPED: frozenset({_S.RUNNING, _S.FAILED, _S.DELETED}),
        _S.FAILED: frozenset({_S.DELETED}),
        _S.DELETED: frozenset(),
    }
)


class HostedServer(BaseModel):
    """Persisted row for an MCP server hosted on the cluster.

    Attributes:
        server_id: Globally unique, URL-safe identifier
        server_name: Human-readable server name
        status: Current lifecycle state
        docker_image: Image repository without tag
        image_tag: Image tag deployed
        k8s_namespace: Namespace the manifests target
        k8s_deployment_name: Name of the Deployment object (``mcp-{server_id}``)
        endpoint_url: Public HTTPS endpoint
        request_count: Requests observed by the proxy
        last_request_at: Time of the last proxied request
        env_var_names: Variables read from the server's env Secret (names only)
    """

    model_config = ConfigDict(extra="forbid")

    server_id: str
    server_name: str
    source_artifact_id: str | None = None
    user_id: str | None = None
    description: str | None = None
    status: HostedServerStatus = HostedServerStatus.PENDING
    status_message: str | None = None
    last_status_change: datetime = Field(default_factory=utcnow)
    docker_image: str = ""
    image_tag: str = "latest"
    k8s_namespace: str = "mcp-servers"
    k8s_deployment_name: str | None = None
    endpoint_url: str
    request_count: int = 0
    last_request_at: datetime | None = None
    tools: list[McpToolInfo] = Field(default_factory=list)
    env_var_names: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    deployed_at: datetime | None = None
    stopped_at: datetime | None = None
    deleted_at: datetime | None = None

    def can_transition(self, status: HostedServerStatus) -> bool:
        """Return True if ``status`` is reachable from the current state."""
        return status in ALLOWED_TRANSITIONS[self.status]

    def transition(
        self, status: HostedServerStatus, message: str | None = None
    ) -> HostedServer:
        """Move to ``status`` in place, enforcing the state machine.

        Raises:
            InvalidStateError: If the transition is not allowed
        """
        if not self.can_transition(status):
            raise InvalidStateError(
                self.status.value,
                status.value,
                f"Server {self.server_id} cannot go from "
                f"'{self.status.value}' to '{status.value}'",
            )
        self.status = status
        self.status_message = message
        self.last_status_change = utcnow()
        return self


class ResourceConfig(BaseModel):
    """Container resource requests and limits."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    cpu_request: str = "100m"
    cpu_limit: str = "500m"
    memory_request: str = "128Mi"
    memory_limit: str = "256Mi"


class ManifestConfig(BaseModel):
    """Inputs for rendering the Kubernetes manifests of one server."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    server_id: str
    server_name: str
    docker_image: str = Field(..., description="Image repository without tag")
    image_tag: str = "latest"
    domain: str = Field(..., description="Base domain, e.g. mcp.example.com")
    namespace: str = "mcp-servers"
    replicas: int = Field(default=1, ge=0)
    resources: ResourceConfig = Field(default_factory=ResourceConfig)
    env_vars: dict[str, str] = Field(default_factory=dict)
    secret_env_names: tuple[str, ...] = ()
    ingress_class: str = "nginx"
    cluster_issuer: str = "letsencrypt-prod"


class ManifestSet(BaseModel):
    """Rendered Deployment, Service and Ingress YAML documents."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    deployment: str
    service: str
    ingress: str


class GitOpsCommitResult(BaseModel):
    """Outcome of writing or removing a server's manifests."""

    model_config = ConfigDict(extra="forbid")

    commit_sha: str | None = None
    commit_url: str | None = None
    local_path: str | None = None


class HostingResult(BaseModel):
    """Structured outcome of a cloud deployment."""

    model_config = ConfigDict(extra="forbid")

    success: bool
    server_id: str
    endpoint_url: str
    status: HostedServerStatus
    error: str | None = None
