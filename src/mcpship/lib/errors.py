"""Custom exception hierarchy for mcpship publishing and hosting operations."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mcpship.models.errors import DeploymentErrorCode


class McpShipError(Exception):
    """Base exception for all mcpship errors.

    All mcpship-specific exceptions inherit from this class, enabling
    centralized exception handling in the CLI and in callers embedding
    the orchestrators.
    """

    pass


class ConfigError(McpShipError):
    """Exception raised for configuration errors.

    Attributes:
        field: The configuration field that caused the error
        message: Human-readable error message describing the issue
    """

    def __init__(self, field: str, message: str) -> None:
        """Initialize ConfigError with field and message.

        Args:
            field: Configuration field name where error occurred
            message: Descriptive error message
        """
        self.field = field
        self.message = message
        super().__init__(f"Configuration error in '{field}': {message}")


class DeploymentError(McpShipError):
    """Exception raised when a deployment operation cannot proceed.

    Attributes:
        operation: Operation that failed (deploy, retry, delete, build, ...)
        message: Human-readable error message
    """

    def __init__(self, operation: str, message: str) -> None:
        """Create a deployment error for an operation."""
        self.operation = operation
        self.message = message
        super().__init__(f"{operation} failed: {message}")


class NotFoundError(McpShipError):
    """Exception raised when a referenced record or artifact does not exist."""

    def __init__(self, resource: str, identifier: str) -> None:
        """Create a not-found error for a resource identifier."""
        self.resource = resource
        self.identifier = identifier
        self.message = f"{resource} not found: {identifier}"
        super().__init__(self.message)


class InvalidStateError(McpShipError):
    """Exception raised for a state transition that is not allowed.

    Attributes:
        current: The state the entity is in
        requested: The state that was requested
        message: Human-readable error message
    """

    def __init__(
        self, current: str, requested: str, message: str | None = None
    ) -> None:
        """Create an invalid state transition error."""
        self.current = current
        self.requested = requested
        self.message = message or (
            f"Cannot transition from '{current}' to '{requested}'"
        )
        super().__init__(self.message)


class DeploymentPermissionError(McpShipError):
    """Exception raised when a user's tier or quota denies a deployment.

    Carries the data a client needs to render an upgrade prompt.

    Attributes:
        code: LIMIT_EXCEEDED, TIER_RESTRICTION or USER_NOT_FOUND
        message: Human-readable error message
        current_usage: Deployments used in the current period
        limit: Deployment limit for the current period
        current_tier: The user's tier
        required_tier: Lowest tier that allows the requested target
        upgrade_url: Where the user can upgrade
    """

    def __init__(
        self,
        code: str,
        message: str,
        *,
        upgrade_url: str,
        current_usage: int | None = None,
        limit: int | None = None,
        current_tier: str | None = None,
        required_tier: str | None = None,
    ) -> None:
        """Create a permission error with tier/quota context."""
        self.code = code
        self.message = message
        self.upgrade_url = upgrade_url
        self.current_usage = current_usage
        self.limit = limit
        self.current_tier = current_tier
        self.required_tier = required_tier
        super().__init__(f"{code}: {message}")


class HostingAPIError(McpShipError):
    """Error returned by the git-hosting API.

    Attributes:
        status_code: HTTP status code, or None for transport failures
        message: Error message reported by the API or transport
        headers: Lower-cased response headers (rate limit hints)
        url: Request URL
    """

    def __init__(
        self,
        status_code: int | None,
        message: str,
        headers: Mapping[str, str] | None = None,
        url: str | None = None,
    ) -> None:
        """Create a hosting API error."""
        self.status_code = status_code
        self.message = message
        self.headers = {k.lower(): v for k, v in (headers or {}).items()}
        self.url = url
        prefix = f"HTTP {status_code}" if status_code is not None else "Transport error"
        super().__init__(f"{prefix}: {message}")


class PublishError(McpShipError):
    """Publishing failure that already knows its deployment error code."""

    def __init__(self, code: DeploymentErrorCode, message: str) -> None:
        """Create a publish error tagged with an error code."""
        self.code = code
        self.message = message
        super().__init__(message)


class NameConflictError(PublishError):
    """Raised when no free repository name could be found."""

    def __init__(self, name: str, attempts: int) -> None:
        """Create a name conflict error for the last attempted name."""
        from mcpship.models.errors import DeploymentErrorCode

        self.name = name
        self.attempts = attempts
        super().__init__(
            DeploymentErrorCode.REPOSITORY_NAME_CONFLICT,
            f"Failed to find unique repository name after {attempts} attempts "
            f"(last tried '{name}'): name already exists",
        )


class RegistryError(McpShipError):
    """Exception raised when building, pushing or deleting an image fails."""

    def __init__(self, operation: str, message: str) -> None:
        """Create a registry error for an image operation."""
        self.operation = operation
        self.message = message
        super().__init__(f"Image {operation} failed: {message}")


class DockerNotAvailableError(RegistryError):
    """Raised when the Docker daemon cannot be reached."""

    def __init__(self, operation: str = "init") -> None:
        """Create an error explaining how to make Docker available."""
        super().__init__(
            operation,
            "Docker is not available. Ensure the Docker daemon is running "
            "and DOCKER_HOST is set correctly.",
        )


class GitOpsError(McpShipError):
    """Exception raised when manifests cannot be committed or removed."""

    def __init__(self, server_id: str, message: str) -> None:
        """Create a GitOps error for a server."""
        self.server_id = server_id
        self.message = message
        super().__init__(f"GitOps operation for '{server_id}' failed: {message}")
