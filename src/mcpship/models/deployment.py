"""Pydantic models for repository and snippet deployments.

This module defines the persisted DeploymentRecord (an append-only log of
publishing attempts), its typed metadata, and the request/result values
exchanged with the orchestrator and providers.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from ulid import ULID

from mcpship.lib.errors import InvalidStateError
from mcpship.models.errors import DeploymentErrorCode, RetryAttempt, RetryStrategy


def utcnow() -> datetime:
    """Return the current UTC time."""
    return datetime.now(timezone.utc)


class TargetType(str, Enum):
    """Where an artifact is published."""

    REPO = "repo"
    SNIPPET = "snippet"
    ENTERPRISE = "enterprise"
    NONE = "none"


class DeploymentStatus(str, Enum):
    """Lifecycle of a single deployment attempt."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class DeploymentFile(BaseModel):
    """A single file of the artifact being published."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str = Field(..., min_length=1, description="Repository-relative path")
    content: str = Field(..., description="UTF-8 file content")


class McpToolInfo(BaseModel):
    """Tool exposed by a generated MCP server."""

    model_config = ConfigDict(extra="forbid")

    name: str
    description: str = ""


class DeploymentOptions(BaseModel):
    """Caller options for a repository or snippet deployment.

    Attributes:
        server_name: Overrides the artifact's server name
        description: Repository or snippet description
        is_private: Private repository / secret snippet
        include_devcontainer: Add a devcontainer definition (repo only)
    """

    model_config = ConfigDict(extra="forbid")

    server_name: str | None = None
    description: str | None = None
    is_private: bool | None = None
    include_devcontainer: bool = False


class DeploymentUrls(BaseModel):
    """Public URLs produced by a successful deployment."""

    model_config = ConfigDict(extra="forbid")

    repository: str | None = None
    clone: str | None = None
    codespace: str | None = None
    snippet: str | None = None
    snippet_raw: str | None = None


class ProviderMetadata(BaseModel):
    """Target-specific identifiers of the created external resource."""

    model_config = ConfigDict(extra="forbid")

    owner: str | None = None
    repo: str | None = None
    commit_sha: str | None = None
    snippet_id: str | None = None
    filename: str | None = None
    raw_url: str | None = None


class RetryMetadata(BaseModel):
    """Audit information about retries of a record."""

    model_config = ConfigDict(extra="forbid")

    retry_count: int = 0
    last_retry_at: datetime | None = None
    retried_from: str | None = None
    attempts: list[RetryAttempt] = Field(default_factory=list)


class RollbackMetadata(BaseModel):
    """Compensating action stamped onto a failed record."""

    model_config = ConfigDict(extra="forbid")

    performed: bool = False
    reason: str | None = None
    timestamp: datetime | None = None
    resources_deleted: list[str] = Field(default_factory=list)


class DeploymentMetadata(BaseModel):
    """Explicit replacement for a free-form metadata bag."""

    model_config = ConfigDict(extra="forbid")

    options: DeploymentOptions = Field(default_factory=DeploymentOptions)
    provider: ProviderMetadata = Field(default_factory=ProviderMetadata)
    retry: RetryMetadata = Field(default_factory=RetryMetadata)
    rollback: RollbackMetadata = Field(default_factory=RollbackMetadata)


class DeploymentRecord(BaseModel):
    """Persisted record of one deployment attempt.

    A record moves from ``pending`` to ``success`` or ``failed`` exactly once.
    Retrying creates a new record for the same source artifact.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: str(ULID()))
    source_artifact_id: str = Field(..., description="Artifact/conversation reference")
    target_type: TargetType
    status: DeploymentStatus = DeploymentStatus.PENDING
    urls: DeploymentUrls = Field(default_factory=DeploymentUrls)
    server_name: str | None = None
    local_path: str | None = Field(
        default=None, description="Build context directory of the artifact"
    )
    error_message: str | None = None
    error_code: DeploymentErrorCode | None = None
    retry_strategy: RetryStrategy | None = None
    retry_after_ms: int | None = None
    suggested_names: list[str] = Field(default_factory=list)
    metadata: DeploymentMetadata = Field(default_factory=DeploymentMetadata)
    created_at: datetime = Field(default_factory=utcnow)
    deployed_at: datetime | None = None

    def _require_pending(self, requested: DeploymentStatus) -> None:
        if self.status != DeploymentStatus.PENDING:
            raise InvalidStateError(
                self.status.value,
                requested.value,
                f"Deployment {self.id} is already {self.status.value}",
            )

    def mark_success(
        self,
        urls: DeploymentUrls,
        provider: ProviderMetadata | None = None,
    ) -> DeploymentRecord:
        """Return a copy transitioned to ``success`` with its URLs."""
        self._require_pending(DeploymentStatus.SUCCESS)
        metadata = self.metadata
        if provider is not None:
            metadata = metadata.model_copy(update={"provider": provider})
        return self.model_copy(
            update={
                "status": DeploymentStatus.SUCCESS,
                "urls": urls,
                "metadata": metadata,
                "deployed_at": utcnow(),
            }
        )

    def mark_failed(
        self,
        message: str,
        *,
        code: DeploymentErrorCode | None = None,
        strategy: RetryStrategy | None = None,
        retry_after_ms: int | None = None,
        suggested_names: list[str] | None = None,
    ) -> DeploymentRecord:
        """Return a copy transitioned to ``failed`` with error details."""
        self._require_pending(DeploymentStatus.FAILED)
        return self.model_copy(
            update={
                "status": DeploymentStatus.FAILED,
                "error_message": message,
                "error_code": code,
                "retry_strategy": strategy,
                "retry_after_ms": retry_after_ms,
                "suggested_names": list(suggested_names or []),
                "deployed_at": utcnow(),
            }
        )


class DeploymentResult(BaseModel):
    """Typed outcome returned to callers instead of raising provider errors."""

    model_config = ConfigDict(extra="forbid")

    success: bool
    deployment_id: str | None = None
    target_type: TargetType
    urls: DeploymentUrls = Field(default_factory=DeploymentUrls)
    error: str | None = None
    error_code: DeploymentErrorCode | None = None
    user_message: str | None = None
    retry_strategy: RetryStrategy | None = None
    retry_after_ms: int | None = None
    suggested_names: list[str] = Field(default_factory=list)

    @classmethod
    def from_record(
        cls, record: DeploymentRecord, user_message: str | None = None
    ) -> DeploymentResult:
        """Build a result mirroring a finished record."""
        return cls(
            success=record.status == DeploymentStatus.SUCCESS,
            deployment_id=record.id,
            target_type=record.target_type,
            urls=record.urls,
            error=record.error_message,
            error_code=record.error_code,
            user_message=user_message,
            retry_strategy=record.retry_strategy,
            retry_after_ms=record.retry_after_ms,
            suggested_names=record.suggested_names,
        )


class DeploymentFilters(BaseModel):
    """Filters and pagination for listing deployment records."""

    model_config = ConfigDict(extra="forbid")

    source_artifact_id: str | None = None
    target_type: TargetType | None = None
    status: DeploymentStatus | None = None
    page: int = 1
    limit: int = 20


class DeploymentPage(BaseModel):
    """One page of deployment records, newest first."""

    model_config = ConfigDict(extra="forbid")

    items: list[DeploymentRecord]
    total: int
    page: int
    limit: int


class RepoPublishResult(BaseModel):
    """Outcome of publishing to a new repository."""

    model_config = ConfigDict(extra="forbid")

    owner: str
    repo: str
    repository_url: str
    clone_url: str
    codespace_url: str
    commit_sha: str


class SnippetBundle(BaseModel):
    """Single-file rendition of a multi-file project."""

    model_config = ConfigDict(extra="forbid")

    filename: str
    content: str
    description: str
    dependencies: list[str] = Field(default_factory=list)


class SnippetPublishResult(BaseModel):
    """Outcome of creating or updating a snippet."""

    model_config = ConfigDict(extra="forbid")

    snippet_id: str
    snippet_url: str
    raw_url: str
    filename: str


class DeleteResult(BaseModel):
    """Outcome of deleting a deployment and its external resource."""

    model_config = ConfigDict(extra="forbid")

    success: bool
    error: str | None = None
