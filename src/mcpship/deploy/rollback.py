"""Compensating deletes for failed deployments."""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, Field

from mcpship.models.deployment import (
    DeploymentRecord,
    DeploymentStatus,
    RollbackMetadata,
    TargetType,
    utcnow,
)
from mcpship.providers.repo import RepositoryProvider, repo_reference
from mcpship.providers.snippet import SnippetProvider
from mcpship.storage.base import DeploymentStore

logger = logging.getLogger(__name__)


class RollbackResult(BaseModel):
    """Outcome of a rollback.

    Attributes:
        success: True when every external resource was deleted
        resources_deleted: Human-readable list of deleted resources
        errors: One entry per failed delete
        skipped: True when the record was already rolled back
    """

    model_config = ConfigDict(extra="forbid")

    success: bool = True
    resources_deleted: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    skipped: bool = False


def has_external_resource(record: DeploymentRecord) -> bool:
    if record.target_type == TargetType.REPO:
        return bool(record.urls.repository or record.metadata.provider.repo)
    if record.target_type == TargetType.SNIPPET:
        return bool(record.metadata.provider.snippet_id)
    return False


class RollbackService:
    """Delete the external resource of a deployment, at most once."""

    def __init__(
        self,
        store: DeploymentStore,
        repo_provider: RepositoryProvider,
        snippet_provider: SnippetProvider,
    ) -> None:
        self.store = store
        self.repo_provider = repo_provider
        self.snippet_provider = snippet_provider

    def can_rollback(self, record: DeploymentRecord) -> bool:
        """True for failed, not yet rolled back records with an external resource."""
        return (
            record.status == DeploymentStatus.FAILED
            and not record.metadata.rollback.performed
            and has_external_resource(record)
        )

    def rollback(self, deployment_id: str, reason: str) -> RollbackResult:
        """Delete the repository or snippet created by a deployment.

        The record is stamped once every delete succeeded, so a second call
        is a no-op that still reports success.
        """
        record = self.store.get(deployment_id)
        if record is None:
            return RollbackResult(success=False, errors=["Deployment not found"])

        if record.metadata.rollback.performed:
            logger.info("Deployment %s already rolled back", deployment_id)
            return RollbackResult(
                resources_deleted=list(record.metadata.rollback.resources_deleted),
                skipped=True,
            )

        logger.info("Starting rollback for deployment %s: %s", deployment_id, reason)
        result = RollbackResult()

        if record.target_type == TargetType.REPO:
            self._rollback_repository(record, result)
        elif record.target_type == TargetType.SNIPPET:
            self._rollback_snippet(record, result)

        result.success = not result.errors
        if result.success:
            metadata = record.metadata.model_copy(
                update={
                    "rollback": RollbackMetadata(
                        performed=True,
                        reason=reason,
                        timestamp=utcnow(),
                        resources_deleted=result.resources_deleted,
                    )
                }
            )
            self.store.save(record.model_copy(update={"metadata": metadata}))
        else:
            logger.error(
                "Rollback for %s incomplete: %s",
                deployment_id,
                "; ".join(result.errors),
            )
        return result

    def _rollback_repository(
        self, record: DeploymentRecord, result: RollbackResult
    ) -> None:
        reference = repo_reference(record)
        if reference is None:
            if record.urls.repository:
                result.errors.append(
                    f"Could not parse repository URL: {record.urls.repository}"
                )
            return

        owner, repo = reference
        try:
            self.repo_provider.delete(owner, repo)
        except Exception as e:  # noqa: BLE001 - reported per resource
            result.errors.append(f"Repository deletion error: {e}")
            return
        result.resources_deleted.append(f"Repository: {owner}/{repo}")
        logger.info("Rolled back repository %s/%s", owner, repo)

    def _rollback_snippet(
        self, record: DeploymentRecord, result: RollbackResult
    ) -> None:
        snippet_id = record.metadata.provider.snippet_id
        if not snippet_id:
            logger.debug("No snippet id on %s, nothing to roll back", record.id)
            return
        try:
            self.snippet_provider.delete(snippet_id)
        except Exception as e:  # noqa: BLE001 - reported per resource
            result.errors.append(f"Snippet deletion error: {e}")
            return
        result.resources_deleted.append(f"Snippet: {snippet_id}")
        logger.info("Rolled back snippet %s", snippet_id)
