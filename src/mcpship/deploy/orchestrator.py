"""Repository and snippet deployments with persisted, auditable records.

Every attempt gets a DeploymentRecord before the first external call.
Provider failures never escape ``deploy_to_*``: they are classified and
returned as a failed DeploymentResult carrying the retry recommendation.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from mcpship.artifacts import Artifact, ArtifactStore
from mcpship.deploy.classifier import ErrorClassifier
from mcpship.deploy.validation import PostDeployValidator, start_validation
from mcpship.github.base import RepositoryInfo
from mcpship.lib.errors import DeploymentError, InvalidStateError, NotFoundError
from mcpship.lib.naming import sanitize_repo_name
from mcpship.models.deployment import (
    DeleteResult,
    DeploymentFile,
    DeploymentFilters,
    DeploymentMetadata,
    DeploymentOptions,
    DeploymentPage,
    DeploymentRecord,
    DeploymentResult,
    DeploymentStatus,
    DeploymentUrls,
    ProviderMetadata,
    RetryMetadata,
    TargetType,
    utcnow,
)
from mcpship.models.errors import (
    ERROR_POLICIES,
    ERROR_USER_MESSAGES,
    DeploymentErrorCode,
    RetryAttempt,
    RetryStrategy,
)
from mcpship.providers.repo import RepositoryProvider, repo_reference
from mcpship.providers.scaffolding import Language, scaffold_repository
from mcpship.providers.snippet import SnippetProvider
from mcpship.storage.base import DeploymentStore

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
ENTERPRISE_NOT_IMPLEMENTED = (
    "Enterprise deployment is not implemented yet. "
    "Contact sales for a managed deployment."
)


def _description(artifact: Artifact, options: DeploymentOptions) -> str:
    return (
        options.description
        or artifact.description
        or f"MCP Server generated from artifact {artifact.id}"
    )


def _detect_language(files: Sequence[DeploymentFile]) -> Language:
    paths = {f.path for f in files}
    if "package.json" not in paths and any(p.endswith(".py") for p in paths):
        return "python"
    if any(p.endswith(".ts") for p in paths):
        return "typescript"
    return "javascript" if any(p.endswith(".js") for p in paths) else "typescript"


def with_scaffolding(
    files: Sequence[DeploymentFile], server_name: str, include_devcontainer: bool
) -> list[DeploymentFile]:
    """Append generated scaffolding; files from the artifact win on collisions."""
    existing = {f.path for f in files}
    generated = scaffold_repository(
        server_name,
        include_devcontainer=include_devcontainer,
        language=_detect_language(files),
    )
    return list(files) + [f for f in generated if f.path not in existing]


class DeploymentOrchestrator:
    """Coordinates repository and snippet publishing.

    Example:
        >>> orchestrator = DeploymentOrchestrator(store, artifacts, repos, snippets)
        >>> result = orchestrator.deploy_to_snippet("01J...", DeploymentOptions())
        >>> result.success, result.urls.snippet
    """

    def __init__(
        self,
        store: DeploymentStore,
        artifacts: ArtifactStore,
        repo_provider: RepositoryProvider,
        snippet_provider: SnippetProvider,
        classifier: ErrorClassifier | None = None,
        validator: PostDeployValidator | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            store: Deployment record persistence
            artifacts: Source of artifacts and their files
            repo_provider: Repository publisher
            snippet_provider: Snippet publisher
            classifier: Error classifier (default: wall clock)
            validator: Post-deploy validator; validation is skipped when None
        """
        self.store = store
        self.artifacts = artifacts
        self.repo_provider = repo_provider
        self.snippet_provider = snippet_provider
        self.classifier = classifier or ErrorClassifier()
        self.validator = validator

    # -- deploy --------------------------------------------------------------

    def deploy_to_repo(
        self,
        artifact_id: str,
        options: DeploymentOptions | None = None,
        *,
        retried_from: str | None = None,
    ) -> DeploymentResult:
        """Publish an artifact to a new repository with one atomic commit.

        Raises:
            NotFoundError: If the artifact does not exist
        """
        options = options or DeploymentOptions()
        artifact = self._require_artifact(artifact_id)
        record = self._start_record(artifact, TargetType.REPO, options, retried_from)
        server_name = record.server_name or artifact.server_name

        files = self.artifacts.get_files(artifact_id)
        if not files:
            return self._fail_no_files(record)
        files = with_scaffolding(files, server_name, options.include_devcontainer)

        def on_created(repo: RepositoryInfo) -> None:
            # Record the repository before any file is pushed
            nonlocal record
            provider = ProviderMetadata(owner=repo.owner, repo=repo.name)
            urls = DeploymentUrls(repository=repo.html_url, clone=repo.clone_url)
            metadata = record.metadata.model_copy(update={"provider": provider})
            record = record.model_copy(update={"urls": urls, "metadata": metadata})
            self.store.save(record)

        is_private = True if options.is_private is None else options.is_private
        logger.info(
            "Deploying artifact %s to repository %r (%d files, private=%s)",
            artifact_id,
            server_name,
            len(files),
            is_private,
        )
        try:
            published = self.repo_provider.deploy(
                server_name,
                files,
                _description(artifact, options),
                is_private=is_private,
                on_created=on_created,
            )
        except Exception as e:  # noqa: BLE001 - classified into the result
            return self._fail(record, e, server_name)

        record = record.mark_success(
            DeploymentUrls(
                repository=published.repository_url,
                clone=published.clone_url,
                codespace=published.codespace_url,
            ),
            ProviderMetadata(
                owner=published.owner,
                repo=published.repo,
                commit_sha=published.commit_sha,
            ),
        )
        return self._succeed(record)

    def deploy_to_snippet(
        self,
        artifact_id: str,
        options: DeploymentOptions | None = None,
        *,
        retried_from: str | None = None,
    ) -> DeploymentResult:
        """Publish an artifact as a single-file snippet.

        Raises:
            NotFoundError: If the artifact does not exist
        """
        options = options or DeploymentOptions()
        artifact = self._require_artifact(artifact_id)
        record = self._start_record(artifact, TargetType.SNIPPET, options, retried_from)
        server_name = record.server_name or artifact.server_name

        files = self.artifacts.get_files(artifact_id)
        if not files:
            return self._fail_no_files(record)

        is_public = options.is_private is False
        logger.info(
            "Deploying artifact %s to snippet %r (%d files, public=%s)",
            artifact_id,
            server_name,
            len(files),
            is_public,
        )
        try:
            published = self.snippet_provider.deploy(
                server_name,
                files,
                _description(artifact, options),
                tools=artifact.tools,
                is_public=is_public,
            )
        except Exception as e:  # noqa: BLE001 - classified into the result
            return self._fail(record, e, server_name)

        record = record.mark_success(
            DeploymentUrls(
                snippet=published.snippet_url, snippet_raw=published.raw_url
            ),
            ProviderMetadata(
                snippet_id=published.snippet_id,
                filename=published.filename,
                raw_url=published.raw_url,
            ),
        )
        return self._succeed(record)

    def deploy_to_enterprise(
        self, artifact_id: str, options: DeploymentOptions | None = None
    ) -> DeploymentResult:
        """Placeholder target; always reports that it is not implemented."""
        logger.warning("Enterprise deployment requested for %s", artifact_id)
        return DeploymentResult(
            success=False,
            target_type=TargetType.ENTERPRISE,
            error=ENTERPRISE_NOT_IMPLEMENTED,
            user_message=ENTERPRISE_NOT_IMPLEMENTED,
        )

    # -- retry ---------------------------------------------------------------

    def retry_deployment(
        self,
        deployment_id: str,
        new_name: str | None = None,
        force_retry: bool = False,
    ) -> DeploymentResult:
        """Deploy a failed record again as a new record.

        Raises:
            NotFoundError: If the record does not exist or its artifact is gone
            InvalidStateError: If the record has not failed
            DeploymentError: If the record's target cannot be retried
        """
        record = self.store.get(deployment_id)
        if record is None:
            raise NotFoundError("Deployment", deployment_id)
        if record.status != DeploymentStatus.FAILED:
            raise InvalidStateError(
                record.status.value, "retry", "Can only retry failed deployments"
            )
        if record.target_type not in (TargetType.REPO, TargetType.SNIPPET):
            raise DeploymentError(
                "retry", f"Unknown deployment type: {record.target_type.value}"
            )

        code = record.error_code or DeploymentErrorCode.UNKNOWN_ERROR
        strategy = ERROR_POLICIES[code].strategy
        if strategy == RetryStrategy.NONE and not force_retry:
            logger.info(
                "Refusing retry of %s: %s is not retryable without force",
                deployment_id,
                code.value,
            )
            return DeploymentResult(
                success=False,
                deployment_id=record.id,
                target_type=record.target_type,
                error=(
                    f"Error {code.value} is not automatically retryable. "
                    "Use force_retry to retry anyway."
                ),
                error_code=code,
                user_message=ERROR_USER_MESSAGES[code],
                retry_strategy=strategy,
                suggested_names=record.suggested_names,
            )

        self._require_artifact(record.source_artifact_id)
        options = record.metadata.options
        if new_name:
            options = options.model_copy(update={"server_name": new_name})

        retry = record.metadata.retry
        attempt = RetryAttempt(
            attempt_number=retry.retry_count + 1,
            timestamp=utcnow(),
            error_code=code,
            error_message=record.error_message or "",
        )
        bumped = retry.model_copy(
            update={
                "retry_count": retry.retry_count + 1,
                "last_retry_at": attempt.timestamp,
                "attempts": [*retry.attempts, attempt],
            }
        )
        metadata = record.metadata.model_copy(update={"retry": bumped})
        self.store.save(record.model_copy(update={"metadata": metadata}))
        logger.info(
            "Retrying deployment %s (attempt %d, force=%s)",
            deployment_id,
            bumped.retry_count,
            force_retry,
        )

        if record.target_type == TargetType.REPO:
            return self.deploy_to_repo(
                record.source_artifact_id, options, retried_from=record.id
            )
        return self.deploy_to_snippet(
            record.source_artifact_id, options, retried_from=record.id
        )

    # -- read accessors ------------------------------------------------------

    def list_deployments(
        self, filters: DeploymentFilters | None = None
    ) -> DeploymentPage:
        """Page through records newest first; limit is clamped to 1..100."""
        filters = filters or DeploymentFilters()
        filters = filters.model_copy(
            update={
                "page": max(1, filters.page),
                "limit": min(max(1, filters.limit), MAX_PAGE_SIZE),
            }
        )
        return self.store.query(filters)

    def get_deployment(self, deployment_id: str) -> DeploymentRecord | None:
        return self.store.get(deployment_id)

    def get_deployment_status(self, artifact_id: str) -> list[DeploymentRecord]:
        """Every attempt for an artifact, newest first."""
        return self.store.for_artifact(artifact_id)

    def get_latest_deployment(self, artifact_id: str) -> DeploymentRecord | None:
        return self.store.latest_for_artifact(artifact_id)

    # -- update / delete -----------------------------------------------------

    def update_snippet_deployment(
        self, deployment_id: str, description: str | None = None
    ) -> DeploymentResult:
        """Re-bundle the artifact's current files into the existing snippet.

        Raises:
            NotFoundError: If the record does not exist
        """
        record = self._require_record(deployment_id)
        snippet_id = record.metadata.provider.snippet_id
        if record.target_type != TargetType.SNIPPET or not snippet_id:
            return DeploymentResult(
                success=False,
                deployment_id=record.id,
                target_type=record.target_type,
                error="Deployment has no snippet to update",
            )

        artifact = self._require_artifact(record.source_artifact_id)
        files = self.artifacts.get_files(artifact.id)
        if not files:
            code = DeploymentErrorCode.NO_FILES_TO_DEPLOY
            return DeploymentResult(
                success=False,
                deployment_id=record.id,
                target_type=record.target_type,
                error=f"No files found for artifact {artifact.id}",
                error_code=code,
                user_message=ERROR_USER_MESSAGES[code],
                retry_strategy=ERROR_POLICIES[code].strategy,
            )

        options = record.metadata.options
        if description is not None:
            options = options.model_copy(update={"description": description})
        server_name = record.server_name or artifact.server_name
        try:
            published = self.snippet_provider.update(
                snippet_id,
                server_name,
                files,
                _description(artifact, options),
                tools=artifact.tools,
            )
        except Exception as e:  # noqa: BLE001 - classified into the result
            classified = self.classifier.classify(e)
            logger.error(
                "Snippet update for %s failed: %s", deployment_id, classified.message
            )
            return DeploymentResult(
                success=False,
                deployment_id=record.id,
                target_type=record.target_type,
                urls=record.urls,
                error=classified.message,
                error_code=classified.code,
                user_message=classified.user_message,
                retry_strategy=classified.retry_strategy,
                retry_after_ms=classified.retry_after_ms,
            )

        provider = record.metadata.provider.model_copy(
            update={"filename": published.filename, "raw_url": published.raw_url}
        )
        record = record.model_copy(
            update={
                "urls": record.urls.model_copy(
                    update={
                        "snippet": published.snippet_url,
                        "snippet_raw": published.raw_url,
                    }
                ),
                "metadata": record.metadata.model_copy(
                    update={"options": options, "provider": provider}
                ),
            }
        )
        self.store.save(record)
        logger.info("Updated snippet deployment %s", deployment_id)
        return DeploymentResult.from_record(record)

    def delete_snippet_deployment(self, deployment_id: str) -> DeleteResult:
        """Delete the snippet, then the record.

        Raises:
            NotFoundError: If the record does not exist
        """
        record = self._require_record(deployment_id)
        snippet_id = record.metadata.provider.snippet_id
        if snippet_id:
            try:
                self.snippet_provider.delete(snippet_id)
            except Exception as e:  # noqa: BLE001 - reported in the result
                logger.error("Failed to delete snippet %s: %s", snippet_id, e)
                return DeleteResult(success=False, error=str(e))
        else:
            logger.info("No snippet on %s, deleting record only", deployment_id)
        self.store.delete(deployment_id)
        return DeleteResult(success=True)

    def delete_repo_deployment(self, deployment_id: str) -> DeleteResult:
        """Delete the repository, then the record.

        Raises:
            NotFoundError: If the record does not exist
        """
        record = self._require_record(deployment_id)
        reference = repo_reference(record)
        if reference is not None:
            owner, repo = reference
            try:
                self.repo_provider.delete(owner, repo)
            except Exception as e:  # noqa: BLE001 - reported in the result
                logger.error("Failed to delete repository %s/%s: %s", owner, repo, e)
                return DeleteResult(success=False, error=str(e))
        else:
            logger.info(
                "Deployment %s has no repository reference, deleting record only",
                deployment_id,
            )
        self.store.delete(deployment_id)
        return DeleteResult(success=True)

    # -- internals -----------------------------------------------------------

    def _require_artifact(self, artifact_id: str) -> Artifact:
        artifact = self.artifacts.get_artifact(artifact_id)
        if artifact is None:
            raise NotFoundError("Artifact", artifact_id)
        return artifact

    def _require_record(self, deployment_id: str) -> DeploymentRecord:
        record = self.store.get(deployment_id)
        if record is None:
            raise NotFoundError("Deployment", deployment_id)
        return record

    def _start_record(
        self,
        artifact: Artifact,
        target_type: TargetType,
        options: DeploymentOptions,
        retried_from: str | None,
    ) -> DeploymentRecord:
        record = DeploymentRecord(
            source_artifact_id=artifact.id,
            target_type=target_type,
            server_name=options.server_name or artifact.server_name,
            local_path=artifact.local_path,
            metadata=DeploymentMetadata(
                options=options,
                retry=RetryMetadata(retried_from=retried_from),
            ),
        )
        self.store.save(record)
        logger.debug("Created pending %s deployment %s", target_type.value, record.id)
        return record

    def _fail_no_files(self, record: DeploymentRecord) -> DeploymentResult:
        code = DeploymentErrorCode.NO_FILES_TO_DEPLOY
        record = record.mark_failed(
            f"No files found for artifact {record.source_artifact_id}",
            code=code,
            strategy=ERROR_POLICIES[code].strategy,
        )
        self.store.save(record)
        logger.warning("Deployment %s has no files to deploy", record.id)
        return DeploymentResult.from_record(record, ERROR_USER_MESSAGES[code])

    def _fail(
        self, record: DeploymentRecord, error: Exception, server_name: str
    ) -> DeploymentResult:
        classified = self.classifier.classify(error)
        suggested: list[str] = []
        if classified.code == DeploymentErrorCode.REPOSITORY_NAME_CONFLICT:
            suggested = self.classifier.generate_alternative_names(
                sanitize_repo_name(server_name)
            )

        failed = record.mark_failed(
            classified.message,
            code=classified.code,
            strategy=classified.retry_strategy,
            retry_after_ms=classified.retry_after_ms,
            suggested_names=suggested,
        )
        self.store.save(failed)
        logger.error(
            "Deployment %s failed: %s - %s",
            record.id,
            classified.code.value,
            classified.message,
        )
        return DeploymentResult.from_record(failed, classified.user_message)

    def _succeed(self, record: DeploymentRecord) -> DeploymentResult:
        self.store.save(record)
        logger.info("Deployment %s succeeded", record.id)
        if self.validator is not None:
            start_validation(self.validator, record)
        return DeploymentResult.from_record(record)
