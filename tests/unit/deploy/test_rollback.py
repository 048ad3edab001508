"""Unit tests for compensating rollback of failed deployments."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from mcpship.deploy.rollback import RollbackService
from mcpship.lib.errors import HostingAPIError
from mcpship.models.deployment import (
    DeploymentRecord,
    DeploymentUrls,
    ProviderMetadata,
    TargetType,
)

if TYPE_CHECKING:
    from conftest import FakeHostingAPI

    from mcpship.providers.repo import RepositoryProvider
    from mcpship.providers.snippet import SnippetProvider
    from mcpship.storage.memory import InMemoryDeploymentStore


@pytest.fixture
def rollback_service(
    deployment_store: InMemoryDeploymentStore,
    repo_provider: RepositoryProvider,
    snippet_provider: SnippetProvider,
) -> RollbackService:
    return RollbackService(deployment_store, repo_provider, snippet_provider)


def _failed_repo_record(
    store: InMemoryDeploymentStore, repository: str | None
) -> DeploymentRecord:
    record = DeploymentRecord(
        source_artifact_id="art-weather",
        target_type=TargetType.REPO,
        urls=DeploymentUrls(repository=repository),
    ).mark_failed("push failed")
    store.save(record)
    return record


def _failed_snippet_record(
    store: InMemoryDeploymentStore, snippet_id: str | None
) -> DeploymentRecord:
    record = DeploymentRecord(
        source_artifact_id="art-weather", target_type=TargetType.SNIPPET
    ).mark_failed("upload failed")
    record.metadata.provider = ProviderMetadata(snippet_id=snippet_id)
    store.save(record)
    return record


class TestRollback:
    """Tests for RollbackService.rollback."""

    def test_deletes_repository_and_stamps_record(
        self,
        api: FakeHostingAPI,
        deployment_store: InMemoryDeploymentStore,
        rollback_service: RollbackService,
    ) -> None:
        api.add_repository("octo", "weather", {})
        record = _failed_repo_record(
            deployment_store, "https://github.com/octo/weather"
        )

        result = rollback_service.rollback(record.id, "push failed")

        assert result.success
        assert result.resources_deleted == ["Repository: octo/weather"]
        assert ("octo", "weather") not in api.repos
        stamped = deployment_store.get(record.id)
        assert stamped is not None
        assert stamped.metadata.rollback.performed is True
        assert stamped.metadata.rollback.reason == "push failed"
        assert stamped.metadata.rollback.timestamp is not None

    def test_second_rollback_is_a_no_op(
        self,
        api: FakeHostingAPI,
        deployment_store: InMemoryDeploymentStore,
        rollback_service: RollbackService,
    ) -> None:
        """Rolling back twice issues no further deletes and still succeeds."""
        api.add_repository("octo", "weather", {})
        record = _failed_repo_record(
            deployment_store, "https://github.com/octo/weather"
        )
        rollback_service.rollback(record.id, "first")
        deletes_before = api.call_counts()["delete_repository"]

        result = rollback_service.rollback(record.id, "second")

        assert result.success
        assert result.skipped
        assert api.call_counts()["delete_repository"] == deletes_before
        stamped = deployment_store.get(record.id)
        assert stamped is not None
        assert stamped.metadata.rollback.reason == "first"

    def test_deletes_snippet(
        self,
        api: FakeHostingAPI,
        deployment_store: InMemoryDeploymentStore,
        rollback_service: RollbackService,
    ) -> None:
        snippet = api.create_snippet({"w.ts": "x"})
        record = _failed_snippet_record(deployment_store, snippet.id)

        result = rollback_service.rollback(record.id, "upload failed")

        assert result.success
        assert result.resources_deleted == [f"Snippet: {snippet.id}"]
        assert api.snippets == {}

    def test_failed_delete_is_reported_and_not_stamped(
        self,
        api: FakeHostingAPI,
        deployment_store: InMemoryDeploymentStore,
        rollback_service: RollbackService,
    ) -> None:
        record = _failed_repo_record(
            deployment_store, "https://github.com/octo/weather"
        )

        result = rollback_service.rollback(record.id, "push failed")

        assert result.success is False
        assert result.errors[0].startswith("Repository deletion error:")
        stamped = deployment_store.get(record.id)
        assert stamped is not None
        assert stamped.metadata.rollback.performed is False

    def test_unparseable_url(
        self,
        deployment_store: InMemoryDeploymentStore,
        rollback_service: RollbackService,
    ) -> None:
        record = _failed_repo_record(deployment_store, "not-a-url")

        result = rollback_service.rollback(record.id, "push failed")

        assert result.errors == ["Could not parse repository URL: not-a-url"]

    def test_nothing_to_delete(
        self,
        api: FakeHostingAPI,
        deployment_store: InMemoryDeploymentStore,
        rollback_service: RollbackService,
    ) -> None:
        record = _failed_snippet_record(deployment_store, None)

        result = rollback_service.rollback(record.id, "no files")

        assert result.success
        assert result.resources_deleted == []
        assert api.calls == []

    def test_missing_record(self, rollback_service: RollbackService) -> None:
        result = rollback_service.rollback("missing", "reason")

        assert result.success is False
        assert result.errors == ["Deployment not found"]

    def test_rate_limited_delete_is_retried(
        self,
        api: FakeHostingAPI,
        deployment_store: InMemoryDeploymentStore,
        rollback_service: RollbackService,
    ) -> None:
        api.add_repository("octo", "weather", {})
        api.fail_next("delete_repository", HostingAPIError(429, "slow down"))
        record = _failed_repo_record(
            deployment_store, "https://github.com/octo/weather"
        )

        result = rollback_service.rollback(record.id, "push failed")

        assert result.success


class TestCanRollback:
    """Tests for can_rollback."""

    def test_failed_record_with_resource(
        self,
        deployment_store: InMemoryDeploymentStore,
        rollback_service: RollbackService,
    ) -> None:
        record = _failed_repo_record(
            deployment_store, "https://github.com/octo/weather"
        )

        assert rollback_service.can_rollback(record)

    def test_record_without_resource(
        self,
        deployment_store: InMemoryDeploymentStore,
        rollback_service: RollbackService,
    ) -> None:
        record = _failed_repo_record(deployment_store, None)

        assert not rollback_service.can_rollback(record)

    def test_pending_record(self, rollback_service: RollbackService) -> None:
        record = DeploymentRecord(
            source_artifact_id="a",
            target_type=TargetType.REPO,
            urls=DeploymentUrls(repository="https://github.com/octo/weather"),
        )

        assert not rollback_service.can_rollback(record)
