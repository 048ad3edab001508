"""Unit tests for the application composition root."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

from mcpship.app import build_application
from mcpship.artifacts import FilesystemArtifactStore
from mcpship.config.settings import Settings, StorageSettings
from mcpship.config.tiers import UserTier
from mcpship.deploy.validation import HostingResourceValidator
from mcpship.github.client import GitHubClient
from mcpship.quota import StoreBackedQuotaService
from mcpship.storage.json_file import (
    JsonFileDeploymentStore,
    JsonFileHostedServerStore,
    JsonFileUsageStore,
)


class TestBuildApplication:
    """Tests for build_application."""

    def test_defaults(self, tmp_path: Path) -> None:
        settings = Settings(
            storage=StorageSettings(
                artifacts_dir=tmp_path / "artifacts",
                state_path=tmp_path / "state.json",
            ),
            user_tier=UserTier.PRO,
        )

        app = build_application(settings, registry=MagicMock())

        assert isinstance(app.api, GitHubClient)
        assert isinstance(app.deployments, JsonFileDeploymentStore)
        assert isinstance(app.servers, JsonFileHostedServerStore)
        assert isinstance(app.artifacts, FilesystemArtifactStore)
        assert isinstance(app.quota, StoreBackedQuotaService)
        assert app.quota.get_tier("anyone") == UserTier.PRO
        assert isinstance(app.quota.usage, JsonFileUsageStore)
        assert app.quota.usage.state_path == tmp_path / "state.json"
        assert isinstance(app.orchestrator.validator, HostingResourceValidator)
        assert app.router.orchestrator is app.orchestrator

    def test_collaborators_are_shared(self, tmp_path: Path) -> None:
        settings = Settings(
            storage=StorageSettings(state_path=tmp_path / "state.json")
        )

        app = build_application(settings, registry=MagicMock())

        assert app.hosting.deployments is app.deployments
        assert app.rollback.store is app.deployments
        assert app.hosting.gitops.api is app.api
