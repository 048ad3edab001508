"""Shared fixtures for CLI command tests."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import TYPE_CHECKING
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from mcpship.app import Application, build_application
from mcpship.config.settings import GitOpsSettings, Settings
from mcpship.config.tiers import UserTier
from mcpship.hosting.registry import ContainerRegistryClient
from mcpship.quota import InMemoryQuotaService

if TYPE_CHECKING:
    from conftest import FakeHostingAPI

    from mcpship.artifacts import InMemoryArtifactStore
    from mcpship.storage.memory import (
        InMemoryDeploymentStore,
        InMemoryHostedServerStore,
    )


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def quiet_startup() -> Iterator[None]:
    """Keep the CLI from reconfiguring logging or reading a real .env."""
    with patch("mcpship.cli.main.setup_logging"):
        with patch("mcpship.cli.main.load_dotenv"):
            yield


@pytest.fixture
def registry() -> MagicMock:
    registry = MagicMock(spec=ContainerRegistryClient)
    registry.get_image_repository.side_effect = lambda sid: f"localhost:5000/{sid}"
    return registry


@pytest.fixture
def cli_quota() -> InMemoryQuotaService:
    return InMemoryQuotaService({"local": UserTier.PRO, "free-user": UserTier.FREE})


@pytest.fixture
def app(
    api: FakeHostingAPI,
    deployment_store: InMemoryDeploymentStore,
    server_store: InMemoryHostedServerStore,
    artifact_store: InMemoryArtifactStore,
    registry: MagicMock,
    cli_quota: InMemoryQuotaService,
    tmp_path: Path,
) -> Application:
    """Application wired to in-memory collaborators and local GitOps."""
    settings = Settings(
        propagation_delay=0,
        gitops=GitOpsSettings(local_dev=True, local_path=tmp_path / "gitops"),
    )
    application = build_application(
        settings,
        api=api,
        deployments=deployment_store,
        servers=server_store,
        artifacts=artifact_store,
        registry=registry,
        quota=cli_quota,
    )
    application.orchestrator.validator = None
    return application


@pytest.fixture
def cli_obj(app: Application) -> dict[str, Application]:
    """Click context object carrying the prepared application."""
    return {"app": app}
