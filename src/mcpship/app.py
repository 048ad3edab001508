"""Composition root: wire stores, providers and orchestrators from Settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from mcpship.artifacts import ArtifactStore, FilesystemArtifactStore
from mcpship.config.settings import Settings
from mcpship.deploy.classifier import ErrorClassifier
from mcpship.deploy.orchestrator import DeploymentOrchestrator
from mcpship.deploy.rollback import RollbackService
from mcpship.deploy.router import DeploymentRouter
from mcpship.deploy.validation import HostingResourceValidator
from mcpship.github.base import HostingAPI
from mcpship.github.client import GitHubClient
from mcpship.hosting.gitops import GitOpsCommitter
from mcpship.hosting.manifests import ManifestGenerator
from mcpship.hosting.orchestrator import HostingOrchestrator
from mcpship.hosting.registry import ContainerRegistryClient
from mcpship.providers.repo import RepositoryProvider
from mcpship.providers.snippet import SnippetProvider
from mcpship.quota import QuotaService, StoreBackedQuotaService
from mcpship.storage.base import DeploymentStore, HostedServerStore
from mcpship.storage.json_file import (
    JsonFileDeploymentStore,
    JsonFileHostedServerStore,
    JsonFileUsageStore,
)

logger = logging.getLogger(__name__)


@dataclass
class Application:
    """Every long-lived service, built once per process."""

    settings: Settings
    api: HostingAPI
    deployments: DeploymentStore
    servers: HostedServerStore
    artifacts: ArtifactStore
    orchestrator: DeploymentOrchestrator
    router: DeploymentRouter
    rollback: RollbackService
    hosting: HostingOrchestrator
    quota: QuotaService


def build_application(
    settings: Settings,
    *,
    api: HostingAPI | None = None,
    deployments: DeploymentStore | None = None,
    servers: HostedServerStore | None = None,
    artifacts: ArtifactStore | None = None,
    registry: ContainerRegistryClient | None = None,
    quota: QuotaService | None = None,
) -> Application:
    """Build the service graph; any collaborator can be replaced.

    Defaults: GitHub REST client, JSON file stores under
    ``settings.storage.state_path``, filesystem artifacts under
    ``settings.storage.artifacts_dir`` and a quota counted in the state file.
    """
    api = api or GitHubClient(
        token=settings.github.token,
        base_url=settings.github.api_url,
        timeout=settings.github.timeout,
    )
    deployments = deployments or JsonFileDeploymentStore(settings.storage.state_path)
    servers = servers or JsonFileHostedServerStore(settings.storage.state_path)
    artifacts = artifacts or FilesystemArtifactStore(settings.storage.artifacts_dir)

    repo_provider = RepositoryProvider(
        api,
        propagation_delay=settings.propagation_delay,
        web_url=settings.github.web_url,
    )
    snippet_provider = SnippetProvider(api)

    orchestrator = DeploymentOrchestrator(
        deployments,
        artifacts,
        repo_provider,
        snippet_provider,
        classifier=ErrorClassifier(),
        validator=HostingResourceValidator(api),
    )
    quota = quota or StoreBackedQuotaService(
        JsonFileUsageStore(settings.storage.state_path), settings.user_tier
    )

    hosting = HostingOrchestrator(
        servers,
        deployments,
        registry or ContainerRegistryClient(settings.registry, settings.github),
        GitOpsCommitter(settings.gitops, api),
        settings=settings.hosting,
        manifests=ManifestGenerator(),
        artifacts=artifacts,
    )
    logger.debug(
        "Built application (state=%s, artifacts=%s)",
        settings.storage.state_path,
        settings.storage.artifacts_dir,
    )
    return Application(
        settings=settings,
        api=api,
        deployments=deployments,
        servers=servers,
        artifacts=artifacts,
        orchestrator=orchestrator,
        router=DeploymentRouter(quota, orchestrator),
        rollback=RollbackService(deployments, repo_provider, snippet_provider),
        hosting=hosting,
        quota=quota,
    )
