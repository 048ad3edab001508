"""Unit tests for the tier and quota gate."""

from __future__ import annotations

from typing import TYPE_CHECKING, cast
from unittest.mock import MagicMock

import pytest

from mcpship.config.tiers import UserTier
from mcpship.deploy.orchestrator import DeploymentOrchestrator
from mcpship.deploy.router import (
    LIMIT_EXCEEDED,
    TIER_RESTRICTION,
    UPGRADE_URL,
    USER_NOT_FOUND,
    DeploymentRouter,
)
from mcpship.lib.errors import DeploymentPermissionError
from mcpship.models.deployment import (
    DeploymentOptions,
    DeploymentResult,
    TargetType,
)
from mcpship.quota import InMemoryQuotaService

if TYPE_CHECKING:
    from conftest import FakeHostingAPI


@pytest.fixture
def quota() -> InMemoryQuotaService:
    return InMemoryQuotaService(
        {
            "free-user": UserTier.FREE,
            "pro-user": UserTier.PRO,
            "ent-user": UserTier.ENTERPRISE,
        }
    )


@pytest.fixture
def router(
    quota: InMemoryQuotaService, orchestrator: DeploymentOrchestrator
) -> DeploymentRouter:
    return DeploymentRouter(quota, orchestrator)


@pytest.fixture
def mock_router(quota: InMemoryQuotaService) -> DeploymentRouter:
    """Router whose orchestrator is a mock returning success."""
    orchestrator = MagicMock(spec=DeploymentOrchestrator)
    success = DeploymentResult(success=True, target_type=TargetType.SNIPPET)
    orchestrator.deploy_to_snippet.return_value = success
    orchestrator.deploy_to_repo.return_value = success.model_copy(
        update={"target_type": TargetType.REPO}
    )
    return DeploymentRouter(quota, orchestrator)


class TestRoute:
    """Tests for DeploymentRouter.route."""

    def test_free_user_defaults_to_public_snippet(
        self, api: FakeHostingAPI, router: DeploymentRouter
    ) -> None:
        result = router.route("free-user", "art-weather")

        assert result.success
        assert result.target_type == TargetType.SNIPPET
        assert [s.public for s in api.snippets.values()] == [True]

    def test_pro_user_defaults_to_private_repo(
        self, api: FakeHostingAPI, router: DeploymentRouter
    ) -> None:
        result = router.route("pro-user", "art-weather")

        assert result.target_type == TargetType.REPO
        assert api.repos[("octo", "weather-server")].private is True

    def test_free_user_private_request_is_overridden(
        self, mock_router: DeploymentRouter
    ) -> None:
        mock_router.route(
            "free-user", "art-weather", DeploymentOptions(is_private=True)
        )

        orchestrator = cast(MagicMock, mock_router.orchestrator)
        options = orchestrator.deploy_to_snippet.call_args.args[1]
        assert options.is_private is False

    def test_free_user_cannot_deploy_repo(
        self, api: FakeHostingAPI, router: DeploymentRouter
    ) -> None:
        with pytest.raises(DeploymentPermissionError) as exc_info:
            router.route("free-user", "art-weather", target_type=TargetType.REPO)

        error = exc_info.value
        assert error.code == TIER_RESTRICTION
        assert error.message == (
            "Private Repository deployment requires Pro tier or higher"
        )
        assert error.current_tier == "free"
        assert error.required_tier == "pro"
        assert error.upgrade_url == UPGRADE_URL
        assert api.calls == []

    def test_enterprise_target_requires_enterprise_tier(
        self, router: DeploymentRouter
    ) -> None:
        with pytest.raises(DeploymentPermissionError) as exc_info:
            router.route("pro-user", "art-weather", target_type=TargetType.ENTERPRISE)

        assert exc_info.value.required_tier == "enterprise"

    def test_enterprise_user_reaches_placeholder(
        self, router: DeploymentRouter
    ) -> None:
        result = router.route(
            "ent-user", "art-weather", target_type=TargetType.ENTERPRISE
        )

        assert result.success is False
        assert result.target_type == TargetType.ENTERPRISE

    def test_unknown_user(self, router: DeploymentRouter) -> None:
        with pytest.raises(DeploymentPermissionError) as exc_info:
            router.route("stranger", "art-weather")

        assert exc_info.value.code == USER_NOT_FOUND

    def test_quota_exhausted(
        self, quota: InMemoryQuotaService, mock_router: DeploymentRouter
    ) -> None:
        for _ in range(5):
            mock_router.route("free-user", "art-weather")

        with pytest.raises(DeploymentPermissionError) as exc_info:
            mock_router.route("free-user", "art-weather")

        error = exc_info.value
        assert error.code == LIMIT_EXCEEDED
        assert error.current_usage == 5
        assert error.limit == 5
        assert quota.usage("free-user") == 5

    def test_usage_counted_only_on_success(
        self, quota: InMemoryQuotaService, router: DeploymentRouter
    ) -> None:
        router.route("free-user", "art-empty")
        router.route("free-user", "art-weather")

        assert quota.usage("free-user") == 1


class TestCheckDeploymentPermission:
    """Tests for the read-only permission check."""

    def test_allowed(self, router: DeploymentRouter) -> None:
        check = router.check_deployment_permission("pro-user", TargetType.REPO)

        assert check.allowed is True
        assert check.error is None

    def test_denied_does_not_raise(self, router: DeploymentRouter) -> None:
        check = router.check_deployment_permission("free-user", TargetType.REPO)

        assert check.allowed is False
        assert check.error is not None
        assert check.error.code == TIER_RESTRICTION

    def test_does_not_count_usage(
        self, quota: InMemoryQuotaService, router: DeploymentRouter
    ) -> None:
        router.check_deployment_permission("free-user", TargetType.SNIPPET)

        assert quota.usage("free-user") == 0
