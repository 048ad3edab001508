"""Tier and quota gate in front of the deployment orchestrator."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from mcpship.config.tiers import (
    REQUIRED_TIER,
    TARGET_DISPLAY_NAMES,
    TIER_CONFIG,
    TIER_DISPLAY_NAMES,
    UserTier,
)
from mcpship.deploy.orchestrator import DeploymentOrchestrator
from mcpship.lib.errors import DeploymentPermissionError
from mcpship.models.deployment import DeploymentOptions, DeploymentResult, TargetType
from mcpship.quota import QuotaService

logger = logging.getLogger(__name__)

ACCOUNT_URL = "/account"
UPGRADE_URL = "/account?upgrade=true"

USER_NOT_FOUND = "USER_NOT_FOUND"
LIMIT_EXCEEDED = "LIMIT_EXCEEDED"
TIER_RESTRICTION = "TIER_RESTRICTION"


@dataclass(frozen=True)
class PermissionCheck:
    """Read-only answer of ``check_deployment_permission``."""

    allowed: bool
    error: DeploymentPermissionError | None = None


class DeploymentRouter:
    """Resolve the target for a user's tier and dispatch the deployment."""

    def __init__(
        self, quota: QuotaService, orchestrator: DeploymentOrchestrator
    ) -> None:
        self.quota = quota
        self.orchestrator = orchestrator

    def route(
        self,
        user_id: str,
        artifact_id: str,
        options: DeploymentOptions | None = None,
        target_type: TargetType | None = None,
    ) -> DeploymentResult:
        """Gate, normalize and dispatch one deployment.

        Args:
            user_id: Requesting user
            artifact_id: Artifact to publish
            options: Deployment options
            target_type: Explicit target; the tier default when None

        Returns:
            The orchestrator's result; usage is counted only on success

        Raises:
            DeploymentPermissionError: On unknown user, exhausted quota or a
                target the tier does not include
        """
        options = options or DeploymentOptions()
        tier = self._require_tier(user_id)
        limits = TIER_CONFIG[tier]
        logger.info("Routing deployment for user %s (tier: %s)", user_id, tier.value)

        self._check_quota(user_id, tier)
        target = target_type or limits.default_target
        self._check_target(tier, target)

        is_private = True if options.is_private is None else options.is_private
        if not limits.private_repos:
            is_private = False
        options = options.model_copy(update={"is_private": is_private})

        if target == TargetType.REPO:
            result = self.orchestrator.deploy_to_repo(artifact_id, options)
        elif target == TargetType.ENTERPRISE:
            result = self.orchestrator.deploy_to_enterprise(artifact_id, options)
        else:
            result = self.orchestrator.deploy_to_snippet(artifact_id, options)

        if result.success:
            usage = self.quota.increment_usage(user_id)
            logger.info("Usage for user %s is now %d", user_id, usage)
        return result

    def check_deployment_permission(
        self, user_id: str, target_type: TargetType
    ) -> PermissionCheck:
        """Run the same gate as ``route`` without deploying."""
        try:
            tier = self._require_tier(user_id)
            self._check_quota(user_id, tier)
            self._check_target(tier, target_type)
        except DeploymentPermissionError as e:
            return PermissionCheck(allowed=False, error=e)
        return PermissionCheck(allowed=True)

    def _require_tier(self, user_id: str) -> UserTier:
        tier = self.quota.get_tier(user_id)
        if tier is None:
            raise DeploymentPermissionError(
                USER_NOT_FOUND, "User not found", upgrade_url=ACCOUNT_URL
            )
        return tier

    def _check_quota(self, user_id: str, tier: UserTier) -> None:
        check = self.quota.check_can_deploy(user_id)
        if not check.allowed:
            logger.warning("User %s is over quota: %s", user_id, check.reason)
            raise DeploymentPermissionError(
                LIMIT_EXCEEDED,
                check.reason or "Deployment limit reached",
                upgrade_url=UPGRADE_URL,
                current_usage=check.current_usage,
                limit=check.limit,
                current_tier=tier.value,
            )

    @staticmethod
    def _check_target(tier: UserTier, target: TargetType) -> None:
        if target in TIER_CONFIG[tier].deployment_types:
            return
        required = REQUIRED_TIER[target]
        raise DeploymentPermissionError(
            TIER_RESTRICTION,
            f"{TARGET_DISPLAY_NAMES[target]} deployment requires "
            f"{TIER_DISPLAY_NAMES[required]} tier or higher",
            upgrade_url=UPGRADE_URL,
            current_tier=tier.value,
            required_tier=required.value,
        )
