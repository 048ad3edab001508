"""Subscription tiers and the deployment targets they unlock."""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict

from mcpship.models.deployment import TargetType


class UserTier(str, Enum):
    """Subscription levels."""

    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class TierLimits(BaseModel):
    """Entitlements of one tier.

    Attributes:
        monthly_server_limit: Deployments per month, None for unlimited
        private_repos: Whether private repositories/secret snippets are allowed
        deployment_types: Targets the tier may publish to
        default_target: Target used when the caller does not choose one
    """

    model_config = ConfigDict(frozen=True)

    monthly_server_limit: int | None
    private_repos: bool
    ci_cd: bool
    custom_domains: bool
    deployment_types: frozenset[TargetType]
    default_target: TargetType


TIER_CONFIG: MappingProxyType[UserTier, TierLimits] = MappingProxyType(
    {
        UserTier.FREE: TierLimits(
            monthly_server_limit=5,
            private_repos=False,
            ci_cd=False,
            custom_domains=False,
            deployment_types=frozenset({TargetType.SNIPPET}),
            default_target=TargetType.SNIPPET,
        ),
        UserTier.PRO: TierLimits(
            monthly_server_limit=None,
            private_repos=True,
            ci_cd=True,
            custom_domains=False,
            deployment_types=frozenset({TargetType.SNIPPET, TargetType.REPO}),
            default_target=TargetType.REPO,
        ),
        UserTier.ENTERPRISE: TierLimits(
            monthly_server_limit=None,
            private_repos=True,
            ci_cd=True,
            custom_domains=True,
            deployment_types=frozenset(
                {TargetType.SNIPPET, TargetType.REPO, TargetType.ENTERPRISE}
            ),
            default_target=TargetType.REPO,
        ),
    }
)

TIER_DISPLAY_NAMES: MappingProxyType[UserTier, str] = MappingProxyType(
    {
        UserTier.FREE: "Free",
        UserTier.PRO: "Pro",
        UserTier.ENTERPRISE: "Enterprise",
    }
)

# Lowest tier unlocking each target
REQUIRED_TIER: MappingProxyType[TargetType, UserTier] = MappingProxyType(
    {
        TargetType.SNIPPET: UserTier.FREE,
        TargetType.REPO: UserTier.PRO,
        TargetType.ENTERPRISE: UserTier.ENTERPRISE,
        TargetType.NONE: UserTier.FREE,
    }
)

TARGET_DISPLAY_NAMES: MappingProxyType[TargetType, str] = MappingProxyType(
    {
        TargetType.SNIPPET: "Snippet",
        TargetType.REPO: "Private Repository",
        TargetType.ENTERPRISE: "Enterprise",
        TargetType.NONE: "None",
    }
)
