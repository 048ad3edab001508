"""Tier lookup and monthly deployment quota."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict

from mcpship.config.tiers import TIER_CONFIG, UserTier
from mcpship.storage.base import UsageStore
from mcpship.storage.memory import InMemoryUsageStore

logger = logging.getLogger(__name__)


class QuotaCheck(BaseModel):
    """Outcome of a usage check."""

    model_config = ConfigDict(extra="forbid")

    allowed: bool
    reason: str | None = None
    current_usage: int = 0
    limit: int | None = None


def _period(now: datetime) -> str:
    return now.strftime("%Y-%m")


def evaluate_quota(tier: UserTier, used: int) -> QuotaCheck:
    """Compare ``used`` against the monthly limit of ``tier``."""
    limit = TIER_CONFIG[tier].monthly_server_limit
    if limit is None or used < limit:
        return QuotaCheck(allowed=True, current_usage=used, limit=limit)
    return QuotaCheck(
        allowed=False,
        reason=(
            f"You have reached your monthly limit of {limit} servers. "
            "Upgrade to Pro for unlimited deployments."
        ),
        current_usage=used,
        limit=limit,
    )


class QuotaService(ABC):
    """Tier and usage collaborator of the deployment router."""

    @abstractmethod
    def get_tier(self, user_id: str) -> UserTier | None:
        """Return the user's tier, or None for an unknown user."""

    @abstractmethod
    def check_can_deploy(self, user_id: str) -> QuotaCheck:
        """Check the user's usage against the monthly limit."""

    @abstractmethod
    def increment_usage(self, user_id: str) -> int:
        """Count one successful deployment and return the new usage."""


class InMemoryQuotaService(QuotaService):
    """Per-user monthly counters kept in memory."""

    def __init__(
        self,
        tiers: dict[str, UserTier] | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._tiers = dict(tiers or {})
        self._usage = InMemoryUsageStore()
        self._clock = clock

    def set_tier(self, user_id: str, tier: UserTier) -> None:
        self._tiers[user_id] = tier

    def get_tier(self, user_id: str) -> UserTier | None:
        return self._tiers.get(user_id)

    def usage(self, user_id: str) -> int:
        return self._usage.get(user_id, _period(self._clock()))

    def check_can_deploy(self, user_id: str) -> QuotaCheck:
        tier = self.get_tier(user_id)
        if tier is None:
            return QuotaCheck(allowed=False, reason="User not found")
        return evaluate_quota(tier, self.usage(user_id))

    def increment_usage(self, user_id: str) -> int:
        count = self._usage.increment(user_id, _period(self._clock()))
        logger.info("Incremented usage for user %s: %d", user_id, count)
        return count


class StoreBackedQuotaService(QuotaService):
    """Single-tier quota with counters kept in a persistent usage store.

    Used by the CLI: every user id maps to one configured tier. Usage is
    counted when a deployment succeeds and is never refunded, so deleting a
    deployment record does not free up quota.
    """

    def __init__(
        self,
        usage: UsageStore,
        tier: UserTier,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.usage = usage
        self.tier = tier
        self._clock = clock

    def get_tier(self, user_id: str) -> UserTier | None:
        return self.tier

    def check_can_deploy(self, user_id: str) -> QuotaCheck:
        used = self.usage.get(user_id, _period(self._clock()))
        return evaluate_quota(self.tier, used)

    def increment_usage(self, user_id: str) -> int:
        count = self.usage.increment(user_id, _period(self._clock()))
        logger.info("Incremented usage for user %s: %d", user_id, count)
        return count
