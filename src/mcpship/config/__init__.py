"""Runtime settings and subscription tiers.

Main components:
- Settings / load_settings: environment-driven configuration
- TIER_CONFIG: entitlements per subscription tier
"""

from mcpship.config.settings import Settings, load_settings
from mcpship.config.tiers import TIER_CONFIG, TierLimits, UserTier

__all__ = [
    "Settings",
    "TIER_CONFIG",
    "TierLimits",
    "UserTier",
    "load_settings",
]
