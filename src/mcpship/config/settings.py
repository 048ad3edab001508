"""Runtime settings for mcpship.

Settings are plain pydantic models populated from environment variables.
``load_settings`` is the only place that reads the environment.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from mcpship.config.tiers import UserTier
from mcpship.lib.errors import ConfigError

logger = logging.getLogger(__name__)


class GitHubSettings(BaseModel):
    """Git-hosting API access."""

    model_config = ConfigDict(extra="forbid")

    token: str | None = Field(default=None, description="API token")
    api_url: str = Field(default="https://api.github.com", description="API base URL")
    web_url: str = Field(default="https://github.com", description="Web base URL")
    timeout: float = Field(default=30.0, gt=0, description="Request timeout (s)")


class RegistrySettings(BaseModel):
    """Container registry used for hosted server images."""

    model_config = ConfigDict(extra="forbid")

    local_dev: bool = Field(default=False, description="Use the local registry")
    local_registry: str = Field(default="localhost:5000")
    registry: str = Field(default="ghcr.io")
    owner: str | None = Field(default=None, description="Registry namespace owner")
    repo: str = Field(default="mcp-servers", description="Package path under owner")
    token: str | None = Field(default=None, description="Registry/API token")
    platform: str = Field(default="linux/amd64")


class GitOpsSettings(BaseModel):
    """Desired-state repository consumed by the cluster reconciler."""

    model_config = ConfigDict(extra="forbid")

    local_dev: bool = Field(default=False, description="Write to a local tree")
    local_path: Path = Field(default=Path("k8s/local-gitops"))
    owner: str = Field(default="mcpship")
    repo: str = Field(default="mcp-server-deployments")
    branch: str = Field(default="main")


class HostingSettings(BaseModel):
    """Cluster-facing hosting settings."""

    model_config = ConfigDict(extra="forbid")

    domain: str = Field(default="mcp.example.com")
    namespace: str = Field(default="mcp-servers")


class StorageSettings(BaseModel):
    """Where artifacts and records live for the CLI."""

    model_config = ConfigDict(extra="forbid")

    artifacts_dir: Path = Field(default=Path("generated-servers"))
    state_path: Path = Field(default=Path(".mcpship/state.json"))


class Settings(BaseModel):
    """Top-level settings object."""

    model_config = ConfigDict(extra="forbid")

    github: GitHubSettings = Field(default_factory=GitHubSettings)
    registry: RegistrySettings = Field(default_factory=RegistrySettings)
    gitops: GitOpsSettings = Field(default_factory=GitOpsSettings)
    hosting: HostingSettings = Field(default_factory=HostingSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    user_tier: UserTier = Field(
        default=UserTier.FREE, description="Tier used by the CLI"
    )
    propagation_delay: float = Field(
        default=1.0, ge=0, description="Wait after repository creation (s)"
    )


# (section, field) -> environment variable
ENV_VAR_MAP: dict[tuple[str | None, str], str] = {
    ("github", "token"): "GITHUB_TOKEN",
    ("github", "api_url"): "MCPSHIP_GITHUB_API_URL",
    ("github", "web_url"): "MCPSHIP_GITHUB_WEB_URL",
    ("github", "timeout"): "MCPSHIP_HTTP_TIMEOUT",
    ("registry", "local_dev"): "LOCAL_DEV",
    ("registry", "local_registry"): "LOCAL_REGISTRY",
    ("registry", "registry"): "GHCR_REGISTRY",
    ("registry", "owner"): "GHCR_OWNER",
    ("registry", "repo"): "GHCR_REPO",
    ("registry", "token"): "GITHUB_TOKEN",
    ("gitops", "local_dev"): "LOCAL_DEV",
    ("gitops", "local_path"): "LOCAL_GITOPS_PATH",
    ("gitops", "owner"): "GITOPS_OWNER",
    ("gitops", "repo"): "GITOPS_REPO",
    ("gitops", "branch"): "GITOPS_BRANCH",
    ("hosting", "domain"): "MCP_HOSTING_DOMAIN",
    ("hosting", "namespace"): "K8S_NAMESPACE",
    ("storage", "artifacts_dir"): "MCPSHIP_ARTIFACTS_DIR",
    ("storage", "state_path"): "MCPSHIP_STATE_PATH",
    (None, "user_tier"): "MCPSHIP_USER_TIER",
    (None, "propagation_delay"): "MCPSHIP_PROPAGATION_DELAY",
}

_BOOL_FIELDS = {"local_dev"}


def _parse_env_value(field_name: str, value: str) -> Any:
    """Parse an environment value; booleans accept true/1/yes/on."""
    if field_name in _BOOL_FIELDS:
        return value.strip().lower() in ("true", "1", "yes", "on")
    return value


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from environment variables.

    Args:
        env: Mapping to read from (defaults to ``os.environ``)

    Returns:
        Validated Settings

    Raises:
        ConfigError: If a value fails validation
    """
    env = os.environ if env is None else env
    data: dict[str, Any] = {}

    for (section, field_name), env_var in ENV_VAR_MAP.items():
        if env_var not in env or env[env_var] == "":
            continue
        value = _parse_env_value(field_name, env[env_var])
        if section is None:
            data[field_name] = value
        else:
            data.setdefault(section, {})[field_name] = value

    try:
        settings = Settings.model_validate(data)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ConfigError(location, first["msg"]) from exc

    if not settings.github.token:
        logger.debug("GITHUB_TOKEN is not set; hosting API calls will be anonymous")
    return settings
