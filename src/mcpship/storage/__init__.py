"""Persistence for deployment records, hosted servers and usage counters."""

from mcpship.storage.base import (
    DeploymentStore,
    HostedServerStore,
    UsageStore,
    filter_records,
)
from mcpship.storage.json_file import (
    JsonFileDeploymentStore,
    JsonFileHostedServerStore,
    JsonFileUsageStore,
    StoreState,
    load_state,
    save_state,
)
from mcpship.storage.memory import (
    InMemoryDeploymentStore,
    InMemoryHostedServerStore,
    InMemoryUsageStore,
)

__all__ = [
    "DeploymentStore",
    "HostedServerStore",
    "InMemoryDeploymentStore",
    "InMemoryHostedServerStore",
    "InMemoryUsageStore",
    "JsonFileDeploymentStore",
    "JsonFileHostedServerStore",
    "JsonFileUsageStore",
    "StoreState",
    "UsageStore",
    "filter_records",
    "load_state",
    "save_state",
]
