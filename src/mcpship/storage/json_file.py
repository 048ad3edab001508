"""JSON file persistence for the CLI.

All stores share one state file; every write reloads, updates and rewrites
it.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mcpship.lib.errors import DeploymentError
from mcpship.models.deployment import DeploymentRecord
from mcpship.models.hosting import HostedServer
from mcpship.storage.base import DeploymentStore, HostedServerStore, UsageStore

STATE_VERSION = "1.0"


class StoreState(BaseModel):
    """On-disk layout of the state file."""

    model_config = ConfigDict(extra="forbid")

    version: str = STATE_VERSION
    deployments: dict[str, DeploymentRecord] = Field(default_factory=dict)
    servers: dict[str, HostedServer] = Field(default_factory=dict)
    # user id -> period (YYYY-MM) -> successful deployments
    usage: dict[str, dict[str, int]] = Field(default_factory=dict)


def load_state(state_path: Path) -> StoreState:
    """Load state data from disk; a missing or empty file is an empty state."""
    if not state_path.exists():
        return StoreState()

    try:
        content = state_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DeploymentError(
            operation="state",
            message=f"Failed to read state at {state_path}: {exc}",
        ) from exc
    if not content.strip():
        return StoreState()

    try:
        state = StoreState.model_validate_json(content)
    except ValidationError as exc:
        raise DeploymentError(
            operation="state",
            message=f"Invalid state format in {state_path}: {exc}",
        ) from exc

    if not state.version:
        state = state.model_copy(update={"version": STATE_VERSION})
    return state


def save_state(state_path: Path, state: StoreState) -> None:
    """Persist state data to disk."""
    try:
        state_path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(state.model_dump(mode="json"), indent=2, sort_keys=True)
        state_path.write_text(payload, encoding="utf-8")
    except OSError as exc:
        raise DeploymentError(
            operation="state",
            message=f"Failed to write state to {state_path}: {exc}",
        ) from exc


class _JsonFileBacked:
    # One lock per path keeps the stores from clobbering each other
    _locks: dict[Path, threading.Lock] = {}
    _locks_guard = threading.Lock()

    def __init__(self, state_path: Path) -> None:
        self.state_path = Path(state_path)
        key = self.state_path.resolve()
        with self._locks_guard:
            self._lock = self._locks.setdefault(key, threading.Lock())


class JsonFileDeploymentStore(_JsonFileBacked, DeploymentStore):
    """Deployment records kept in a JSON state file."""

    def save(self, record: DeploymentRecord) -> DeploymentRecord:
        with self._lock:
            state = load_state(self.state_path)
            state.deployments[record.id] = record
            save_state(self.state_path, state)
        return record

    def get(self, deployment_id: str) -> DeploymentRecord | None:
        with self._lock:
            return load_state(self.state_path).deployments.get(deployment_id)

    def delete(self, deployment_id: str) -> bool:
        with self._lock:
            state = load_state(self.state_path)
            if state.deployments.pop(deployment_id, None) is None:
                return False
            save_state(self.state_path, state)
            return True

    def all(self) -> list[DeploymentRecord]:
        with self._lock:
            return list(load_state(self.state_path).deployments.values())


class JsonFileHostedServerStore(_JsonFileBacked, HostedServerStore):
    """Hosted servers kept in a JSON state file."""

    def save(self, server: HostedServer) -> HostedServer:
        with self._lock:
            state = load_state(self.state_path)
            state.servers[server.server_id] = server
            save_state(self.state_path, state)
        return server

    def get(self, server_id: str) -> HostedServer | None:
        with self._lock:
            return load_state(self.state_path).servers.get(server_id)

    def all(self) -> list[HostedServer]:
        with self._lock:
            return list(load_state(self.state_path).servers.values())


class JsonFileUsageStore(_JsonFileBacked, UsageStore):
    """Monthly usage counters kept in a JSON state file."""

    def get(self, user_id: str, period: str) -> int:
        with self._lock:
            usage = load_state(self.state_path).usage
        return usage.get(user_id, {}).get(period, 0)

    def increment(self, user_id: str, period: str) -> int:
        with self._lock:
            state = load_state(self.state_path)
            periods = state.usage.setdefault(user_id, {})
            periods[period] = periods.get(period, 0) + 1
            save_state(self.state_path, state)
            return periods[period]
