"""In-memory stores, used by tests and embedding applications."""

from __future__ import annotations

import threading

from mcpship.models.deployment import DeploymentRecord
from mcpship.models.hosting import HostedServer
from mcpship.storage.base import DeploymentStore, HostedServerStore, UsageStore


class InMemoryDeploymentStore(DeploymentStore):
    """Thread-safe dict-backed deployment store."""

    def __init__(self) -> None:
        self._records: dict[str, DeploymentRecord] = {}
        self._lock = threading.Lock()

    def save(self, record: DeploymentRecord) -> DeploymentRecord:
        with self._lock:
            self._records[record.id] = record.model_copy(deep=True)
        return record

    def get(self, deployment_id: str) -> DeploymentRecord | None:
        with self._lock:
            record = self._records.get(deployment_id)
        return record.model_copy(deep=True) if record else None

    def delete(self, deployment_id: str) -> bool:
        with self._lock:
            return self._records.pop(deployment_id, None) is not None

    def all(self) -> list[DeploymentRecord]:
        with self._lock:
            return [r.model_copy(deep=True) for r in self._records.values()]


class InMemoryHostedServerStore(HostedServerStore):
    """Thread-safe dict-backed hosted server store."""

    def __init__(self) -> None:
        self._servers: dict[str, HostedServer] = {}
        self._lock = threading.Lock()

    def save(self, server: HostedServer) -> HostedServer:
        with self._lock:
            self._servers[server.server_id] = server.model_copy(deep=True)
        return server

    def get(self, server_id: str) -> HostedServer | None:
        with self._lock:
            server = self._servers.get(server_id)
        return server.model_copy(deep=True) if server else None

    def all(self) -> list[HostedServer]:
        with self._lock:
            return [s.model_copy(deep=True) for s in self._servers.values()]


class InMemoryUsageStore(UsageStore):
    """Thread-safe dict-backed usage counters."""

    def __init__(self) -> None:
        self._counts: dict[tuple[str, str], int] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str, period: str) -> int:
        with self._lock:
            return self._counts.get((user_id, period), 0)

    def increment(self, user_id: str, period: str) -> int:
        with self._lock:
            count = self._counts.get((user_id, period), 0) + 1
            self._counts[(user_id, period)] = count
        return count
