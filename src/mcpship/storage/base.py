"""Storage interfaces for deployment records and hosted servers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable

from mcpship.models.deployment import (
    DeploymentFilters,
    DeploymentPage,
    DeploymentRecord,
)
from mcpship.models.hosting import HostedServer, HostedServerStatus


def _newest_first(records: Iterable[DeploymentRecord]) -> list[DeploymentRecord]:
    return sorted(records, key=lambda r: (r.created_at, r.id), reverse=True)


def filter_records(
    records: Iterable[DeploymentRecord], filters: DeploymentFilters
) -> DeploymentPage:
    """Apply ``filters`` and pagination to ``records`` (newest first)."""
    matched = [
        r
        for r in records
        if (
            filters.source_artifact_id is None
            or r.source_artifact_id == filters.source_artifact_id
        )
        and (filters.target_type is None or r.target_type == filters.target_type)
        and (filters.status is None or r.status == filters.status)
    ]
    ordered = _newest_first(matched)
    start = (filters.page - 1) * filters.limit
    return DeploymentPage(
        items=ordered[start : start + filters.limit],
        total=len(ordered),
        page=filters.page,
        limit=filters.limit,
    )


class DeploymentStore(ABC):
    """Persistence for DeploymentRecord rows."""

    @abstractmethod
    def save(self, record: DeploymentRecord) -> DeploymentRecord:
        """Insert or replace a record by id."""

    @abstractmethod
    def get(self, deployment_id: str) -> DeploymentRecord | None:
        """Return a record, or None."""

    @abstractmethod
    def delete(self, deployment_id: str) -> bool:
        """Delete a record; return False if it did not exist."""

    @abstractmethod
    def all(self) -> list[DeploymentRecord]:
        """Return every record."""

    def query(self, filters: DeploymentFilters) -> DeploymentPage:
        return filter_records(self.all(), filters)

    def for_artifact(self, source_artifact_id: str) -> list[DeploymentRecord]:
        """All records of an artifact, newest first."""
        return _newest_first(
            r for r in self.all() if r.source_artifact_id == source_artifact_id
        )

    def latest_for_artifact(self, source_artifact_id: str) -> DeploymentRecord | None:
        records = self.for_artifact(source_artifact_id)
        return records[0] if records else None


class HostedServerStore(ABC):
    """Persistence for HostedServer rows. Writes are last-writer-wins."""

    @abstractmethod
    def save(self, server: HostedServer) -> HostedServer:
        """Insert or replace a server by server_id."""

    @abstractmethod
    def get(self, server_id: str) -> HostedServer | None:
        """Return a server, or None."""

    @abstractmethod
    def all(self) -> list[HostedServer]:
        """Return every server, including deleted ones."""

    def query(
        self, user_id: str | None = None, include_deleted: bool = False
    ) -> list[HostedServer]:
        """Servers newest first, optionally for one user."""
        servers = [
            s
            for s in self.all()
            if (include_deleted or s.status != HostedServerStatus.DELETED)
            and (user_id is None or s.user_id == user_id)
        ]
        return sorted(servers, key=lambda s: s.created_at, reverse=True)


class UsageStore(ABC):
    """Per-user, per-period deployment counters.

    Counters only grow; deleting deployment records never touches them.
    """

    @abstractmethod
    def get(self, user_id: str, period: str) -> int:
        """Return the count for ``user_id`` in ``period`` (0 when unset)."""

    @abstractmethod
    def increment(self, user_id: str, period: str) -> int:
        """Add one to the counter and return the new value."""
