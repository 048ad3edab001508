"""Unit tests for deployment and hosted server models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from mcpship.lib.errors import InvalidStateError
from mcpship.models.deployment import (
    DeploymentRecord,
    DeploymentResult,
    DeploymentStatus,
    DeploymentUrls,
    ProviderMetadata,
    TargetType,
)
from mcpship.models.errors import (
    ERROR_POLICIES,
    ERROR_USER_MESSAGES,
    DeploymentErrorCode,
    RetryStrategy,
)
from mcpship.models.hosting import (
    ALLOWED_TRANSITIONS,
    HostedServer,
    HostedServerStatus,
    ManifestConfig,
)


def _record() -> DeploymentRecord:
    return DeploymentRecord(source_artifact_id="art-1", target_type=TargetType.REPO)


class TestDeploymentRecord:
    """Tests for the pending -> success/failed transition."""

    def test_defaults(self) -> None:
        record = _record()

        assert record.status == DeploymentStatus.PENDING
        assert len(record.id) == 26
        assert record.metadata.retry.retry_count == 0
        assert record.metadata.rollback.performed is False

    def test_ids_are_unique(self) -> None:
        assert _record().id != _record().id

    def test_mark_success(self) -> None:
        record = _record().mark_success(
            DeploymentUrls(repository="https://github.com/octo/weather"),
            ProviderMetadata(owner="octo", repo="weather"),
        )

        assert record.status == DeploymentStatus.SUCCESS
        assert record.deployed_at is not None
        assert record.metadata.provider.repo == "weather"

    def test_mark_failed(self) -> None:
        record = _record().mark_failed(
            "boom",
            code=DeploymentErrorCode.NETWORK_TIMEOUT,
            strategy=RetryStrategy.IMMEDIATE,
            retry_after_ms=1000,
        )

        assert record.status == DeploymentStatus.FAILED
        assert record.error_code == DeploymentErrorCode.NETWORK_TIMEOUT
        assert record.retry_after_ms == 1000

    def test_terminal_states_are_final(self) -> None:
        """A finished record cannot transition again."""
        failed = _record().mark_failed("boom")

        with pytest.raises(InvalidStateError):
            failed.mark_success(DeploymentUrls())
        with pytest.raises(InvalidStateError):
            failed.mark_failed("again")

    def test_marking_does_not_mutate_original(self) -> None:
        record = _record()
        record.mark_failed("boom")

        assert record.status == DeploymentStatus.PENDING

    def test_unknown_fields_rejected(self) -> None:
        with pytest.raises(ValidationError):
            DeploymentRecord(
                source_artifact_id="a", target_type=TargetType.REPO, extra="x"
            )

    def test_result_from_record(self) -> None:
        record = _record().mark_failed(
            "exists",
            code=DeploymentErrorCode.REPOSITORY_NAME_CONFLICT,
            strategy=RetryStrategy.NONE,
            suggested_names=["weather-v2"],
        )

        result = DeploymentResult.from_record(record, "Try another name")

        assert result.success is False
        assert result.deployment_id == record.id
        assert result.user_message == "Try another name"
        assert result.suggested_names == ["weather-v2"]


class TestPolicyTables:
    """Tests for the static per-code tables."""

    def test_every_code_has_policy_and_message(self) -> None:
        for code in DeploymentErrorCode:
            assert code in ERROR_POLICIES
            assert ERROR_USER_MESSAGES[code]

    def test_tables_are_read_only(self) -> None:
        with pytest.raises(TypeError):
            code = DeploymentErrorCode.UNKNOWN_ERROR
            ERROR_POLICIES[code] = None  # type: ignore[index]

    def test_unknown_error_has_single_immediate_retry(self) -> None:
        policy = ERROR_POLICIES[DeploymentErrorCode.UNKNOWN_ERROR]

        assert policy.strategy == RetryStrategy.IMMEDIATE
        assert policy.max_retries == 1


class TestHostedServerStateMachine:
    """Tests for HostedServer transitions."""

    def _server(self) -> HostedServer:
        return HostedServer(
            server_id="weather-abc12345",
            server_name="weather",
            endpoint_url="https://weather-abc12345.mcp.example.com",
        )

    def test_happy_path(self) -> None:
        server = self._server()
        for status in (
            HostedServerStatus.BUILDING,
            HostedServerStatus.PUSHING,
            HostedServerStatus.DEPLOYING,
            HostedServerStatus.RUNNING,
            HostedServerStatus.STOPPED,
            HostedServerStatus.RUNNING,
        ):
            server.transition(status)

        assert server.status == HostedServerStatus.RUNNING

    def test_deleted_is_terminal(self) -> None:
        server = self._server().transition(HostedServerStatus.DELETED)

        assert ALLOWED_TRANSITIONS[HostedServerStatus.DELETED] == frozenset()
        with pytest.raises(InvalidStateError):
            server.transition(HostedServerStatus.RUNNING)

    def test_pending_cannot_jump_to_running(self) -> None:
        server = self._server()

        assert not server.can_transition(HostedServerStatus.RUNNING)
        with pytest.raises(InvalidStateError):
            server.transition(HostedServerStatus.RUNNING)

    def test_transition_records_message_and_time(self) -> None:
        server = self._server()
        before = server.last_status_change

        server.transition(HostedServerStatus.BUILDING, "Building image...")

        assert server.status_message == "Building image..."
        assert server.last_status_change >= before

    def test_negative_replicas_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ManifestConfig(
                server_id="s",
                server_name="s",
                docker_image="img",
                domain="example.com",
                replicas=-1,
            )
