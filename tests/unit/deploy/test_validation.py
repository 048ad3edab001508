"""Unit tests for post-deploy validation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from unittest.mock import MagicMock

import pytest

from mcpship.deploy.validation import (
    HostingResourceValidator,
    PostDeployValidator,
    start_validation,
)
from mcpship.models.deployment import (
    DeploymentRecord,
    DeploymentUrls,
    ProviderMetadata,
    TargetType,
)

if TYPE_CHECKING:
    from conftest import FakeHostingAPI


def _repo_record(owner: str = "octo", repo: str = "weather") -> DeploymentRecord:
    record = DeploymentRecord(
        source_artifact_id="art-weather",
        target_type=TargetType.REPO,
        urls=DeploymentUrls(repository=f"https://github.com/{owner}/{repo}"),
    )
    return record.mark_success(
        record.urls, ProviderMetadata(owner=owner, repo=repo)
    )


def _snippet_record(snippet_id: str, filename: str) -> DeploymentRecord:
    record = DeploymentRecord(
        source_artifact_id="art-weather", target_type=TargetType.SNIPPET
    )
    return record.mark_success(
        DeploymentUrls(snippet=f"https://gist.github.com/octo/{snippet_id}"),
        ProviderMetadata(snippet_id=snippet_id, filename=filename),
    )


class TestHostingResourceValidator:
    """Tests for HostingResourceValidator."""

    def test_repository_exists(self, api: FakeHostingAPI) -> None:
        api.add_repository("octo", "weather", {})

        report = HostingResourceValidator(api).validate(_repo_record())

        assert report.passed
        assert report.checks == ["Repository octo/weather exists"]

    def test_repository_missing(self, api: FakeHostingAPI) -> None:
        report = HostingResourceValidator(api).validate(_repo_record())

        assert not report.passed
        assert report.problems == ["Repository octo/weather not found"]

    def test_snippet_with_file(self, api: FakeHostingAPI) -> None:
        snippet = api.create_snippet({"weather.ts": "x"})

        report = HostingResourceValidator(api).validate(
            _snippet_record(snippet.id, "weather.ts")
        )

        assert report.passed

    def test_snippet_missing_file(self, api: FakeHostingAPI) -> None:
        snippet = api.create_snippet({"other.ts": "x"})

        report = HostingResourceValidator(api).validate(
            _snippet_record(snippet.id, "weather.ts")
        )

        assert report.problems == [f"Snippet {snippet.id} lacks weather.ts"]


class TestStartValidation:
    """Tests for the detached validation thread."""

    def test_report_is_collected(self, api: FakeHostingAPI) -> None:
        api.add_repository("octo", "weather", {})

        thread = start_validation(HostingResourceValidator(api), _repo_record())
        thread.join(timeout=5)

        assert thread.daemon
        assert thread.report is not None
        assert thread.report.passed

    def test_failure_is_logged_only(
        self, api: FakeHostingAPI, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="mcpship.deploy.validation"):
            thread = start_validation(HostingResourceValidator(api), _repo_record())
            thread.join(timeout=5)

        assert "Post-deploy validation failed" in caplog.text

    def test_crash_is_contained(self, caplog: pytest.LogCaptureFixture) -> None:
        validator = MagicMock(spec=PostDeployValidator)
        validator.validate.side_effect = RuntimeError("boom")

        with caplog.at_level(logging.ERROR, logger="mcpship.deploy.validation"):
            thread = start_validation(validator, _repo_record())
            thread.join(timeout=5)

        assert thread.report is None
        assert "validation crashed" in caplog.text
