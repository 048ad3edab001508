"""Detached post-deploy validation.

Validation runs on a daemon thread after a successful deployment. Its
outcome is only logged and never changes the deployment result.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict, Field

from mcpship.github.base import HostingAPI
from mcpship.models.deployment import DeploymentRecord, TargetType
from mcpship.providers.repo import repo_reference

logger = logging.getLogger(__name__)


class ValidationReport(BaseModel):
    """Findings of one validation run."""

    model_config = ConfigDict(extra="forbid")

    deployment_id: str
    passed: bool
    checks: list[str] = Field(default_factory=list)
    problems: list[str] = Field(default_factory=list)


class PostDeployValidator(ABC):
    """Checks a published deployment after the fact."""

    @abstractmethod
    def validate(self, record: DeploymentRecord) -> ValidationReport:
        """Validate the external resource of ``record``."""


class HostingResourceValidator(PostDeployValidator):
    """Confirm the repository or snippet is readable through the hosting API."""

    def __init__(self, api: HostingAPI) -> None:
        self.api = api

    def validate(self, record: DeploymentRecord) -> ValidationReport:
        report = ValidationReport(deployment_id=record.id, passed=True)

        if record.target_type == TargetType.REPO:
            reference = repo_reference(record)
            if reference is None:
                report.problems.append("No repository reference on record")
            elif self.api.get_repository(*reference) is None:
                report.problems.append(f"Repository {'/'.join(reference)} not found")
            else:
                report.checks.append(f"Repository {'/'.join(reference)} exists")

        elif record.target_type == TargetType.SNIPPET:
            snippet_id = record.metadata.provider.snippet_id
            filename = record.metadata.provider.filename
            snippet = self.api.get_snippet(snippet_id) if snippet_id else None
            if snippet is None:
                report.problems.append(f"Snippet {snippet_id} not found")
            elif filename and filename not in snippet.files:
                report.problems.append(f"Snippet {snippet_id} lacks {filename}")
            else:
                report.checks.append(f"Snippet {snippet_id} exists")

        report.passed = not report.problems
        return report


class ValidationThread(threading.Thread):
    """Background thread running one validation."""

    def __init__(
        self, validator: PostDeployValidator, record: DeploymentRecord
    ) -> None:
        super().__init__(daemon=True, name=f"validate-{record.id}")
        self.validator = validator
        self.record = record
        self.report: ValidationReport | None = None

    def run(self) -> None:
        try:
            self.report = self.validator.validate(self.record)
        except Exception:  # noqa: BLE001 - outcome is log-only
            logger.exception("Post-deploy validation crashed for %s", self.record.id)
            return

        if self.report.passed:
            logger.info(
                "Post-deploy validation passed for %s: %s",
                self.record.id,
                "; ".join(self.report.checks),
            )
        else:
            logger.warning(
                "Post-deploy validation failed for %s: %s",
                self.record.id,
                "; ".join(self.report.problems),
            )


def start_validation(
    validator: PostDeployValidator, record: DeploymentRecord
) -> ValidationThread:
    """Start validation of ``record`` without waiting for it."""
    thread = ValidationThread(validator, record)
    thread.start()
    return thread
