"""Repository and snippet deployment: routing, orchestration, retry, rollback."""

from mcpship.deploy.classifier import ErrorClassifier, RetryOutcome
from mcpship.deploy.orchestrator import DeploymentOrchestrator
from mcpship.deploy.rollback import RollbackResult, RollbackService
from mcpship.deploy.router import DeploymentRouter, PermissionCheck
from mcpship.deploy.validation import (
    HostingResourceValidator,
    PostDeployValidator,
    ValidationReport,
    start_validation,
)

__all__ = [
    "DeploymentOrchestrator",
    "DeploymentRouter",
    "ErrorClassifier",
    "HostingResourceValidator",
    "PermissionCheck",
    "PostDeployValidator",
    "RetryOutcome",
    "RollbackResult",
    "RollbackService",
    "ValidationReport",
    "start_validation",
]
