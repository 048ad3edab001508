"""Deployment error codes, retry policies and user-facing messages.

The policy and message tables are the single source of truth per code and
are exposed as read-only mappings.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, Field


class DeploymentErrorCode(str, Enum):
    """Structured deployment error codes, grouped by retry strategy."""

    # Transient network issues
    NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    CONNECTION_RESET = "CONNECTION_RESET"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"

    # Rate limits
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    SECONDARY_RATE_LIMIT = "SECONDARY_RATE_LIMIT"

    # Caller must change the input
    INVALID_CODE = "INVALID_CODE"
    COMPILATION_ERROR = "COMPILATION_ERROR"
    MISSING_DEPENDENCIES = "MISSING_DEPENDENCIES"
    INVALID_SERVER_NAME = "INVALID_SERVER_NAME"

    # Fatal for this attempt
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    REPOSITORY_NAME_CONFLICT = "REPOSITORY_NAME_CONFLICT"
    SNIPPET_NOT_FOUND = "SNIPPET_NOT_FOUND"
    REPOSITORY_NOT_FOUND = "REPOSITORY_NOT_FOUND"

    # Internal and precondition failures
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    NO_FILES_TO_DEPLOY = "NO_FILES_TO_DEPLOY"
    ARTIFACT_NOT_FOUND = "ARTIFACT_NOT_FOUND"


class RetryStrategy(str, Enum):
    """How a failed deployment may be retried."""

    IMMEDIATE = "immediate"
    EXPONENTIAL_BACKOFF = "exponential_backoff"
    MANUAL = "manual"
    NONE = "none"


class RetryPolicy(BaseModel):
    """Static retry behaviour for one error code."""

    model_config = ConfigDict(frozen=True)

    strategy: RetryStrategy
    max_retries: int = Field(ge=0)
    base_delay_ms: int = Field(ge=0)


def _policy(
    strategy: RetryStrategy, max_retries: int, base_delay_ms: int
) -> RetryPolicy:
    return RetryPolicy(
        strategy=strategy, max_retries=max_retries, base_delay_ms=base_delay_ms
    )


_IMMEDIATE = RetryStrategy.IMMEDIATE
_BACKOFF = RetryStrategy.EXPONENTIAL_BACKOFF
_MANUAL = RetryStrategy.MANUAL
_NONE = RetryStrategy.NONE

ERROR_POLICIES: MappingProxyType[DeploymentErrorCode, RetryPolicy] = MappingProxyType(
    {
        DeploymentErrorCode.NETWORK_TIMEOUT: _policy(_IMMEDIATE, 3, 1000),
        DeploymentErrorCode.CONNECTION_RESET: _policy(_IMMEDIATE, 3, 1000),
        DeploymentErrorCode.SERVICE_UNAVAILABLE: _policy(_IMMEDIATE, 3, 2000),
        DeploymentErrorCode.RATE_LIMIT_EXCEEDED: _policy(_BACKOFF, 3, 2000),
        DeploymentErrorCode.SECONDARY_RATE_LIMIT: _policy(_BACKOFF, 3, 5000),
        DeploymentErrorCode.INVALID_CODE: _policy(_MANUAL, 0, 0),
        DeploymentErrorCode.COMPILATION_ERROR: _policy(_MANUAL, 0, 0),
        DeploymentErrorCode.MISSING_DEPENDENCIES: _policy(_MANUAL, 0, 0),
        DeploymentErrorCode.INVALID_SERVER_NAME: _policy(_MANUAL, 0, 0),
        DeploymentErrorCode.AUTHENTICATION_FAILED: _policy(_NONE, 0, 0),
        DeploymentErrorCode.INSUFFICIENT_PERMISSIONS: _policy(_NONE, 0, 0),
        DeploymentErrorCode.REPOSITORY_NAME_CONFLICT: _policy(_NONE, 0, 0),
        DeploymentErrorCode.SNIPPET_NOT_FOUND: _policy(_NONE, 0, 0),
        DeploymentErrorCode.REPOSITORY_NOT_FOUND: _policy(_NONE, 0, 0),
        DeploymentErrorCode.UNKNOWN_ERROR: _policy(_IMMEDIATE, 1, 1000),
        DeploymentErrorCode.NO_FILES_TO_DEPLOY: _policy(_MANUAL, 0, 0),
        DeploymentErrorCode.ARTIFACT_NOT_FOUND: _policy(_NONE, 0, 0),
    }
)

ERROR_USER_MESSAGES: MappingProxyType[DeploymentErrorCode, str] = MappingProxyType(
    {
        DeploymentErrorCode.NETWORK_TIMEOUT: "Network timeout. Please try again.",
        DeploymentErrorCode.CONNECTION_RESET: "Connection was reset. Please try again.",
        DeploymentErrorCode.SERVICE_UNAVAILABLE: (
            "The hosting service is temporarily unavailable. Please try again."
        ),
        DeploymentErrorCode.RATE_LIMIT_EXCEEDED: (
            "Hosting API rate limit reached. Wait before retrying."
        ),
        DeploymentErrorCode.SECONDARY_RATE_LIMIT: (
            "Hosting API secondary rate limit hit. Please wait a moment."
        ),
        DeploymentErrorCode.INVALID_CODE: (
            "Generated code has errors. Please regenerate the server."
        ),
        DeploymentErrorCode.COMPILATION_ERROR: (
            "Code compilation failed. Please check the generated code."
        ),
        DeploymentErrorCode.MISSING_DEPENDENCIES: (
            "Missing dependencies detected. Please regenerate."
        ),
        DeploymentErrorCode.INVALID_SERVER_NAME: (
            "Invalid server name. Please use alphanumeric characters and hyphens."
        ),
        DeploymentErrorCode.AUTHENTICATION_FAILED: (
            "Hosting authentication failed. Please check your credentials."
        ),
        DeploymentErrorCode.INSUFFICIENT_PERMISSIONS: (
            "Insufficient hosting permissions for this operation."
        ),
        DeploymentErrorCode.REPOSITORY_NAME_CONFLICT: (
            "Repository name already exists. Try a different name."
        ),
        DeploymentErrorCode.SNIPPET_NOT_FOUND: (
            "Snippet not found. It may have been deleted."
        ),
        DeploymentErrorCode.REPOSITORY_NOT_FOUND: (
            "Repository not found. It may have been deleted."
        ),
        DeploymentErrorCode.UNKNOWN_ERROR: (
            "An unexpected error occurred. Please try again."
        ),
        DeploymentErrorCode.NO_FILES_TO_DEPLOY: (
            "No files to deploy. Please generate the server first."
        ),
        DeploymentErrorCode.ARTIFACT_NOT_FOUND: "Artifact not found.",
    }
)


class ClassifiedError(BaseModel):
    """A provider failure mapped onto a code and its retry policy.

    Attributes:
        code: Deployment error code
        message: Raw provider message (for logs)
        user_message: Fixed user-facing message for the code
        retry_strategy: Strategy from the policy table
        retry_after_ms: Suggested wait before retrying
    """

    model_config = ConfigDict(extra="forbid")

    code: DeploymentErrorCode
    message: str
    user_message: str
    retry_strategy: RetryStrategy
    retry_after_ms: int | None = None


class RetryAttempt(BaseModel):
    """Audit entry for a single failed attempt inside ``with_retry``."""

    model_config = ConfigDict(extra="forbid")

    attempt_number: int
    timestamp: datetime
    error_code: DeploymentErrorCode
    error_message: str
    waited_ms: int | None = None
