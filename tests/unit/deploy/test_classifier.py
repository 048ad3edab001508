"""Unit tests for error classification and policy-driven retry."""

from __future__ import annotations

from unittest.mock import Mock

import pytest
from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import Timeout

from mcpship.deploy.classifier import ErrorClassifier
from mcpship.lib.errors import HostingAPIError, NameConflictError, PublishError
from mcpship.models.errors import (
    ERROR_POLICIES,
    DeploymentErrorCode,
    RetryStrategy,
)


@pytest.fixture
def delays() -> list[float]:
    return []


@pytest.fixture
def retrying(fixed_now: float, delays: list[float]) -> ErrorClassifier:
    return ErrorClassifier(clock=lambda: fixed_now, sleep=delays.append)


class TestClassify:
    """Tests for mapping failures onto error codes."""

    @pytest.mark.parametrize(
        ("error", "code"),
        [
            (HostingAPIError(401, "Bad credentials"), "AUTHENTICATION_FAILED"),
            (
                HostingAPIError(403, "Resource not accessible"),
                "INSUFFICIENT_PERMISSIONS",
            ),
            (
                HostingAPIError(403, "You have exceeded a secondary rate limit"),
                "SECONDARY_RATE_LIMIT",
            ),
            (HostingAPIError(404, "Not Found"), "REPOSITORY_NOT_FOUND"),
            (HostingAPIError(404, "Gist not found"), "SNIPPET_NOT_FOUND"),
            (
                HostingAPIError(422, "name already exists on this account"),
                "REPOSITORY_NAME_CONFLICT",
            ),
            (HostingAPIError(422, "Validation Failed"), "INVALID_SERVER_NAME"),
            (HostingAPIError(429, "Too Many Requests"), "RATE_LIMIT_EXCEEDED"),
            (HostingAPIError(502, "Bad Gateway"), "SERVICE_UNAVAILABLE"),
            (HostingAPIError(503, "Unavailable"), "SERVICE_UNAVAILABLE"),
            (HostingAPIError(500, "Server Error"), "UNKNOWN_ERROR"),
            (HostingAPIError(None, "Request timed out: read"), "NETWORK_TIMEOUT"),
            (HostingAPIError(None, "Connection error: ECONNRESET"), "CONNECTION_RESET"),
            (Timeout("slow"), "NETWORK_TIMEOUT"),
            (TimeoutError(), "NETWORK_TIMEOUT"),
            (RequestsConnectionError("boom"), "CONNECTION_RESET"),
            (ConnectionResetError(), "CONNECTION_RESET"),
            (ValueError("unexpected"), "UNKNOWN_ERROR"),
            (NameConflictError("weather", 3), "REPOSITORY_NAME_CONFLICT"),
        ],
    )
    def test_code_table(
        self, classifier: ErrorClassifier, error: Exception, code: str
    ) -> None:
        assert classifier.classify(error).code == DeploymentErrorCode(code)

    @pytest.mark.parametrize("code", list(DeploymentErrorCode))
    def test_policy_comes_from_table(
        self, classifier: ErrorClassifier, code: DeploymentErrorCode
    ) -> None:
        """Every code classifies to the fixed strategy of its policy."""
        classified = classifier.classify(PublishError(code, "failure"))

        assert classified.code == code
        assert classified.retry_strategy == ERROR_POLICIES[code].strategy

    def test_user_message_is_fixed_per_code(self, classifier: ErrorClassifier) -> None:
        classified = classifier.classify(HostingAPIError(401, "token ghp_123 revoked"))

        assert "ghp_123" not in classified.user_message
        assert classified.message == "token ghp_123 revoked"

    def test_rate_limit_reset_five_seconds_ahead(
        self, classifier: ErrorClassifier, fixed_now: float
    ) -> None:
        """A 403 with reset 5s ahead waits about 6000ms with backoff."""
        error = HostingAPIError(
            403,
            "API rate limit exceeded for user",
            headers={
                "x-ratelimit-remaining": "0",
                "x-ratelimit-reset": str(int(fixed_now) + 5),
            },
        )

        classified = classifier.classify(error)

        assert classified.code == DeploymentErrorCode.RATE_LIMIT_EXCEEDED
        assert classified.retry_strategy == RetryStrategy.EXPONENTIAL_BACKOFF
        assert classified.retry_after_ms == pytest.approx(6000, abs=100)

    def test_403_with_remaining_zero_is_rate_limit(
        self, classifier: ErrorClassifier
    ) -> None:
        error = HostingAPIError(
            403, "Forbidden", headers={"x-ratelimit-remaining": "0"}
        )

        code = classifier.classify(error).code

        assert code == DeploymentErrorCode.RATE_LIMIT_EXCEEDED

    def test_base_delay_when_no_headers(self, classifier: ErrorClassifier) -> None:
        classified = classifier.classify(HostingAPIError(503, "Unavailable"))

        assert classified.retry_after_ms == 2000


class TestExtractRetryAfter:
    """Tests for rate-limit header parsing."""

    def test_retry_after_seconds(self, classifier: ErrorClassifier) -> None:
        assert classifier.extract_retry_after({"retry-after": "30"}) == 30_000

    def test_far_reset_uses_retry_after(
        self, classifier: ErrorClassifier, fixed_now: float
    ) -> None:
        headers = {
            "x-ratelimit-reset": str(int(fixed_now) + 3600),
            "retry-after": "7",
        }

        assert classifier.extract_retry_after(headers) == 7000

    def test_nothing_usable(self, classifier: ErrorClassifier) -> None:
        assert classifier.extract_retry_after({"retry-after": "soon"}) is None
        assert classifier.extract_retry_after({}) is None


class TestCanRetry:
    """Tests for can_retry."""

    @pytest.mark.parametrize("code", list(DeploymentErrorCode))
    def test_matches_policy(self, code: DeploymentErrorCode) -> None:
        policy = ERROR_POLICIES[code]
        for retries in range(0, 5):
            expected = (
                policy.strategy not in (RetryStrategy.NONE, RetryStrategy.MANUAL)
                and retries < policy.max_retries
            )
            assert ErrorClassifier.can_retry(code, retries) is expected

    def test_examples(self) -> None:
        assert ErrorClassifier.can_retry(DeploymentErrorCode.NETWORK_TIMEOUT, 2)
        assert not ErrorClassifier.can_retry(DeploymentErrorCode.NETWORK_TIMEOUT, 3)
        assert not ErrorClassifier.can_retry(DeploymentErrorCode.INVALID_CODE, 0)
        assert not ErrorClassifier.can_retry(
            DeploymentErrorCode.AUTHENTICATION_FAILED, 0
        )


class TestWithRetry:
    """Tests for with_retry."""

    def test_success_without_retry(
        self, retrying: ErrorClassifier, delays: list[float]
    ) -> None:
        outcome = retrying.with_retry(lambda: 42, "op")

        assert outcome.succeeded
        assert outcome.result == 42
        assert outcome.attempts == []
        assert delays == []

    def test_immediate_retry_then_success(
        self, retrying: ErrorClassifier, delays: list[float]
    ) -> None:
        fn = Mock(side_effect=[HostingAPIError(None, "timed out"), "ok"])

        outcome = retrying.with_retry(fn, "op")

        assert outcome.result == "ok"
        assert len(outcome.attempts) == 1
        assert outcome.attempts[0].waited_ms == 1000
        assert delays == [1.0]

    def test_backoff_doubles(
        self, retrying: ErrorClassifier, delays: list[float]
    ) -> None:
        fn = Mock(side_effect=HostingAPIError(429, "Too Many Requests"))

        outcome = retrying.with_retry(fn, "op")

        assert not outcome.succeeded
        assert outcome.error is not None
        assert outcome.error.code == DeploymentErrorCode.RATE_LIMIT_EXCEEDED
        assert delays == [2.0, 4.0, 8.0]
        assert fn.call_count == 4

    def test_none_strategy_is_not_retried(
        self, retrying: ErrorClassifier, delays: list[float]
    ) -> None:
        fn = Mock(side_effect=HostingAPIError(401, "Bad credentials"))

        outcome = retrying.with_retry(fn, "op")

        assert fn.call_count == 1
        assert len(outcome.attempts) == 1
        assert delays == []

    def test_unknown_error_retried_once(
        self, retrying: ErrorClassifier, delays: list[float]
    ) -> None:
        fn = Mock(side_effect=RuntimeError("weird"))

        outcome = retrying.with_retry(fn, "op")

        assert fn.call_count == 2
        assert outcome.error is not None
        assert outcome.error.code == DeploymentErrorCode.UNKNOWN_ERROR

    def test_max_retries_cap_and_callback(self, retrying: ErrorClassifier) -> None:
        fn = Mock(side_effect=HostingAPIError(503, "Unavailable"))
        seen: list[int] = []

        retrying.with_retry(
            fn, "op", max_retries=1, on_retry=lambda a: seen.append(a.attempt_number)
        )

        assert fn.call_count == 2
        assert seen == [1]


class TestAlternativeNames:
    """Tests for name suggestions."""

    def test_three_candidates(
        self, classifier: ErrorClassifier, fixed_now: float
    ) -> None:
        names = classifier.generate_alternative_names("weather")

        assert names[0] == f"weather-{str(int(fixed_now * 1000))[-6:]}"
        assert names[1] == "weather-v2"
        assert names[2].startswith("weather-")
        assert len(names[2]) == len("weather-") + 4

    def test_count(self, classifier: ErrorClassifier) -> None:
        assert len(classifier.generate_alternative_names("weather", count=2)) == 2
