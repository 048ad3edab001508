"""Classification of provider failures and policy-driven retry.

Maps a raw hosting API failure onto a ``DeploymentErrorCode`` and the static
retry policy for that code.
"""

from __future__ import annotations

import logging
import secrets
import string
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Generic, TypeVar

from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import Timeout

from mcpship.lib.errors import HostingAPIError
from mcpship.models.errors import (
    ERROR_POLICIES,
    ERROR_USER_MESSAGES,
    ClassifiedError,
    DeploymentErrorCode,
    RetryAttempt,
    RetryStrategy,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_RESET_WAIT_MS = 60_000
RESET_BUFFER_MS = 1_000

_TIMEOUT_MARKERS = ("timeout", "timed out", "etimedout")
_RESET_MARKERS = ("econnreset", "connection reset", "connection aborted")
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


@dataclass
class RetryOutcome(Generic[T]):
    """Result of ``ErrorClassifier.with_retry``.

    Exactly one of ``result`` / ``error`` is meaningful: ``error`` is set when
    every allowed attempt failed.
    """

    result: T | None = None
    error: ClassifiedError | None = None
    attempts: list[RetryAttempt] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.error is None


def _status_of(error: BaseException) -> int | None:
    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(error, "status", None)
    return status if isinstance(status, int) and status > 0 else None


def _headers_of(error: BaseException) -> Mapping[str, str]:
    headers = getattr(error, "headers", None)
    if not headers:
        return {}
    return {str(k).lower(): str(v) for k, v in dict(headers).items()}


def _message_of(error: BaseException) -> str:
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(error) or type(error).__name__


class ErrorClassifier:
    """Classify provider errors and run policy-driven retries.

    Example:
        >>> classifier = ErrorClassifier()
        >>> err = classifier.classify(HostingAPIError(401, "Bad credentials"))
        >>> err.code
        <DeploymentErrorCode.AUTHENTICATION_FAILED: 'AUTHENTICATION_FAILED'>
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the classifier.

        Args:
            clock: Wall clock in epoch seconds (used for reset headers)
            sleep: Sleep function in seconds (used between retries)
        """
        self._clock = clock
        self._sleep = sleep

    def classify(self, error: BaseException) -> ClassifiedError:
        """Map ``error`` onto a code, user message and retry policy."""
        code = self._code_for(error)
        policy = ERROR_POLICIES[code]
        retry_after = self.extract_retry_after(_headers_of(error))
        if retry_after is None and policy.base_delay_ms > 0:
            retry_after = policy.base_delay_ms

        message = _message_of(error)
        logger.debug("Classified %r as %s", message, code.value)
        return ClassifiedError(
            code=code,
            message=message,
            user_message=ERROR_USER_MESSAGES[code],
            retry_strategy=policy.strategy,
            retry_after_ms=retry_after,
        )

    def extract_retry_after(self, headers: Mapping[str, str]) -> int | None:
        """Derive a wait in milliseconds from rate-limit response headers.

        ``x-ratelimit-reset`` wins when it lies within the next 60 seconds (a
        one second buffer is added); otherwise ``retry-after`` seconds are
        used. Returns None when neither applies.
        """
        reset = headers.get("x-ratelimit-reset")
        if reset:
            try:
                wait_ms = int(reset) * 1000 - int(self._clock() * 1000)
            except ValueError:
                wait_ms = 0
            if 0 < wait_ms <= MAX_RESET_WAIT_MS:
                return wait_ms + RESET_BUFFER_MS

        retry_after = headers.get("retry-after")
        if retry_after:
            try:
                return int(retry_after) * 1000
            except ValueError:
                return None
        return None

    def with_retry(
        self,
        fn: Callable[[], T],
        operation: str,
        max_retries: int | None = None,
        on_retry: Callable[[RetryAttempt], None] | None = None,
    ) -> RetryOutcome[T]:
        """Call ``fn`` and retry according to the policy of each failure.

        Args:
            fn: Zero-argument callable
            operation: Operation name for logs
            max_retries: Optional cap below the code's own maximum
            on_retry: Called with each attempt that will be retried

        Returns:
            RetryOutcome with either the result or the last classified error,
            plus one RetryAttempt per failed call
        """
        attempts: list[RetryAttempt] = []
        attempt = 0
        while True:
            try:
                return RetryOutcome(result=fn(), attempts=attempts)
            except Exception as exc:  # noqa: BLE001 - classified below
                classified = self.classify(exc)

            policy = ERROR_POLICIES[classified.code]
            record = RetryAttempt(
                attempt_number=attempt + 1,
                timestamp=datetime.now(timezone.utc),
                error_code=classified.code,
                error_message=classified.message,
            )
            attempts.append(record)
            logger.warning(
                "%s failed (attempt %d): %s - %s",
                operation,
                attempt + 1,
                classified.code.value,
                classified.message,
            )

            limit = policy.max_retries
            if max_retries is not None:
                limit = min(limit, max_retries)
            if policy.strategy in (RetryStrategy.NONE, RetryStrategy.MANUAL):
                break
            if attempt >= limit:
                break

            if policy.strategy == RetryStrategy.EXPONENTIAL_BACKOFF:
                delay_ms = policy.base_delay_ms * 2**attempt
            else:
                delay_ms = policy.base_delay_ms
            if classified.retry_after_ms:
                delay_ms = max(delay_ms, classified.retry_after_ms)

            attempts[-1] = record.model_copy(update={"waited_ms": delay_ms})
            logger.info("Waiting %dms before retry %d", delay_ms, attempt + 2)
            if on_retry is not None:
                on_retry(attempts[-1])
            self._sleep(delay_ms / 1000)
            attempt += 1

        return RetryOutcome(error=classified, attempts=attempts)

    def generate_alternative_names(self, base_name: str, count: int = 3) -> list[str]:
        """Suggest names for recovering from a name conflict.

        Candidates are ``{base}-{last 6 digits of ms time}``, ``{base}-v2`` and
        ``{base}-{4 random chars}``.
        """
        timestamp = str(int(self._clock() * 1000))[-6:]
        random_part = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(4))
        suggestions = [
            f"{base_name}-{timestamp}",
            f"{base_name}-v2",
            f"{base_name}-{random_part}",
        ]
        return suggestions[:count]

    @staticmethod
    def can_retry(code: DeploymentErrorCode, current_retries: int = 0) -> bool:
        """Whether another retry is allowed after ``current_retries`` retries."""
        policy = ERROR_POLICIES[code]
        return (
            policy.strategy not in (RetryStrategy.NONE, RetryStrategy.MANUAL)
            and current_retries < policy.max_retries
        )

    @staticmethod
    def get_retry_strategy(code: DeploymentErrorCode) -> RetryStrategy:
        return ERROR_POLICIES[code].strategy

    def _code_for(self, error: BaseException) -> DeploymentErrorCode:
        existing = getattr(error, "code", None)
        if isinstance(existing, DeploymentErrorCode):
            return existing

        status = _status_of(error)
        message = _message_of(error)
        lowered = message.lower()

        if status is None:
            return self._transport_code(error, lowered)
        if status == 401:
            return DeploymentErrorCode.AUTHENTICATION_FAILED
        if status == 403:
            if self._is_throttled(lowered, _headers_of(error)):
                if "secondary" in lowered:
                    return DeploymentErrorCode.SECONDARY_RATE_LIMIT
                return DeploymentErrorCode.RATE_LIMIT_EXCEEDED
            return DeploymentErrorCode.INSUFFICIENT_PERMISSIONS
        if status == 404:
            if "gist" in lowered or "snippet" in lowered:
                return DeploymentErrorCode.SNIPPET_NOT_FOUND
            return DeploymentErrorCode.REPOSITORY_NOT_FOUND
        if status == 422:
            if "already exists" in lowered:
                return DeploymentErrorCode.REPOSITORY_NAME_CONFLICT
            return DeploymentErrorCode.INVALID_SERVER_NAME
        if status == 429:
            return DeploymentErrorCode.RATE_LIMIT_EXCEEDED
        if status in (502, 503, 504):
            return DeploymentErrorCode.SERVICE_UNAVAILABLE
        return DeploymentErrorCode.UNKNOWN_ERROR

    @staticmethod
    def _is_throttled(lowered: str, headers: Mapping[str, str]) -> bool:
        if "rate limit" in lowered or "secondary" in lowered:
            return True
        remaining = headers.get("x-ratelimit-remaining")
        if remaining == "0":
            return True
        if "x-ratelimit-reset" in headers and remaining is None:
            return True
        return "retry-after" in headers

    @staticmethod
    def _transport_code(error: BaseException, lowered: str) -> DeploymentErrorCode:
        cause = error.__cause__ if isinstance(error, HostingAPIError) else error
        if isinstance(error, (Timeout, TimeoutError)) or isinstance(
            cause, (Timeout, TimeoutError)
        ):
            return DeploymentErrorCode.NETWORK_TIMEOUT
        if any(marker in lowered for marker in _TIMEOUT_MARKERS):
            return DeploymentErrorCode.NETWORK_TIMEOUT
        if isinstance(error, (RequestsConnectionError, ConnectionResetError)) or any(
            marker in lowered for marker in _RESET_MARKERS
        ):
            return DeploymentErrorCode.CONNECTION_RESET
        if isinstance(cause, (RequestsConnectionError, ConnectionResetError)):
            return DeploymentErrorCode.CONNECTION_RESET
        return DeploymentErrorCode.UNKNOWN_ERROR
