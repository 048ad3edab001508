"""Rate-limit aware retry for hosting API calls."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from typing import TypeVar

from mcpship.lib.errors import HostingAPIError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMIT_STATUSES = frozenset({403, 429})
MAX_RESET_WAIT_SECONDS = 60.0
RESET_BUFFER_SECONDS = 1.0


def reset_wait_seconds(
    headers: Mapping[str, str], now: float
) -> float | None:
    """Seconds until ``x-ratelimit-reset``, or None when absent or unparsable."""
    raw = headers.get("x-ratelimit-reset")
    if raw is None:
        return None
    try:
        return float(int(raw)) - now
    except (TypeError, ValueError):
        return None


def with_rate_limit_retry(
    fn: Callable[[], T],
    *,
    max_retries: int = 3,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.time,
) -> T:
    """Call ``fn``, retrying on 403/429 responses.

    The delay is ``2^(attempt+1)`` seconds unless ``x-ratelimit-reset`` points
    at most 60 seconds ahead, in which case that wait plus one second is used
    even when it is longer than the backoff.

    Args:
        fn: Zero-argument callable performing one API call
        max_retries: Retries after the first attempt
        sleep: Sleep function (seconds)
        clock: Wall clock (epoch seconds)

    Returns:
        Whatever ``fn`` returns

    Raises:
        HostingAPIError: Non rate-limit errors immediately, rate-limit errors
            once retries are exhausted
    """
    attempt = 0
    while True:
        try:
            return fn()
        except HostingAPIError as e:
            if e.status_code not in RATE_LIMIT_STATUSES:
                raise
            if attempt >= max_retries:
                logger.error("Rate limit exceeded after %d attempts", attempt + 1)
                raise

            delay = float(2 ** (attempt + 1))
            wait = reset_wait_seconds(e.headers, clock())
            if wait is not None and 0 < wait <= MAX_RESET_WAIT_SECONDS:
                delay = wait + RESET_BUFFER_SECONDS

            logger.warning(
                "Rate limited (HTTP %s), retrying in %.1fs (attempt %d/%d)",
                e.status_code,
                delay,
                attempt + 1,
                max_retries,
            )
            sleep(delay)
            attempt += 1
