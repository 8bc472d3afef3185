# AGPL-3.0 License

"""
Retry with exponential backoff for GitHub API calls.
"""

import asyncio
import math
from typing import Any, Awaitable, Callable, Optional, TypeVar

from branch_guard.config_loader import get_settings
from branch_guard.log import get_logger

T = TypeVar("T")

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503})


def _get_status(error: BaseException) -> Optional[int]:
    status = getattr(error, "status", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def _get_headers(error: BaseException) -> dict[str, Any]:
    headers = getattr(error, "headers", None)
    if headers is None:
        response = getattr(error, "response", None)
        headers = getattr(response, "headers", None)
    if not headers:
        return {}
    return {str(k).lower(): v for k, v in dict(headers).items()}


def is_rate_limited_403(error: BaseException) -> bool:
    """
    A 403 caused by rate limiting (as opposed to a permission denial).

    GitHub sends ``retry-after`` and/or ``x-ratelimit-remaining: 0`` when the
    request was throttled.
    """
    headers = _get_headers(error)
    if headers.get("retry-after"):
        return True
    return str(headers.get("x-ratelimit-remaining", "")) == "0"


def is_retryable(error: BaseException) -> bool:
    status = _get_status(error)
    if status is None:
        return False
    if status in RETRYABLE_STATUSES:
        return True
    return status == 403 and is_rate_limited_403(error)


def get_retry_after(error: BaseException) -> Optional[float]:
    """Server-provided delay in seconds, if any."""
    value = _get_headers(error).get("retry-after")
    if value is None:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    if math.isfinite(seconds) and seconds > 0:
        return seconds
    return None


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    max_retries: Optional[int] = None,
    base_delay: Optional[float] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Await ``fn()``, retrying transient and rate-limit failures.

    Retries on 429, 500, 502, 503 and on 403 responses carrying rate-limit
    headers. The delay is the ``retry-after`` header when present, otherwise
    ``base_delay * 2 ** attempt``. Any other error, or the last error once
    ``max_retries`` retries are used up, is re-raised unchanged.

    Args:
        fn: Zero-argument coroutine factory performing the call
        max_retries: Number of retries after the first attempt (defaults to config)
        base_delay: Base delay in seconds (defaults to config)
        sleep: Awaitable sleep function

    Returns:
        Whatever ``fn()`` returns
    """
    retry_settings = get_settings().get("retry", {})
    if max_retries is None:
        max_retries = retry_settings.get("max_retries", 3)
    if base_delay is None:
        base_delay = retry_settings.get("base_delay_seconds", 1.0)

    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as e:
            if attempt >= max_retries or not is_retryable(e):
                raise

            delay = get_retry_after(e)
            if delay is None:
                delay = base_delay * (2 ** attempt)

            get_logger().warning(
                f"Retrying GitHub API request (attempt {attempt + 1}/{max_retries}, "
                f"status {_get_status(e)}, waiting {delay:.1f}s)"
            )
            await sleep(delay)
            attempt += 1
