"""Retry utilities for GitHub API calls."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import aiohttp

from mnemo.github.errors import RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMIT_MAX_RETRIES = 5

NETWORK_ERROR_PATTERNS = (
    "timeout",
    "etimedout",
    "econnreset",
    "econnrefused",
    "enotfound",
    "network",
)


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    ``max_retries`` applies to server and network errors. Rate-limited calls
    always get ``RATE_LIMIT_MAX_RETRIES``.
    """

    max_retries: int = 3
    initial_delay: float = 1.0  # seconds
    backoff_multiplier: float = 2.0


def _status(error: BaseException) -> int | None:
    status = getattr(error, "status", None)
    return status if isinstance(status, int) else None


def _header(error: BaseException, name: str) -> str | None:
    headers = getattr(error, "headers", None)
    if not headers:
        return None
    value = headers.get(name)
    if value is None:
        value = headers.get(name.lower())
    return value


def is_server_error(error: BaseException) -> bool:
    status = _status(error)
    return status is not None and 500 <= status < 600


def is_rate_limit_error(error: BaseException) -> bool:
    """Primary rate limit: 429, or a 403 reporting an exhausted quota or saying so."""
    if isinstance(error, RateLimitError) and not error.secondary:
        return True
    status = _status(error)
    if status == 429:
        return True
    return status == 403 and _header(error, "x-ratelimit-remaining") == "0"


def is_secondary_rate_limit(error: BaseException) -> bool:
    """Secondary (abuse) rate limit, signalled only through the message."""
    if _status(error) != 403:
        return False
    return "secondary rate limit" in str(error).lower()


def is_network_error(error: BaseException) -> bool:
    if isinstance(error, (asyncio.TimeoutError, aiohttp.ClientConnectionError, ConnectionError)):
        return True
    message = str(error).lower()
    return any(p in message for p in NETWORK_ERROR_PATTERNS)


def is_retryable_error(error: BaseException) -> bool:
    """Check if an error is worth another attempt.

    Retryable errors include:
    - Server errors (5xx)
    - Primary and secondary rate limits
    - Timeouts, connection resets/refusals and DNS failures

    Any other HTTP 4xx (auth, not found, validation) is final.
    """
    if is_rate_limit_error(error) or is_secondary_rate_limit(error):
        return True
    if is_server_error(error):
        return True
    status = _status(error)
    if status is not None and 400 <= status < 500:
        return False
    return is_network_error(error)


def extract_retry_after(error: BaseException) -> float | None:
    """Return the ``retry-after`` delay in seconds carried by the error."""
    value: Any = getattr(error, "retry_after", None)
    if value is None:
        value = _header(error, "retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


async def with_retry(
    func: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    operation_name: str = "GitHub API call",
) -> T:
    """Execute an async function with exponential backoff retry.

    Args:
        func: Async function to execute.
        config: Retry configuration.
        operation_name: Name for logging.

    Returns:
        Result of the function.

    Raises:
        The last exception if all retries fail or the error is not retryable.
    """
    config = config or RetryConfig()
    last_error: BaseException | None = None

    for attempt in range(max(RATE_LIMIT_MAX_RETRIES, config.max_retries) + 1):
        try:
            return await func()
        except Exception as e:
            last_error = e

            rate_limited = is_rate_limit_error(e) or is_secondary_rate_limit(e)
            max_retries = RATE_LIMIT_MAX_RETRIES if rate_limited else config.max_retries

            if not is_retryable_error(e):
                raise

            if attempt >= max_retries:
                logger.warning(
                    "%s failed after %d attempts: %s", operation_name, attempt + 1, e
                )
                raise

            retry_after = extract_retry_after(e) if rate_limited else None
            if retry_after is not None:
                delay = retry_after
            else:
                delay = config.initial_delay * config.backoff_multiplier**attempt

            logger.info(
                "%s attempt %d/%d failed (%s), retrying in %.1fs",
                operation_name,
                attempt + 1,
                max_retries + 1,
                e,
                delay,
            )
            await asyncio.sleep(delay)

    # Should never reach here, but satisfy type checker
    assert last_error is not None
    raise last_error
