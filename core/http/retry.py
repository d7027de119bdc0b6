"""Retry utilities for async HTTP operations.

Only idempotent, cheap calls (the backend token endpoint) are retried.
Geocoding and map matching never retry: they degrade instead.
"""

from __future__ import annotations

import asyncio
import logging

from aiohttp import ClientConnectorError, ClientError, ServerDisconnectedError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (
    ClientConnectorError,
    ServerDisconnectedError,
    ClientError,
    asyncio.TimeoutError,
)


def retry_async(
    max_retries: int = 1,
    retry_delay: float = 0.5,
    backoff_factor: float = 2.0,
    retry_exceptions: tuple[type[BaseException], ...] = TRANSPORT_ERRORS,
):
    """Build a tenacity retry decorator for transport-level failures.

    Args:
        max_retries: Retry attempts in addition to the first attempt.
        retry_delay: Multiplier for the exponential wait, in seconds.
        backoff_factor: Exponential base between attempts.
        retry_exceptions: Exception types that trigger a retry.

    Returns:
        A tenacity ``retry`` decorator that re-raises the last error.
    """
    return retry(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=retry_delay, exp_base=backoff_factor),
        retry=retry_if_exception_type(retry_exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
