# src/remote/retry.py — v1
"""Retry policy with exponential backoff for artifact API requests.

Only throttling (429) and server errors other than 501 are retried;
everything else fails fast so a dead remote never stalls a build.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

HTTP_TOO_MANY_REQUESTS = 429
HTTP_SERVER_ERROR = 500
HTTP_NOT_IMPLEMENTED = 501


@dataclass(frozen=True)
class RetryConfig:
    """Retry configuration for artifact requests."""

    max_retries: int = 2
    base_delay_s: float = 0.5
    backoff_factor: float = 2.0
    jitter: bool = True


DEFAULT_RETRY_CONFIG = RetryConfig()


def should_retry(response: httpx.Response) -> bool:
    """Whether a response status warrants another attempt."""
    status = response.status_code
    if status == HTTP_TOO_MANY_REQUESTS:
        return True
    return status >= HTTP_SERVER_ERROR and status != HTTP_NOT_IMPLEMENTED


def _compute_delay(config: RetryConfig, attempt: int) -> float:
    """Compute delay for a given attempt (0-based)."""
    delay = config.base_delay_s * (config.backoff_factor ** attempt)
    if config.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return delay


async def with_retry(
    send: Callable[[], Awaitable[httpx.Response]],
    *,
    operation: str = "request",
    config: RetryConfig | None = None,
) -> httpx.Response:
    """Send a request, retrying retryable statuses.

    Transport errors propagate immediately. The last retryable response is
    returned once retries run out, so callers see its real status code.
    """
    config = config or DEFAULT_RETRY_CONFIG
    attempts = 0

    while True:
        response = await send()
        attempts += 1
        if not should_retry(response) or attempts > config.max_retries:
            return response

        delay = _compute_delay(config, attempts - 1)
        logger.debug(
            "Artifact %s got HTTP %d (attempt %d/%d), retrying in %.1fs",
            operation, response.status_code, attempts, config.max_retries, delay,
        )
        await asyncio.sleep(delay)
