"""
Retry configuration for provider gateway HTTP calls.

Every gateway HTTP call is wrapped with the tenacity decorator produced by
create_retry_decorator(): at most 3 attempts with exponential backoff
starting at 1 second and doubling (1s, 2s), no jitter. The last error is
re-raised once attempts are exhausted.

Retried: httpx.HTTPStatusError (429, 5xx), httpx.ConnectError,
httpx.TimeoutException. Non-retryable statuses are converted to
ProviderError subclasses before raise_for_status(), so tenacity never
sees them.
"""

import logging

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

# Retry configuration constants
MAX_ATTEMPTS = 3
MIN_WAIT_SECONDS = 1
MAX_WAIT_SECONDS = 60

# Default per-request transport timeout in seconds
REQUEST_TIMEOUT = 30.0

# HTTP status codes that trigger a retry
RETRY_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

# HTTP status codes that fail immediately
NO_RETRY_STATUS_CODES = frozenset({400, 401, 403, 404})

# Subset of NO_RETRY_STATUS_CODES that indicate a rejected credential
AUTH_STATUS_CODES = frozenset({401, 403})

RETRYABLE_EXCEPTIONS = (
    httpx.HTTPStatusError,
    httpx.ConnectError,
    httpx.TimeoutException,
)


def create_retry_decorator():
    """
    Create the tenacity retry decorator used for gateway HTTP calls.

    Backoff is wait_exponential(multiplier=1, min=1): 1s before the second
    attempt, 2s before the third.

    Returns:
        Callable: Decorator that works for both sync and async functions

    Example:
        >>> @create_retry_decorator()
        ... async def post():
        ...     response = await client.post(url, json=payload)
        ...     response.raise_for_status()
        ...     return response
    """
    return retry(
        stop=stop_after_attempt(MAX_ATTEMPTS),
        wait=wait_exponential(
            multiplier=1, min=MIN_WAIT_SECONDS, max=MAX_WAIT_SECONDS
        ),
        retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
