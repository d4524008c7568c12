"""
Retry utility for transient failures when talking to the reply model.
"""

import asyncio

import ollama
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

# Server-side statuses worth another attempt
TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}


def is_transient_error(error: BaseException) -> bool:
    """Connection drops, timeouts, rate limits and 5xx answers."""
    if isinstance(error, ollama.ResponseError):
        return error.status_code in TRANSIENT_STATUS_CODES
    return isinstance(error, (ConnectionError, asyncio.TimeoutError))


def retry_on_transient_errors(max_attempts=3, min_wait=1, max_wait=10):
    """
    Decorator to retry coroutines on transient errors.

    Args:
        max_attempts: Maximum number of attempts (default: 3)
        min_wait: Lower bound of the exponential backoff, in seconds
        max_wait: Upper bound of the exponential backoff, in seconds

    Returns:
        Decorated function with exponential backoff retry logic. The last
        error is re-raised once attempts run out.
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception(is_transient_error),
        reraise=True,
    )
