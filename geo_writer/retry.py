"""
Retry with exponential backoff for generation backend calls.

Only errors classified as transient (rate limits, timeouts, unavailable
servers) are retried. Backend failures that remain are raised as
``GenerationError``; project errors pass through unchanged.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

import anthropic
from google.genai import errors as genai_errors

from geo_writer.exceptions import GenerationError, GeoWriterError
from geo_writer.run_log import get_logger

logger = get_logger("retry")

T = TypeVar("T")

MAX_ATTEMPTS = 3
BASE_DELAY = 1.0  # seconds
BACKOFF_MULTIPLIER = 2

_ANTHROPIC_TRANSIENT = (
    anthropic.RateLimitError,
    anthropic.APITimeoutError,
    anthropic.APIConnectionError,
    anthropic.InternalServerError,
)


def is_transient_error(exc: BaseException) -> bool:
    """Return True for backend errors worth retrying."""
    if isinstance(exc, _ANTHROPIC_TRANSIENT):
        return True
    if isinstance(exc, genai_errors.ServerError):
        return True
    if isinstance(exc, genai_errors.APIError) and getattr(exc, "code", None) == 429:
        return True
    return isinstance(exc, asyncio.TimeoutError)


def backoff_delay(attempt: int, base_delay: float = BASE_DELAY) -> float:
    """Delay after failed attempt ``attempt`` (1-based)."""
    return base_delay * (BACKOFF_MULTIPLIER ** (attempt - 1))


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    *,
    label: str = "backend call",
    max_attempts: int = MAX_ATTEMPTS,
    base_delay: float = BASE_DELAY,
    is_transient: Callable[[BaseException], bool] = is_transient_error,
) -> T:
    """Await ``func()`` up to ``max_attempts`` times, backing off on transient errors."""
    for attempt in range(1, max_attempts + 1):
        try:
            return await func()
        except GeoWriterError:
            raise
        except Exception as exc:
            if attempt >= max_attempts or not is_transient(exc):
                logger.error("%s failed with %s after %d attempt(s)", label, type(exc).__name__, attempt)
                raise GenerationError(f"{label} failed: {exc}") from exc
            delay = backoff_delay(attempt, base_delay)
            logger.warning(
                "%s failed with %s (attempt %d/%d), retrying in %.1fs",
                label, type(exc).__name__, attempt, max_attempts, delay,
            )
            await asyncio.sleep(delay)
    raise GenerationError(f"{label} was not attempted (max_attempts={max_attempts})")
