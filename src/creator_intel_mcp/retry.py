"""Backoff for rate-limited or briefly unavailable Gemini calls.

Extraction and clustering put their own deadline around each retried call,
so only provider-side transient failures are retried here. Timeouts are
left to that deadline, which degrades to fallback records.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .config import get_config

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Matched case-insensitively against the exception message
_TRANSIENT_MARKERS: tuple[str, ...] = (
    "429",
    "quota",
    "resource_exhausted",
    "500",
    "503",
    "service unavailable",
    "overloaded",
)


def _is_retryable(exc: Exception) -> bool:
    message = str(exc).lower()
    return any(marker in message for marker in _TRANSIENT_MARKERS)


async def with_retry(call: Callable[[], Awaitable[T]]) -> T:
    """Await ``call()``, re-invoking it after transient provider errors.

    ``call`` must build a fresh awaitable on every invocation. The delay
    doubles per attempt from ``GEMINI_RETRY_BASE_DELAY`` plus up to one
    second of jitter, capped at ``GEMINI_RETRY_MAX_DELAY``. Non-transient
    errors and the final attempt's error propagate unchanged.
    """
    cfg = get_config()
    attempts = cfg.retry_max_attempts

    for attempt in range(1, attempts + 1):
        try:
            return await call()
        except Exception as exc:
            if attempt == attempts or not _is_retryable(exc):
                raise
            delay = min(cfg.retry_base_delay * 2 ** (attempt - 1) + random.random(), cfg.retry_max_delay)
            logger.warning("Transient Gemini error (attempt %d/%d), backing off %.1fs: %s", attempt, attempts, delay, exc)
            await asyncio.sleep(delay)
    raise RuntimeError(f"with_retry made no attempts (GEMINI_RETRY_MAX_ATTEMPTS={attempts})")
