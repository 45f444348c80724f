"""Exponential backoff for transient HTTP failures inside a pipeline stage."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx

from .config import get_config

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RETRYABLE_STATUS = frozenset({408, 425, 429, 500, 502, 503, 504})


def _is_retryable(exc: Exception) -> bool:
    """Transport errors and throttling/server status codes are worth another try."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in _RETRYABLE_STATUS
    msg = str(exc).lower()
    return "timed out" in msg or "timeout" in msg


async def with_retry(coro_factory: Callable[[], Awaitable[T]], *, label: str = "request") -> T:
    """Await ``coro_factory()`` until it succeeds, backing off between transient failures.

    A fresh awaitable is built for every attempt. Attempt count and delays come
    from ``retry_max_attempts``, ``retry_base_delay`` and ``retry_max_delay``;
    each delay doubles with jitter and is capped. Non-retryable errors, and the
    error from the final attempt, propagate unchanged.
    """
    cfg = get_config()
    attempts = max(1, cfg.retry_max_attempts)

    attempt = 0
    while True:
        attempt += 1
        try:
            return await coro_factory()
        except Exception as exc:
            if attempt >= attempts or not _is_retryable(exc):
                raise
            delay = min(cfg.retry_base_delay * 2 ** (attempt - 1) + random.random(), cfg.retry_max_delay)
            logger.warning("%s failed (%s), attempt %d/%d, retrying in %.1fs", label, exc, attempt, attempts, delay)
            await asyncio.sleep(delay)
