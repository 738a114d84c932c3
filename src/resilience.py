"""Retry-then-fallback combinator and bounded fan-out shared by both orchestrators."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

from src.pipeline.errors import RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class AttemptResult(Generic[T]):
    """Value returned by :func:`attempt_with_retry_and_fallback` plus bookkeeping."""

    value: T
    attempts: int
    used_fallback: bool


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Exponential backoff with jitter for the pause after *attempt* (1-based)."""
    if base_delay <= 0:
        return 0.0
    delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
    return delay + random.uniform(0.05, 0.4) * base_delay


async def _call(factory: Callable[[], Awaitable[T]], timeout: float | None) -> T:
    if timeout is None:
        return await factory()
    return await asyncio.wait_for(factory(), timeout=timeout)


async def attempt_with_retry_and_fallback(
    primary: Callable[[], Awaitable[T]],
    fallback: Callable[[], Awaitable[T]] | None = None,
    *,
    max_retries: int = 3,
    timeout: float | None = None,
    base_delay: float = 1.0,
    max_delay: float = 12.0,
    label: str = "",
) -> AttemptResult[T]:
    """Await *primary* up to *max_retries* times, then *fallback* exactly once.

    Every call is bounded by *timeout*; a timeout is handled like any other
    failure. Cancellation is never absorbed.

    Args:
        primary: Zero-argument factory returning a fresh awaitable per attempt.
        fallback: Optional factory for the single last-resort call.
        max_retries: Number of primary attempts (at least one).
        timeout: Per-call timeout in seconds, or ``None`` for no bound.
        base_delay: Initial backoff between primary attempts; ``0`` disables it.
        max_delay: Upper bound for a single backoff pause.
        label: Short description used in logs and the raised error.

    Returns:
        An :class:`AttemptResult` with the value and how it was obtained.

    Raises:
        RetryExhaustedError: All primary attempts and the fallback failed.
    """
    attempts = 0
    last_error: Exception | None = None
    max_retries = max(1, max_retries)

    for attempt in range(1, max_retries + 1):
        attempts += 1
        try:
            value = await _call(primary, timeout)
            return AttemptResult(value=value, attempts=attempts, used_fallback=False)
        except Exception as exc:  # noqa: BLE001 - provider error typing is broad
            last_error = exc
            logger.warning("%s: attempt %d/%d failed: %r", label or "call", attempt, max_retries, exc)
            if attempt < max_retries:
                await asyncio.sleep(backoff_delay(attempt, base_delay, max_delay))

    if fallback is not None:
        attempts += 1
        logger.info("%s: primary exhausted, trying fallback", label or "call")
        try:
            value = await _call(fallback, timeout)
            return AttemptResult(value=value, attempts=attempts, used_fallback=True)
        except Exception as exc:  # noqa: BLE001 - provider error typing is broad
            last_error = exc
            logger.warning("%s: fallback failed: %r", label or "call", exc)

    raise RetryExhaustedError(label, attempts, last_error)


class CallSpacer:
    """Enforces a minimum interval between the starts of successive calls."""

    def __init__(self, min_interval: float) -> None:
        self.min_interval = max(0.0, min_interval)
        self._lock = asyncio.Lock()
        self._last_start: float | None = None

    async def wait(self) -> None:
        if self.min_interval <= 0:
            return
        async with self._lock:
            now = time.monotonic()
            if self._last_start is not None:
                remaining = self._last_start + self.min_interval - now
                if remaining > 0:
                    await asyncio.sleep(remaining)
            self._last_start = time.monotonic()


async def bounded_gather(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    *,
    max_concurrency: int = 1,
    min_interval: float = 0.0,
) -> list[R]:
    """Run *worker* over *items* with bounded concurrency, preserving input order.

    With ``max_concurrency=1`` items are processed strictly sequentially.
    """
    semaphore = asyncio.Semaphore(max(1, max_concurrency))
    spacer = CallSpacer(min_interval)

    async def run(item: T) -> R:
        async with semaphore:
            await spacer.wait()
            return await worker(item)

    if max_concurrency <= 1:
        return [await run(item) for item in items]
    return list(await asyncio.gather(*(run(item) for item in items)))
