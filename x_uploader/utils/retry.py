"""Retry helpers with linear backoff for async callables."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

T = TypeVar("T")


class RetryConfig:
    """``attempts`` counts every call, the first one included."""

    def __init__(self, *, attempts: int = 3, backoff_seconds: float = 1.0) -> None:
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds


def backoff_schedule(config: RetryConfig) -> list[float]:
    """Delays slept between consecutive attempts: ``backoff * 1, backoff * 2, ...``."""
    return [config.backoff_seconds * attempt for attempt in range(1, config.attempts)]


def retry_always(exc: BaseException) -> bool:
    return True


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    retry_config: RetryConfig | None = None,
    retry_if: Callable[[Exception], bool] = retry_always,
    on_retry: Callable[[int, Exception, float], None] | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    **kwargs: Any,
) -> T:
    """Call ``func`` until it succeeds or the attempts run out.

    After failed attempt ``k`` the helper sleeps ``backoff_seconds * k``. The
    last exception is re-raised once attempts are exhausted or ``retry_if``
    rejects it.
    """
    config = retry_config or RetryConfig()
    attempt = 0

    while True:
        attempt += 1
        try:
            return await func(*args, **kwargs)
        except Exception as exc:
            if attempt >= config.attempts or not retry_if(exc):
                raise
            delay = config.backoff_seconds * attempt
            if on_retry is not None:
                on_retry(attempt, exc, delay)
            await sleep(delay)


__all__ = ["RetryConfig", "backoff_schedule", "retry_always", "retry_async"]
