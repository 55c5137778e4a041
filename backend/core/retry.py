"""Exponential-backoff retry for outbound async calls."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def retry_api_call(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
) -> T:
    """Await ``fn`` up to ``max_retries`` times.

    After failed attempt ``i`` (zero-based, not the last) sleeps
    ``initial_delay * 2 ** i`` seconds. No jitter.

    Args:
        fn: Zero-argument coroutine factory, called once per attempt.
        max_retries: Total number of attempts.
        initial_delay: Delay in seconds before the second attempt.

    Returns:
        Result of the first successful attempt.

    Raises:
        The exception from the final attempt.
    """
    if max_retries < 1:
        raise ValueError("max_retries must be at least 1")

    for attempt in range(max_retries):
        try:
            return await fn()
        except Exception as e:
            if attempt == max_retries - 1:
                logger.error("retry.exhausted", attempts=max_retries, error=str(e))
                raise

            delay = initial_delay * (2 ** attempt)
            logger.warning("retry.backoff", attempt=attempt + 1, delay_s=delay, error=str(e))
            await asyncio.sleep(delay)

    raise RuntimeError("Maximum retries exceeded")
