"""Exponential backoff for flaky decode calls.

A recording that is still being written, or sits on a slow network mount,
can fail to decode once and succeed a moment later. The pipeline wraps the
cache lookup in retry_with_backoff; the cache itself never retries.
"""

import asyncio
import logging
from collections.abc import Callable, Iterator
from functools import wraps
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_MAX_DELAY = 30.0


def backoff_delays(
    max_retries: int, base_delay: float, max_delay: float = DEFAULT_MAX_DELAY
) -> Iterator[float]:
    """Yield the sleep before each retry: base_delay * 2^n, capped at max_delay."""
    for attempt in range(max_retries):
        yield min(base_delay * (2**attempt), max_delay)


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    retryable_exceptions: tuple[type[Exception], ...] | None = None,
    max_delay: float = DEFAULT_MAX_DELAY,
    stage: str | None = None,
) -> Callable:
    """Decorator retrying an async callable with exponential backoff.

    Args:
        max_retries: Retries after the first attempt.
        base_delay: Seconds before the first retry.
        retryable_exceptions: Exception types worth retrying. None retries
            everything; anything else propagates on the first occurrence.
        max_delay: Upper bound for a single sleep.
        stage: Name logged with each retry (defaults to the function name).

    The raised exception carries ``_retry_count``, the number of retries
    spent before giving up.
    """

    def decorator(func: Callable) -> Callable:
        stage_name = stage or func.__name__

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            delays = backoff_delays(max_retries, base_delay, max_delay)
            retries = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except Exception as exc:
                    permanent = retryable_exceptions is not None and not isinstance(
                        exc, retryable_exceptions
                    )
                    delay = None if permanent else next(delays, None)
                    if delay is None:
                        exc._retry_count = retries  # type: ignore[attr-defined]
                        raise
                    retries += 1
                    logger.warning(
                        "Retry %d/%d for %s in %.2fs: %s",
                        retries,
                        max_retries,
                        stage_name,
                        delay,
                        exc,
                        extra={
                            "source": getattr(exc, "source", None),
                            "stage": stage_name,
                            "error": str(exc),
                        },
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
