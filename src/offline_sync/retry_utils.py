# SPDX-License-Identifier: MIT
"""Retry utilities for HTTP attempts."""

import asyncio
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, TypeVar

from .exceptions import RETRYABLE_ERRORS
from .logging_config import get_detail_logger
from .retry_policy import RetryPolicy


detail_logger = get_detail_logger()

T = TypeVar("T")


def async_retry_with_backoff(
    max_retries: int = 2,
    delay_millis: Callable[[int], float] = RetryPolicy.backoff_delay,
    exceptions: tuple[type[Exception], ...] = RETRYABLE_ERRORS,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator for retrying async functions with exponential backoff.

    Only transient failures are retried; anything outside ``exceptions``
    propagates on the first occurrence.

    Args:
        max_retries: Maximum number of retry attempts
        delay_millis: Maps the zero-based attempt number to a delay in milliseconds
        exceptions: Tuple of exception types to catch and retry

    Returns:
        Decorated async function

    Example:
        >>> @async_retry_with_backoff(max_retries=2)
        ... async def send():
        ...     return await executor.send(action)
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            attempt = 0

            while True:
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= max_retries:
                        detail_logger.debug(
                            f"{func.__name__} failed after {max_retries} retries: {e}"
                        )
                        raise

                    delay = delay_millis(attempt) / 1000
                    detail_logger.debug(
                        f"{func.__name__} failed (attempt {attempt + 1}/{max_retries}): {e}. "
                        f"Retrying in {delay:.1f}s..."
                    )
                    await asyncio.sleep(delay)
                    attempt += 1

        return wrapper

    return decorator
