"""Retry logic with exponential backoff and jitter

Implements the retry loop around the progression read-modify-write:
1. Only retries write conflicts (stale snapshot, serialization failure)
2. Uses exponential backoff with jitter so competing writers spread out
3. Gives up after a bounded number of attempts and reports a transient failure
"""

import asyncio
import random
import logging
from typing import Callable, Any, TypeVar, Optional
from functools import wraps

from src.config import COMMIT_MAX_ATTEMPTS, COMMIT_RETRY_BASE_DELAY, COMMIT_RETRY_MAX_DELAY
from src.exceptions import ConflictError, TransientFailureError

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Retry configuration
MAX_ATTEMPTS = COMMIT_MAX_ATTEMPTS
BASE_DELAY = COMMIT_RETRY_BASE_DELAY  # seconds
MAX_DELAY = COMMIT_RETRY_MAX_DELAY  # seconds
JITTER = 0.1  # 10% random jitter


def is_retryable_error(exc: Exception) -> bool:
    """
    Determine if error is transient and the action should be re-run.

    Retryable errors:
    - ConflictError (stale snapshot, duplicate insert, serialization failure)

    Non-retryable errors:
    - ValidationError / NotFoundError (re-running yields the same answer)
    - Connection and query failures

    Args:
        exc: The exception to check

    Returns:
        True if error should be retried, False otherwise
    """
    return isinstance(exc, ConflictError)


def calculate_backoff(attempt: int) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Formula: delay = min(BASE_DELAY * (2 ** attempt), MAX_DELAY) + jitter
    Jitter is random value between -10% and +10% of delay

    Args:
        attempt: The retry attempt number (0-indexed)

    Returns:
        Delay in seconds
    """
    # Exponential backoff
    delay = min(BASE_DELAY * (2 ** attempt), MAX_DELAY)

    # Add jitter to prevent thundering herd
    jitter_amount = random.uniform(-JITTER * delay, JITTER * delay)
    final_delay = delay + jitter_amount

    return max(final_delay, 0.0)  # Ensure non-negative


async def retry_with_backoff(
    func: Callable[..., T],
    *args: Any,
    max_attempts: Optional[int] = None,
    on_retry: Optional[Callable[[int, Exception], None]] = None,
    **kwargs: Any
) -> T:
    """
    Run async function, re-running it on write conflicts.

    The whole function is re-run, so it must re-read its snapshot on every
    call. Gives up after max_attempts calls in total.

    Args:
        func: Async function to run
        max_attempts: Maximum number of calls (default: COMMIT_MAX_ATTEMPTS)
        on_retry: Optional callback(attempt, error) invoked before each retry
        *args, **kwargs: Arguments to pass to func

    Returns:
        Result from func

    Raises:
        TransientFailureError: Every attempt conflicted
        Any non-retryable exception from func, unchanged
    """
    attempts = max_attempts if max_attempts is not None else MAX_ATTEMPTS
    name = getattr(func, "__name__", repr(func))

    for attempt in range(attempts):
        try:
            return await func(*args, **kwargs)

        except Exception as e:
            if not is_retryable_error(e):
                raise

            if attempt == attempts - 1:
                logger.error(f"[RETRY] All {attempts} attempts conflicted for {name}")
                raise TransientFailureError(
                    f"{name} kept conflicting after {attempts} attempts",
                    attempts=attempts,
                    user_id=getattr(e, "user_id", None),
                    operation=name,
                    cause=e,
                ) from e

            backoff = calculate_backoff(attempt)

            if on_retry is not None:
                on_retry(attempt + 1, e)

            logger.info(
                f"[RETRY] Attempt {attempt + 2}/{attempts} for {name} "
                f"after {backoff:.3f}s (error: {type(e).__name__})"
            )

            await asyncio.sleep(backoff)

    raise ValueError("max_attempts must be at least 1")


def with_retry(max_attempts: Optional[int] = None) -> Callable:
    """
    Decorator to re-run async functions on write conflicts.

    Example:
        @with_retry(max_attempts=3)
        async def award():
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await retry_with_backoff(func, *args, max_attempts=max_attempts, **kwargs)
        return wrapper
    return decorator
