"""
Retry utilities with exponential backoff for broker calls.

Only connection-level failures are retried. Order processing itself is
never retried here; redelivery is the stream's job.
"""
import functools
import random
import time
from typing import Callable, Optional, Tuple, Type

from redis.exceptions import ConnectionError as RedisConnectionError, TimeoutError as RedisTimeoutError

from orderhub.utils.logger import log


# Default retryable exceptions (network/broker errors)
DEFAULT_RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    ConnectionError,
    TimeoutError,
    RedisConnectionError,
    RedisTimeoutError,
)


def calculate_backoff(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    jitter: bool = True
) -> float:
    """
    Calculate delay for exponential backoff.

    Args:
        attempt: Current attempt number (1-indexed)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay cap
        exponential_base: Base for exponential calculation
        jitter: Add randomness to prevent thundering herd

    Returns:
        Delay in seconds
    """
    delay = base_delay * (exponential_base ** (attempt - 1))
    delay = min(delay, max_delay)

    # Add jitter (0-25% of delay)
    if jitter:
        delay += delay * random.uniform(0, 0.25)

    return delay


def retry_sync(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retryable_exceptions: Tuple[Type[Exception], ...] = DEFAULT_RETRYABLE_EXCEPTIONS,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
):
    """
    Decorator for retrying a synchronous call with exponential backoff.

    Usage:
        @retry_sync(max_attempts=5)
        def connect():
            ...
    """
    def decorator(func: Callable):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(1, max_attempts + 1):
                try:
                    result = func(*args, **kwargs)
                    if attempt > 1:
                        log.info(f"{func.__name__} succeeded on attempt {attempt}")
                    return result
                except retryable_exceptions as e:
                    if attempt >= max_attempts:
                        log.error(f"{func.__name__} failed after {attempt} attempts: {e}")
                        raise

                    delay = calculate_backoff(attempt, base_delay=base_delay, max_delay=max_delay)
                    log.warning(
                        f"{func.__name__} attempt {attempt} failed: {e}. "
                        f"Retrying in {delay:.1f}s..."
                    )
                    if on_retry:
                        on_retry(attempt, e, delay)
                    sleep(delay)

        return wrapper

    return decorator
