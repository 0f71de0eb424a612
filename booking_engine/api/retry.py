# booking_engine/api/retry.py
#
# Retry utilities with exponential backoff for upstream calls

import logging
import time
from functools import wraps
from typing import Callable

logger = logging.getLogger(__name__)


def retry_sync(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: tuple = (Exception,),
    sleep: Callable[[float], None] = None,
):
    """
    Decorator for synchronous functions with retry logic.

    Args:
        max_retries: Maximum number of retry attempts (default: 3)
        initial_delay: Initial delay in seconds (default: 1.0)
        max_delay: Maximum delay in seconds (default: 60.0)
        exponential_base: Base for exponential backoff (default: 2.0)
        exceptions: Tuple of exceptions to catch and retry (default: all exceptions)
        sleep: Function used to wait between attempts (default: time.sleep)

    Usage:
        @retry_sync(max_retries=3, exceptions=(httpx.TransportError,))
        def my_function():
            ...

    The last exception is re-raised once all attempts fail.
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            delay = initial_delay

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= max_retries:
                        logger.error(f"All {max_retries + 1} attempts failed for {func.__name__}. Last error: {e}")
                        raise
                    logger.warning(
                        f"Attempt {attempt + 1}/{max_retries + 1} failed for {func.__name__}: {e}. "
                        f"Retrying in {delay:.2f}s..."
                    )
                    (sleep or time.sleep)(delay)
                    delay = min(delay * exponential_base, max_delay)

        return wrapper
    return decorator
