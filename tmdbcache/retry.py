"""
Retry logic with a fixed (optionally growing) delay between attempts.

Both fetchers go through this module so a page and a movie detail record are
retried the same way: a bounded number of attempts, a pause between them, and
a RetryError once the attempts run out.
"""

import time
import functools
from typing import Callable, Type, Tuple, Optional


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


def retry(
    max_attempts: int = 3,
    delay: float = 0.25,
    backoff: float = 1.0,
    max_delay: float = 60.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable] = None,
):
    """
    Decorator for retrying a function a bounded number of times.

    Args:
        max_attempts: Total number of attempts, first call included (min 1)
        delay: Seconds to wait between attempts
        backoff: Multiplier applied to the delay after each attempt (1.0 = fixed)
        max_delay: Upper bound for the delay in seconds
        exceptions: Tuple of exceptions to catch and retry
        on_retry: Optional callback function(attempt, exception, delay)

    Example:
        @retry(max_attempts=3, delay=0.25)
        def fetch_data(url):
            return requests.get(url)
    """
    attempts = max(1, int(max_attempts))

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            current_delay = delay

            for attempt in range(1, attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    # Don't sleep after the last attempt
                    if attempt == attempts:
                        raise RetryError(
                            f"Failed after {attempts} attempts: {str(e)}",
                            attempts=attempts,
                        ) from e

                    wait = min(current_delay, max_delay)
                    if on_retry:
                        on_retry(attempt, e, wait)
                    if wait > 0:
                        time.sleep(wait)
                    current_delay *= backoff

        return wrapper
    return decorator


def sleep_ms(milliseconds: int) -> None:
    """Pause between requests to stay under the remote rate limit."""
    if milliseconds > 0:
        time.sleep(milliseconds / 1000.0)
