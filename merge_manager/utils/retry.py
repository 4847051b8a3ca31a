"""Retry for idempotent code-host reads.

Only reads are wrapped: a retried mutation could approve or merge twice if
the first attempt reached the host before the connection dropped.

The wait before the next attempt is ``backoff_factor ** attempt`` seconds
(2s, 4s, ... for the default factor). When the failure carries a
``retry_after`` hint from the host (GitHub's ``Retry-After`` header on a
secondary rate limit), that hint is used instead. Either way the wait is
capped at ``max_delay``.
"""

import asyncio
import functools
from collections.abc import Callable
from typing import Any

import structlog

log = structlog.get_logger(__name__)


def retry_delay(error: Exception, attempt: int, backoff_factor: float, max_delay: float) -> float:
    """Seconds to wait after failed ``attempt`` (1-based)."""
    hint = getattr(error, "retry_after", None)
    delay = float(hint) if hint is not None else backoff_factor**attempt
    return min(delay, max_delay)


def async_retry(
    max_attempts: int = 3,
    backoff_factor: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    max_delay: float = 60.0,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Retry an async read on the given exception types.

    Args:
        max_attempts: Maximum number of calls before giving up
        backoff_factor: Base for the exponential delay between attempts
        exceptions: Exception types that trigger a retry; anything else
            propagates immediately
        max_delay: Upper bound for any single wait, including host hints

    Raises:
        The last caught exception once attempts are exhausted.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= max_attempts:
                        log.error("read_retries_exhausted", function=func.__name__, attempts=attempt, error=str(e))
                        raise

                    delay = retry_delay(e, attempt, backoff_factor, max_delay)
                    log.warning(
                        "read_failed_retrying",
                        function=func.__name__,
                        attempt=attempt,
                        max_attempts=max_attempts,
                        delay=delay,
                        error=str(e),
                    )
                    await asyncio.sleep(delay)
                    attempt += 1

        return wrapper

    return decorator
