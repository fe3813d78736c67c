"""
Retry strategies.

Save files are often briefly locked by the game or an antivirus scan, and
cloud calls fail transiently, so I/O at the edges is retried. The blocking
variant covers local file copies; the awaitable one covers manifest I/O and
backend calls. Both retry only the exception types they are told to and
share the same delay schedule.
"""

import asyncio
import functools
import logging
import time
from typing import Any, Awaitable, Callable, Iterator, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')

RetryOn = Tuple[Type[BaseException], ...]


def retry_delays(max_attempts: int, delay: float, backoff: float = 1.0) -> Iterator[float]:
    """
    Delays to wait between attempts: ``max_attempts - 1`` values.

    Examples:
        >>> list(retry_delays(3, 0.5, backoff=2.0))
        [0.5, 1.0]
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")
    return iter([delay * backoff ** n for n in range(max_attempts - 1)])


def simple_retry(
    func: Callable[[], T],
    max_attempts: int = 3,
    delay: float = 1.0,
    retry_on: RetryOn = (OSError,),
    context: str = "operation"
) -> T:
    """
    Call ``func`` until it succeeds, sleeping a fixed delay between attempts.

    Raises:
        The last exception once the attempts are exhausted, or any
        exception not listed in ``retry_on`` immediately
    """
    delays = retry_delays(max_attempts, delay)
    attempt = 1
    while True:
        try:
            result = func()
        except retry_on as e:
            wait = next(delays, None)
            if wait is None:
                logger.error(f"Giving up on {context} after {attempt} attempts: {e}")
                raise
            logger.debug(f"{context} failed (attempt {attempt}): {e}")
            time.sleep(wait)
            attempt += 1
            continue
        if attempt > 1:
            logger.info(f"{context} succeeded on attempt {attempt}")
        return result


def with_simple_retry(
    max_attempts: int = 3,
    delay: float = 1.0,
    retry_on: RetryOn = (OSError,),
    context: str = ""
):
    """Decorator form of simple_retry."""
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            return simple_retry(
                lambda: func(*args, **kwargs),
                max_attempts=max_attempts,
                delay=delay,
                retry_on=retry_on,
                context=context or func.__name__
            )
        return wrapper
    return decorator


async def async_retry(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    delay: float = 1.0,
    backoff: float = 1.0,
    retry_on: RetryOn = (Exception,),
    context: str = "operation",
    sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
) -> T:
    """
    Await ``func`` until it succeeds or the attempts are exhausted.

    Args:
        func: Zero-argument coroutine factory; called once per attempt
        max_attempts: Maximum number of attempts
        delay: Delay before the second attempt in seconds
        backoff: Multiplier applied to the delay after each failure
            (1.0 gives a fixed delay, 2.0 doubles it)
        retry_on: Exception types that trigger another attempt; anything
            else propagates immediately
        context: Context description for log messages
        sleep: Awaitable sleep function, overridable in tests

    Returns:
        Result of the first successful attempt
    """
    delays = retry_delays(max_attempts, delay, backoff)
    sleeper = sleep or asyncio.sleep
    attempt = 1
    while True:
        try:
            result = await func()
        except retry_on as e:
            wait = next(delays, None)
            if wait is None:
                logger.warning(f"Giving up on {context} after {attempt} attempts: {e}")
                raise
            logger.debug(f"{context} failed (attempt {attempt}/{max_attempts}): {e}; retrying in {wait:.2f}s")
            await sleeper(wait)
            attempt += 1
            continue
        if attempt > 1:
            logger.info(f"{context} succeeded on attempt {attempt}")
        return result
