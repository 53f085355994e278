"""
Fixed-interval polling for long-running provider operations.

Video providers accept a job and hand back an operation handle that has to be
re-fetched until it reports done. There is no backoff; each iteration sleeps
for the configured interval before refreshing.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

from .errors import PollTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def poll_until_done(
    operation: T,
    refresh: Callable[[T], Awaitable[T]],
    is_done: Callable[[T], bool],
    interval: float = 10.0,
    max_duration: Optional[float] = None,
    provider: Optional[str] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Refresh ``operation`` every ``interval`` seconds until ``is_done`` holds.

    Args:
        operation: Handle returned by the submit call
        refresh: Async function returning the updated handle
        is_done: Predicate on the handle
        interval: Seconds to sleep before each refresh
        max_duration: Give up after this many seconds (None polls forever)
        provider: Provider name, for error reporting

    Returns:
        The first handle for which ``is_done`` is true

    Raises:
        PollTimeoutError: If ``max_duration`` elapses first
        Exception: Any error raised by ``refresh``
    """
    started = clock()
    polls = 0

    while not is_done(operation):
        if max_duration is not None and clock() - started >= max_duration:
            raise PollTimeoutError(
                f"Operation did not complete within {max_duration:.0f} seconds",
                provider=provider,
            )

        await sleep(interval)
        polls += 1
        operation = await refresh(operation)
        logger.debug(f"Poll {polls} for {provider or 'operation'}: done={is_done(operation)}")

    return operation
