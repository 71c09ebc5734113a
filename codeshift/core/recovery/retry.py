"""Generic retry with exponential backoff.

delay = base_delay * 2**attempt between attempts; the last failure is
re-raised unchanged.
"""

import logging
from typing import Any, Awaitable, Callable, Tuple, Type

import backoff

logger = logging.getLogger(__name__)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[Any]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
) -> Any:
    """Await ``operation()`` up to ``max_retries`` times.

    Args:
        operation: Zero-argument coroutine function.
        max_retries: Total number of attempts.
        base_delay: Seconds before the first retry; doubles each time.
        exceptions: Exception types that trigger a retry.
    """

    @backoff.on_exception(
        backoff.expo,
        exceptions,
        max_tries=max(1, max_retries),
        factor=base_delay,
        jitter=None,
        on_backoff=lambda details: logger.info(
            f"Retry attempt {details['tries']}/{max_retries} "
            f"after {details['wait']:.2f}s delay"
        ),
    )
    async def _call():
        return await operation()

    return await _call()
