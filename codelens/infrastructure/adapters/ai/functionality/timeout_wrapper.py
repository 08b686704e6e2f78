# codelens/infrastructure/adapters/ai/functionality/timeout_wrapper.py

"""Deadline for remote inference calls"""

import asyncio
import time
from typing import Awaitable, Optional, TypeVar
import structlog

from codelens.core.exceptions import UpstreamTimeoutError

logger = structlog.get_logger()

T = TypeVar('T')


async def with_timeout(
        coro: Awaitable[T],
        timeout: Optional[float],
        name: str = "operation"
) -> T:
    """
    Await a remote call under a deadline.

    On expiry the call is cancelled and UpstreamTimeoutError is raised, so
    a circuit breaker around this counts it like any other upstream failure.

    Args:
        coro: Awaitable remote call
        timeout: Deadline in seconds; None or <= 0 waits indefinitely
        name: Operation name for logging

    Raises:
        UpstreamTimeoutError: If the deadline passed
    """
    if timeout is None or timeout <= 0:
        return await coro

    started = time.perf_counter()
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError as e:
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.warning(
            "inference_call_timeout",
            name=name,
            timeout=timeout,
            elapsed_ms=round(elapsed_ms, 1)
        )
        raise UpstreamTimeoutError(f"{name} timed out after {timeout}s") from e
