import asyncio
import logging
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel, Field

from mongo_cluster.exceptions import ConnectivityTimeout

logger = logging.getLogger(__name__)


class RetryPolicy(BaseModel):
    """How long to keep polling for a condition"""
    interval_seconds: float = Field(default=1.0, description="Delay between attempts", gt=0)
    timeout_seconds: Optional[float] = Field(
        None,
        description="Give up after this many seconds (None waits forever)",
        gt=0
    )
    max_attempts: Optional[int] = Field(
        None,
        description="Give up after this many attempts (None retries forever)",
        ge=1
    )


async def retry_until(
    attempt: Callable[[], Awaitable[bool]],
    policy: RetryPolicy,
    description: str,
) -> int:
    """
    Call `attempt` until it returns True

    Exceptions raised by `attempt` are not caught; an attempt that should be
    retried returns False. Cancelling the calling task stops the loop at
    its next suspension point.

    Args:
        attempt: Coroutine function returning True once the condition holds
        policy: Interval and optional bounds
        description: What is being waited for, used in logs and errors

    Returns:
        int: Number of attempts made

    Raises:
        ConnectivityTimeout: If the policy's deadline or attempt cap is hit
    """
    loop = asyncio.get_running_loop()
    deadline = None
    if policy.timeout_seconds is not None:
        deadline = loop.time() + policy.timeout_seconds

    attempts = 0
    while True:
        attempts += 1
        if await attempt():
            return attempts

        if policy.max_attempts is not None and attempts >= policy.max_attempts:
            raise ConnectivityTimeout(description, attempts)
        if deadline is not None and loop.time() + policy.interval_seconds > deadline:
            raise ConnectivityTimeout(description, attempts)

        logger.debug(f"Waiting for {description} (attempt {attempts})")
        await asyncio.sleep(policy.interval_seconds)
