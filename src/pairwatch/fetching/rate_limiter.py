"""
Token-bucket admission control for upstream endpoints.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

# Float refill can land a hair below a whole token
TOKEN_EPSILON = 1e-9


class TokenBucketLimiter:
    """
    Token bucket with lazy refill.

    ## Parameters
    - `capacity`: Maximum number of tokens (burst size)
    - `refill_rate`: Tokens added per second
    - `name`: Label used in log messages
    - `clock`: Monotonic time source in seconds (injectable for tests)
    - `sleep`: Coroutine used to wait (injectable for tests)

    ## Design Notes
    There is no waiter queue. A caller that finds the bucket empty sleeps
    for the time one token needs to refill and then re-checks, so the
    token count never goes below zero even with concurrent waiters.
    """

    def __init__(
        self,
        capacity: float,
        refill_rate: float,
        name: str = "limiter",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if refill_rate <= 0:
            raise ValueError("refill_rate must be positive")

        self.capacity = float(capacity)
        self.refill_rate = float(refill_rate)
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self.tokens = float(capacity)
        self.last_refill = clock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self.last_refill)
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    def try_acquire(self) -> bool:
        """Consume one token if available without waiting."""
        self._refill()
        if self.tokens >= 1 - TOKEN_EPSILON:
            self.tokens = max(0.0, self.tokens - 1)
            return True
        return False

    def wait_time(self) -> float:
        """Seconds until one token is available (0 if one is available now)."""
        self._refill()
        if self.tokens >= 1 - TOKEN_EPSILON:
            return 0.0
        return (1 - self.tokens) / self.refill_rate

    async def acquire(self) -> None:
        """Wait until a token is available and consume it."""
        while not self.try_acquire():
            delay = (1 - self.tokens) / self.refill_rate
            logger.debug(f"[{self.name}] bucket empty, waiting {delay:.2f}s")
            await self._sleep(delay)
