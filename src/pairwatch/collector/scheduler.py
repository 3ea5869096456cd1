"""
Periodic background tasks with explicit start/stop.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """
    Run `func` every `interval` seconds on the running event loop.

    ## Parameters
    - `name`: Label for logs
    - `func`: Coroutine function executed each tick
    - `interval`: Seconds between the end of one tick and the next
    - `initial_delay`: Seconds before the first tick
    - `sleep`: Awaitable sleep, replaced by a virtual clock in tests

    ## Error Handling
    An exception raised by a tick is logged with traceback and the schedule
    continues. Cancellation (via `stop`) ends the loop.
    """

    def __init__(
        self,
        name: str,
        func: Callable[[], Awaitable[None]],
        interval: float,
        initial_delay: float = 0.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.name = name
        self.func = func
        self.interval = interval
        self.initial_delay = initial_delay
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=self.name)
        logger.info(f"Periodic task '{self.name}' started (every {self.interval}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(f"Periodic task '{self.name}' stopped")

    async def _run(self) -> None:
        if self.initial_delay:
            await self._sleep(self.initial_delay)
        while True:
            try:
                await self.func()
            except Exception as e:
                logger.error(f"Error in periodic task '{self.name}': {e}", exc_info=True)
            self.ticks += 1
            await self._sleep(self.interval)
