"""
Unit tests for PeriodicTask
============================
"""

import asyncio

import pytest

from pairwatch.collector import PeriodicTask


class ScriptedSleep:
    """Records requested delays and yields; stops the loop after `limit` calls."""

    def __init__(self, limit):
        self.delays = []
        self.limit = limit
        self.done = asyncio.Event()

    async def __call__(self, delay):
        self.delays.append(delay)
        if len(self.delays) >= self.limit:
            self.done.set()
            await asyncio.Event().wait()
        await asyncio.sleep(0)


class TestPeriodicTask:

    @pytest.mark.asyncio
    async def test_runs_after_initial_delay_then_every_interval(self):
        sleep = ScriptedSleep(limit=4)
        calls = []

        async def tick():
            calls.append(len(sleep.delays))

        task = PeriodicTask("t", tick, interval=10, initial_delay=3, sleep=sleep)
        task.start()
        await asyncio.wait_for(sleep.done.wait(), 1)
        await task.stop()

        assert sleep.delays == [3, 10, 10, 10]
        assert calls == [1, 2, 3]
        assert task.ticks == 3
        assert not task.running

    @pytest.mark.asyncio
    async def test_error_in_tick_does_not_stop_schedule(self):
        sleep = ScriptedSleep(limit=3)
        attempts = []

        async def tick():
            attempts.append(1)
            raise RuntimeError("boom")

        task = PeriodicTask("failing", tick, interval=1, sleep=sleep)
        task.start()
        await asyncio.wait_for(sleep.done.wait(), 1)
        await task.stop()

        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_start_is_idempotent_and_stop_without_start_is_safe(self):
        sleep = ScriptedSleep(limit=1)

        async def tick():
            pass

        task = PeriodicTask("t", tick, interval=1, sleep=sleep)
        await task.stop()

        task.start()
        first = task._task
        task.start()
        assert task._task is first
        await task.stop()
