"""
Unit tests for TokenBucketLimiter
==================================
Burst capacity, refill, waiting, bounds invariant and steady-state rate,
all driven by a virtual clock.
"""

import asyncio

import pytest

from pairwatch.fetching import TokenBucketLimiter
from helpers import FakeClock


def make_limiter(capacity=5, rate=2.0):
    clock = FakeClock()
    limiter = TokenBucketLimiter(capacity, rate, name="test", clock=clock.time, sleep=clock.sleep)
    return limiter, clock


class TestTokenBucketLimiter:

    @pytest.mark.asyncio
    async def test_burst_up_to_capacity_without_waiting(self):
        limiter, clock = make_limiter(capacity=3, rate=1.0)

        for _ in range(3):
            await limiter.acquire()

        assert clock.sleeps == []
        assert limiter.tokens == pytest.approx(0.0)

    @pytest.mark.asyncio
    async def test_waits_for_refill_when_empty(self):
        limiter, clock = make_limiter(capacity=2, rate=0.5)
        start = clock.time()

        await limiter.acquire()
        await limiter.acquire()
        await limiter.acquire()

        # One token at 0.5/s takes 2 seconds
        assert sum(clock.sleeps) == pytest.approx(2.0)
        assert clock.time() - start == pytest.approx(2.0)

    def test_refill_is_capped_at_capacity(self):
        limiter, clock = make_limiter(capacity=4, rate=10.0)
        assert limiter.try_acquire()

        clock.advance(100)

        assert limiter.wait_time() == 0.0
        assert limiter.tokens == 4.0

    def test_try_acquire_does_not_wait(self):
        limiter, clock = make_limiter(capacity=1, rate=1.0)
        assert limiter.try_acquire() is True
        assert limiter.try_acquire() is False
        assert limiter.wait_time() == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_tokens_stay_within_bounds(self):
        limiter, clock = make_limiter(capacity=3, rate=1.5)

        for _ in range(30):
            await limiter.acquire()
            assert 0.0 <= limiter.tokens <= limiter.capacity

    @pytest.mark.asyncio
    async def test_concurrent_waiters_never_overdraw(self):
        limiter, clock = make_limiter(capacity=2, rate=1.0)

        await asyncio.gather(*(limiter.acquire() for _ in range(8)))

        assert limiter.tokens >= 0.0
        # 2 from the burst, 6 refilled at 1/s
        assert clock.time() - 1_000.0 >= 6.0 - 1e-6

    @pytest.mark.asyncio
    async def test_steady_state_never_exceeds_capacity_per_second(self):
        """Once the initial burst is spent, any 1s window sees at most `capacity` grants"""
        capacity, rate = 5, 2.0
        limiter, clock = make_limiter(capacity=capacity, rate=rate)

        grants = []
        for _ in range(60):
            await limiter.acquire()
            grants.append(clock.time())

        steady = grants[capacity:]
        for start in steady:
            in_window = [t for t in steady if start <= t < start + 1.0]
            assert len(in_window) <= capacity

    def test_rejects_invalid_configuration(self):
        with pytest.raises(ValueError):
            TokenBucketLimiter(0, 1.0)
        with pytest.raises(ValueError):
            TokenBucketLimiter(5, 0)
