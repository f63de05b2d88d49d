"""Tests for the concurrency limiter."""

import asyncio
import os

import pytest

from beststories.pipeline.cancellation import CancellationToken
from beststories.pipeline.error_handling import OperationCancelled
from beststories.pipeline.limiter import ConcurrencyLimiter, default_capacity


def test_default_capacity_is_twice_cpu_count():
    assert default_capacity() == 2 * (os.cpu_count() or 1)
    assert ConcurrencyLimiter().capacity == default_capacity()


def test_capacity_must_be_positive():
    with pytest.raises(ValueError, match="positive"):
        ConcurrencyLimiter(0)


@pytest.mark.asyncio
async def test_never_exceeds_capacity_under_load():
    limiter = ConcurrencyLimiter(3)
    active = 0
    peak = 0

    async def work():
        nonlocal active, peak
        async with limiter.slot():
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

    await asyncio.gather(*(work() for _ in range(20)))

    assert peak == 3
    assert limiter.peak_in_flight == 3
    assert limiter.in_flight == 0


@pytest.mark.asyncio
async def test_permit_released_on_failure():
    limiter = ConcurrencyLimiter(1)

    with pytest.raises(RuntimeError):
        async with limiter.slot():
            raise RuntimeError("boom")

    assert limiter.in_flight == 0
    # A second acquire must not block
    await asyncio.wait_for(limiter.acquire(), timeout=1)
    limiter.release()


@pytest.mark.asyncio
async def test_waiting_acquire_honours_cancellation():
    limiter = ConcurrencyLimiter(1)
    await limiter.acquire()
    token = CancellationToken()

    waiter = asyncio.create_task(limiter.acquire(token))
    await asyncio.sleep(0.01)
    assert not waiter.done()

    token.cancel()
    with pytest.raises(OperationCancelled):
        await asyncio.wait_for(waiter, timeout=1)

    # The cancelled waiter holds no permit
    assert limiter.in_flight == 1
    limiter.release()
    await asyncio.wait_for(limiter.acquire(), timeout=1)
    limiter.release()
    assert limiter.in_flight == 0


@pytest.mark.asyncio
async def test_acquire_with_already_cancelled_token():
    limiter = ConcurrencyLimiter(2)
    token = CancellationToken()
    token.cancel()

    with pytest.raises(OperationCancelled):
        await limiter.acquire(token)
    assert limiter.in_flight == 0


@pytest.mark.asyncio
async def test_released_permit_wakes_waiter():
    limiter = ConcurrencyLimiter(1)
    await limiter.acquire()

    waiter = asyncio.create_task(limiter.acquire())
    await asyncio.sleep(0.01)
    limiter.release()

    await asyncio.wait_for(waiter, timeout=1)
    assert limiter.in_flight == 1
    limiter.release()
