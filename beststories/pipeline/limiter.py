"""Process-wide bound on in-flight upstream calls."""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from beststories.pipeline.cancellation import CancellationToken

logger = logging.getLogger(__name__)


def default_capacity() -> int:
    """Twice the number of available processing units."""
    return 2 * (os.cpu_count() or 1)


class ConcurrencyLimiter:
    """Counting permit pool shared by every upstream call in the process.

    Wake order is whatever asyncio.Semaphore provides (FIFO for waiters that
    were queued). ``release`` must be called once per successful ``acquire``;
    use ``slot`` to get that on every exit path.
    """

    def __init__(self, capacity: Optional[int] = None) -> None:
        capacity = capacity if capacity is not None else default_capacity()
        if capacity <= 0:
            raise ValueError("Limiter capacity must be positive")
        self.capacity = capacity
        self._semaphore = asyncio.BoundedSemaphore(capacity)
        self._in_flight = 0
        self.peak_in_flight = 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    async def acquire(self, cancellation: Optional[CancellationToken] = None) -> None:
        """Wait for a permit.

        Raises:
            OperationCancelled: If the token fires while waiting; no permit is held
        """
        if cancellation is None:
            await self._semaphore.acquire()
        else:
            await cancellation.guard(self._semaphore.acquire())
        self._in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self._in_flight)
        if self._in_flight == self.capacity:
            logger.debug("Concurrency limit reached (%d permits in use)", self.capacity)

    def release(self) -> None:
        self._in_flight -= 1
        self._semaphore.release()

    @asynccontextmanager
    async def slot(self, cancellation: Optional[CancellationToken] = None) -> AsyncIterator[None]:
        """Hold one permit for the duration of the block."""
        await self.acquire(cancellation)
        try:
            yield
        finally:
            self.release()
