"""Cooperative cancellation shared by every stage of one request."""

import asyncio
from typing import Awaitable, TypeVar

from beststories.pipeline.error_handling import OperationCancelled

T = TypeVar("T")


class CancellationToken:
    """A one-shot cancellation signal.

    Created per request and passed down to every upstream call, retry delay and
    permit wait. Firing it is idempotent.

    Example:
        >>> token = CancellationToken()
        >>> token.cancel()
        >>> token.is_cancelled
        True
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled()

    async def wait(self) -> None:
        await self._event.wait()

    async def sleep(self, delay: float) -> None:
        """Sleep for ``delay`` seconds, waking early if the token fires.

        Raises:
            OperationCancelled: If the token fires before the delay elapses
        """
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise OperationCancelled()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        When the token wins, the awaitable is cancelled and allowed to unwind
        before OperationCancelled is raised. If it completed regardless, its
        outcome is returned so resources it acquired are never lost.

        Raises:
            OperationCancelled: If the token fires before the awaitable completes
        """
        if self.is_cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise OperationCancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task not in done:
            task.cancel()
            await asyncio.wait({task})
            if task.cancelled():
                raise OperationCancelled()
        return task.result()
