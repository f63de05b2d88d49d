"""Bounded retry-with-delay for single upstream calls.

Only TransportError is retried. Decode and status errors fail on the first
attempt. When the attempt budget is spent the last TransportError is raised
to the caller rather than replaced with a default value.
"""

import logging
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from beststories.pipeline.cancellation import CancellationToken
from beststories.pipeline.error_handling import OperationCancelled, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRY_DELAYS: tuple[float, ...] = (0.1, 0.2, 0.35)


class Retrier:
    """Run an operation up to ``len(delays) + 1`` times.

    Args:
        delays: Backoff in seconds before each retry. Must be non-negative and
            non-decreasing. Its length is the number of retries.
        retry_on: Exception types that trigger a retry

    Example:
        >>> retrier = Retrier()
        >>> ids = await retrier.run(lambda: client.fetch_best_story_ids(token), token)
    """

    def __init__(
        self,
        delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
        retry_on: tuple[type[BaseException], ...] = (TransportError,),
    ) -> None:
        delays = tuple(delays)
        if any(delay < 0 for delay in delays):
            raise ValueError("Retry delays must be non-negative")
        if any(later < earlier for earlier, later in zip(delays, delays[1:])):
            raise ValueError("Retry delays must be monotonically non-decreasing")
        self.delays = delays
        self.retry_on = retry_on

    @property
    def max_attempts(self) -> int:
        return len(self.delays) + 1

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        cancellation: Optional[CancellationToken] = None,
    ) -> T:
        """Call ``operation`` until it succeeds or the attempt budget is spent.

        Args:
            operation: Zero-argument callable returning a fresh awaitable per attempt
            cancellation: Stops retrying as soon as it fires

        Returns:
            The operation's result

        Raises:
            OperationCancelled: If the token fires before or between attempts
            Exception: The last retryable failure once attempts are exhausted,
                or any non-retryable failure immediately
        """
        if cancellation is None:
            cancellation = CancellationToken()

        for attempt, delay in enumerate(self.delays, start=1):
            cancellation.raise_if_cancelled()
            try:
                return await operation()
            except self.retry_on as e:
                if cancellation.is_cancelled:
                    raise OperationCancelled() from e
                logger.warning(
                    "Attempt %d/%d failed: %s. Retrying in %.2fs...",
                    attempt,
                    self.max_attempts,
                    e,
                    delay,
                )
            await self._backoff(delay, cancellation)

        # Last attempt, its failure goes to the caller
        cancellation.raise_if_cancelled()
        try:
            return await operation()
        except self.retry_on as e:
            if cancellation.is_cancelled:
                raise OperationCancelled() from e
            logger.error("All %d attempts failed: %s", self.max_attempts, e)
            raise

    async def _backoff(self, delay: float, cancellation: CancellationToken) -> None:
        await cancellation.sleep(delay)
