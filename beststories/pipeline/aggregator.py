"""Best stories aggregation.

Turns "give me the best n stories" into one cached ID list lookup plus a
concurrent fan-out of cached, retried and rate-bounded item lookups:

    ID list:  cache -> [miss] -> retrier -> limiter -> client
    per ID:   cache -> [miss] -> retrier -> limiter -> client -> projection

Public API:
    BestStoriesAggregator: The pipeline
    get_aggregator: Process-wide aggregator built from settings
    reset_aggregator: Drop the process-wide aggregator (tests, shutdown)

Failure policy:
- Failing to obtain the ID list fails the whole call with AggregateFailure.
- A per-item failure or non-story item only drops that item.
- Cancellation at any point yields an empty result, never a partial one.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from beststories.integrations import hackernews_client
from beststories.pipeline.cache import MISS, StoryCache
from beststories.pipeline.cancellation import CancellationToken
from beststories.pipeline.error_handling import (
    AggregateFailure,
    DecodeError,
    OperationCancelled,
    UpstreamError,
)
from beststories.pipeline.limiter import ConcurrencyLimiter
from beststories.pipeline.models import BestStory, to_best_story
from beststories.pipeline.retry import Retrier
from beststories.utils.config import get_settings
from beststories.utils.logging_config import get_logger

T = TypeVar("T")


def _get_logger():
    """Get logger instance lazily to avoid module-level import issues."""
    return get_logger(__name__)


class BestStoriesAggregator:
    """Fetch, resolve, filter and order the best stories.

    The cache and limiter are shared by every concurrent call; one instance
    should serve the whole process (see get_aggregator).

    Args:
        client: Upstream transport
        cache: ID list and item caches
        limiter: Permit pool bounding in-flight upstream calls
        retrier: Retry policy applied to every upstream call
        sort_by_score: Re-sort results by descending score instead of
            keeping upstream order
        cache_failed_items: Cache items whose fetch failed after retries as
            absent until the item TTL expires
    """

    def __init__(
        self,
        client: "hackernews_client.HackerNewsClient",
        cache: StoryCache,
        limiter: ConcurrencyLimiter,
        retrier: Retrier,
        sort_by_score: bool = False,
        cache_failed_items: bool = True,
    ):
        self.client = client
        self.cache = cache
        self.limiter = limiter
        self.retrier = retrier
        self.sort_by_score = sort_by_score
        self.cache_failed_items = cache_failed_items

    async def get_best_stories(
        self, n: int, cancellation: Optional[CancellationToken] = None
    ) -> list[BestStory]:
        """Return up to ``n`` best stories in upstream order.

        ``n`` is assumed to be validated by the caller.

        Args:
            n: Maximum number of stories to return
            cancellation: Token threaded through every upstream call and delay

        Returns:
            At most ``n`` distinct stories. Empty if the token fired.

        Raises:
            AggregateFailure: If the ID list cannot be obtained or anything
                else unexpected fails. The original error is the cause.
        """
        if cancellation is None:
            cancellation = CancellationToken()
        logger = _get_logger()

        try:
            ids = await self._get_best_story_ids(cancellation)
            selected = list(dict.fromkeys(ids))[:n]

            # Wait for every resolution so no task outlives the request
            results = await asyncio.gather(
                *(self._resolve_story(story_id, cancellation) for story_id in selected),
                return_exceptions=True,
            )
            if cancellation.is_cancelled:
                return self._cancelled(n)
            for result in results:
                if isinstance(result, BaseException):
                    raise result

            stories = self._filter(results)
            logger.info(
                "Resolved %d/%d best stories",
                len(stories),
                len(selected),
                extra={"extra_fields": {"requested": n, "selected": len(selected), "returned": len(stories)}},
            )
            return stories

        except OperationCancelled:
            return self._cancelled(n)
        except Exception as e:
            logger.error("Internal error while aggregating best stories: %s", e, exc_info=True)
            raise AggregateFailure(f"Failed to get best stories: {e}", requested=n) from e

    def _cancelled(self, n: int) -> list[BestStory]:
        _get_logger().info("Best stories request cancelled (n=%d)", n)
        return []

    async def _get_best_story_ids(self, cancellation: CancellationToken) -> list[int]:
        cached = self.cache.get_ids()
        if cached is not MISS:
            return list(cached)

        ids = await self._call_upstream(
            lambda: self.client.fetch_best_story_ids(cancellation), cancellation
        )
        if not cancellation.is_cancelled:
            self.cache.set_ids(ids)
        return ids

    async def _resolve_story(
        self, story_id: int, cancellation: CancellationToken
    ) -> Optional[BestStory]:
        cached = self.cache.get_item(story_id)
        if cached is not MISS:
            return cached

        try:
            item = await self._call_upstream(
                lambda: self.client.fetch_item(story_id, cancellation), cancellation
            )
        except DecodeError as e:
            _get_logger().warning("Dropping item %d, malformed payload: %s", story_id, e)
            return None
        except UpstreamError as e:
            _get_logger().warning("Dropping item %d after failed fetch: %s", story_id, e)
            if self.cache_failed_items and not cancellation.is_cancelled:
                self.cache.set_item(story_id, None)
            return None

        story = to_best_story(item)
        if not cancellation.is_cancelled:
            self.cache.set_item(story_id, story)
        return story

    async def _call_upstream(
        self, fetch: Callable[[], Awaitable[T]], cancellation: CancellationToken
    ) -> T:
        """Run one upstream call under the retry policy, one permit per attempt."""

        async def attempt() -> T:
            async with self.limiter.slot(cancellation):
                return await fetch()

        return await self.retrier.run(attempt, cancellation)

    def _filter(self, results: list[Optional[BestStory]]) -> list[BestStory]:
        stories = [story for story in results if story is not None]
        # Upstream already ranks by score
        if self.sort_by_score:
            stories.sort(key=lambda story: story.score, reverse=True)
        return stories


_aggregator: BestStoriesAggregator | None = None


def get_aggregator() -> BestStoriesAggregator:
    """
    Get the process-wide aggregator.

    Built from settings on first call so the cache, the limiter and the
    pooled HTTP client are shared by all requests.

    Returns:
        BestStoriesAggregator: The shared instance
    """
    global _aggregator
    if _aggregator is None:
        settings = get_settings()
        _aggregator = BestStoriesAggregator(
            client=hackernews_client.HackerNewsClient(),
            cache=StoryCache(
                ids_ttl=settings.BEST_STORIES_IDS_TTL,
                item_ttl=settings.ITEM_TTL,
            ),
            limiter=ConcurrencyLimiter(settings.get_max_concurrent_requests()),
            retrier=Retrier(settings.RETRY_DELAYS),
            sort_by_score=settings.SORT_BY_SCORE,
            cache_failed_items=settings.CACHE_FAILED_ITEMS,
        )
    return _aggregator


def reset_aggregator() -> None:
    """Reset the aggregator singleton. Useful for testing."""
    global _aggregator
    _aggregator = None
