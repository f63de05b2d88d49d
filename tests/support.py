"""Test doubles shared across the suite."""

import asyncio
from collections import Counter
from typing import Optional

from beststories.pipeline import (
    BestStoriesAggregator,
    CancellationToken,
    ConcurrencyLimiter,
    RawItem,
    Retrier,
    StoryCache,
)


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUpstream:
    """In-memory stand-in for HackerNewsClient.

    Records call counts and the peak number of overlapping calls. ``failures``
    maps an item ID (or "ids") to a list of exceptions raised on successive
    calls before the real answer is returned.
    """

    def __init__(
        self,
        ids: list[int],
        items: Optional[dict[int, dict]] = None,
        delay: float = 0.0,
    ) -> None:
        self.ids = ids
        self.items = items or {}
        self.delay = delay
        self.failures: dict = {}
        self.calls: Counter = Counter()
        self.active = 0
        self.peak_active = 0

    async def _enter(self, key) -> None:
        self.calls[key] += 1
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            pending = self.failures.get(key)
            if pending:
                raise pending.pop(0)
        finally:
            self.active -= 1

    async def fetch_best_story_ids(self, cancellation: Optional[CancellationToken] = None) -> list[int]:
        await self._enter("ids")
        return list(self.ids)

    async def fetch_item(
        self, item_id: int, cancellation: Optional[CancellationToken] = None
    ) -> Optional[RawItem]:
        await self._enter(item_id)
        payload = self.items.get(item_id)
        return RawItem.model_validate(payload) if payload is not None else None

    async def aclose(self) -> None:
        pass


def story(item_id: int, score: int = 100, **fields) -> dict:
    """Build a raw story payload."""
    payload = {
        "id": item_id,
        "type": "story",
        "title": f"Story {item_id}",
        "url": f"https://example.com/{item_id}",
        "by": f"user{item_id}",
        "time": 1_700_000_000 + item_id,
        "score": score,
        "descendants": item_id * 2,
    }
    payload.update(fields)
    return payload


def make_aggregator(
    upstream: FakeUpstream,
    clock: Optional[FakeClock] = None,
    capacity: int = 4,
    delays=(0.0, 0.0, 0.0),
    **kwargs,
) -> BestStoriesAggregator:
    return BestStoriesAggregator(
        client=upstream,
        cache=StoryCache(ids_ttl=60.0, item_ttl=30.0, clock=clock or FakeClock()),
        limiter=ConcurrencyLimiter(capacity),
        retrier=Retrier(delays),
        **kwargs,
    )
