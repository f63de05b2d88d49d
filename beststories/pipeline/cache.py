"""In-memory TTL caches for the best story ID list and individual items.

Entries carry an absolute expiry computed at insertion and are never updated
in place. Expiry is lazy: an entry is dropped on the first read after it
expired. There is no size bound; cardinality is bounded by the number of
live story IDs.
"""

import threading
import time
from typing import Any, Callable, Hashable, Optional

from beststories.pipeline.models import BestStory

# Returned by get() on a miss. None is a legitimate cached value (absent item).
MISS: Any = object()

BEST_STORIES_IDS_KEY = "beststories:ids"


class TTLCache:
    """Thread-safe keyed store with per-entry absolute expiry."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """
        Args:
            clock: Monotonic time source in seconds. Injected by tests.
        """
        self._store: dict[Hashable, tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: Hashable, default: Any = MISS) -> Any:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return default
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._store[key]
                return default
            return value

    def set(self, key: Hashable, value: Any, ttl: float) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        with self._lock:
            self._store[key] = (self._clock() + ttl, value)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not MISS

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)


class StoryCache:
    """The two independent stores behind the pipeline.

    The ID list lives under a single fixed key with its own TTL; items are
    keyed by story ID with a shorter TTL. An item entry holds the projected
    BestStory or None for absent, non-story and (by policy) failed items.
    """

    def __init__(
        self,
        ids_ttl: float = 60.0,
        item_ttl: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ids_ttl = ids_ttl
        self.item_ttl = item_ttl
        self._ids = TTLCache(clock)
        self._items = TTLCache(clock)

    def get_ids(self) -> Any:
        return self._ids.get(BEST_STORIES_IDS_KEY)

    def set_ids(self, ids: list[int]) -> None:
        self._ids.set(BEST_STORIES_IDS_KEY, tuple(ids), self.ids_ttl)

    def get_item(self, story_id: int) -> Any:
        return self._items.get(story_id)

    def set_item(self, story_id: int, story: Optional[BestStory]) -> None:
        self._items.set(story_id, story, self.item_ttl)

    def clear(self) -> None:
        self._ids.clear()
        self._items.clear()
