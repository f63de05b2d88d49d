"""Best stories fetch/cache/retry pipeline.

This package contains the aggregation core and the pieces it is built from.
"""

from beststories.pipeline.aggregator import (
    BestStoriesAggregator,
    get_aggregator,
    reset_aggregator,
)
from beststories.pipeline.cache import MISS, StoryCache, TTLCache
from beststories.pipeline.cancellation import CancellationToken
from beststories.pipeline.error_handling import (
    AggregateFailure,
    BestStoriesError,
    DecodeError,
    OperationCancelled,
    TransportError,
    UpstreamError,
    UpstreamStatusError,
)
from beststories.pipeline.limiter import ConcurrencyLimiter
from beststories.pipeline.models import BestStory, RawItem, to_best_story
from beststories.pipeline.retry import Retrier

__all__ = [
    "BestStoriesAggregator",
    "get_aggregator",
    "reset_aggregator",
    "StoryCache",
    "TTLCache",
    "MISS",
    "CancellationToken",
    "ConcurrencyLimiter",
    "Retrier",
    "BestStory",
    "RawItem",
    "to_best_story",
    "BestStoriesError",
    "UpstreamError",
    "TransportError",
    "DecodeError",
    "UpstreamStatusError",
    "OperationCancelled",
    "AggregateFailure",
]
