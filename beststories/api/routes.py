"""Best stories routes."""

import asyncio
import contextlib
import logging
from typing import Optional

from fastapi import APIRouter, Request

from beststories.api.errors import InvalidRequestError
from beststories.pipeline import BestStoriesAggregator, CancellationToken
from beststories.utils.config import get_settings

logger = logging.getLogger(__name__)

router = APIRouter()

# How often a pending request checks whether its client went away
_DISCONNECT_POLL_INTERVAL = 0.5


def _parse_n(raw: Optional[str], max_stories: int) -> int:
    try:
        n = int(raw) if raw is not None else 0
    except ValueError:
        raise InvalidRequestError("n must be an integer") from None
    if n <= 0:
        raise InvalidRequestError("n must be greater than 0")
    if n > max_stories:
        raise InvalidRequestError(f"n must be between 1 and {max_stories}")
    return n


async def _cancel_on_disconnect(request: Request, token: CancellationToken) -> None:
    while not token.is_cancelled:
        if await request.is_disconnected():
            logger.info("Client disconnected, cancelling request")
            token.cancel()
            return
        await asyncio.sleep(_DISCONNECT_POLL_INTERVAL)


@router.get("/api/beststories")
async def best_stories(request: Request, n: Optional[str] = None) -> list[dict]:
    """Return the best ``n`` Hacker News stories."""
    count = _parse_n(n, get_settings().MAX_STORIES)
    aggregator: BestStoriesAggregator = request.app.state.aggregator

    token = CancellationToken()
    watcher = asyncio.create_task(_cancel_on_disconnect(request, token))
    try:
        stories = await aggregator.get_best_stories(count, token)
    finally:
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher

    return [story.to_json() for story in stories]


@router.get("/health")
async def health() -> dict:
    """Lightweight liveness check, no upstream calls."""
    return {"status": "ok"}
