"""FastAPI application entry point for the best stories API."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from beststories.api.errors import register_error_handlers
from beststories.api.rate_limit import FixedWindowRateLimiter, RateLimitMiddleware
from beststories.api.routes import router
from beststories.pipeline import BestStoriesAggregator, get_aggregator
from beststories.utils.config import get_settings
from beststories.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Close the shared upstream HTTP client on shutdown."""
    logger.info("Best stories API starting")
    yield
    await app.state.aggregator.client.aclose()
    logger.info("Best stories API stopped")


def create_app(aggregator: Optional[BestStoriesAggregator] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        aggregator: Pipeline to serve requests from, defaults to the
            process-wide instance
    """
    settings = get_settings()
    setup_logging()

    app = FastAPI(title=settings.APP_NAME, version="1.0.0", lifespan=lifespan)
    app.state.aggregator = aggregator if aggregator is not None else get_aggregator()
    app.state.rate_limiter = FixedWindowRateLimiter(
        settings.RATE_LIMIT_REQUESTS, settings.RATE_LIMIT_WINDOW
    )
    app.add_middleware(RateLimitMiddleware, limiter=app.state.rate_limiter)

    register_error_handlers(app)
    app.include_router(router)

    return app


def main() -> None:
    """Run the API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "beststories.api.app:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )


if __name__ == "__main__":
    main()
