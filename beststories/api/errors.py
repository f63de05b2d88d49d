"""HTTP error types and centralized FastAPI error handlers."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from beststories.pipeline.error_handling import AggregateFailure

logger = logging.getLogger(__name__)


class InvalidRequestError(Exception):
    """Bad client input, reported as 400."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


def register_error_handlers(app: FastAPI) -> None:
    """Register centralized exception handlers on the FastAPI app."""

    @app.exception_handler(InvalidRequestError)
    async def handle_invalid_request(_request: Request, exc: InvalidRequestError):
        return JSONResponse({"error": str(exc)}, status_code=exc.status_code)

    @app.exception_handler(AggregateFailure)
    async def handle_aggregate_failure(_request: Request, exc: AggregateFailure):
        # Already logged with its traceback by the aggregator
        return JSONResponse({"error": "Unexpected error"}, status_code=500)

    @app.exception_handler(Exception)
    async def handle_unexpected(_request: Request, exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        return JSONResponse({"error": "Unexpected error"}, status_code=500)
