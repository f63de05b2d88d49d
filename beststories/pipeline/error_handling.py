"""Error taxonomy for the best stories pipeline.

Failures are split by how the pipeline reacts to them:

- TransportError: network failure, timeout or transient upstream status.
  Retried by the Retrier.
- DecodeError: the upstream answered with something that is not the expected
  JSON. Fails immediately, never retried and never cached.
- UpstreamStatusError: any other unexpected upstream status. Not retried.
- OperationCancelled: the caller's cancellation token fired. Propagated,
  never logged as an error.
- AggregateFailure: an unrecovered failure of a whole get_best_stories call.
  Chained to the original error.
"""

import time
from typing import Optional


class BestStoriesError(Exception):
    """Base exception for pipeline errors."""

    def __init__(self, message: str, **context):
        """Initialize error with context.

        Args:
            message: Error message
            **context: Additional context information
        """
        super().__init__(message)
        self.context = context
        self.timestamp = time.time()


class UpstreamError(BestStoriesError):
    """Error when calling the upstream API."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        **context,
    ):
        """Initialize upstream error.

        Args:
            message: Error message
            url: Requested URL
            status_code: HTTP status code if a response was received
            **context: Additional context
        """
        super().__init__(message, **context)
        self.url = url
        self.status_code = status_code

    def __str__(self):
        base = super().__str__()
        if self.status_code is not None:
            return f"{base} (status {self.status_code})"
        return base


class TransportError(UpstreamError):
    """Network failure, timeout or transient status. Safe to retry."""


class DecodeError(UpstreamError):
    """Malformed upstream payload."""


class UpstreamStatusError(UpstreamError):
    """Non-transient, non-success upstream status."""


class OperationCancelled(BestStoriesError):
    """Raised when a cancellation token fires."""

    def __init__(self, message: str = "Operation cancelled", **context):
        super().__init__(message, **context)


class AggregateFailure(BestStoriesError):
    """Unrecovered failure of a best stories aggregation."""


__all__ = [
    "BestStoriesError",
    "UpstreamError",
    "TransportError",
    "DecodeError",
    "UpstreamStatusError",
    "OperationCancelled",
    "AggregateFailure",
]
