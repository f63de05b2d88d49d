"""Hacker News client.

Pure transport for the two read-only endpoints the pipeline needs:

    GET {base}/beststories.json   -> JSON array of story IDs
    GET {base}/item/{id}.json     -> JSON item object, or null

No retries or caching happen here. httpx failures are translated into the
pipeline error taxonomy so callers never see httpx exceptions.
"""

import json
from typing import Any, Optional

import httpx
from pydantic import PositiveInt, TypeAdapter, ValidationError

from beststories.pipeline.cancellation import CancellationToken
from beststories.pipeline.error_handling import DecodeError, TransportError, UpstreamStatusError
from beststories.pipeline.models import RawItem
from beststories.utils.config import get_settings
from beststories.utils.logging_config import get_logger

_STORY_IDS = TypeAdapter(list[PositiveInt])

# Throttling; 5xx is also treated as transient
_TRANSIENT_STATUS = 429


def _get_logger():
    """Get logger instance lazily to avoid module-level import issues."""
    return get_logger(__name__)


def _is_transient_status(status_code: int) -> bool:
    return status_code == _TRANSIENT_STATUS or status_code >= 500


class HackerNewsClient:
    """Async client for the Hacker News API.

    A single httpx.AsyncClient is shared by every call so connections are
    pooled across concurrent requests.

    Example:
        >>> async with HackerNewsClient() as client:
        ...     ids = await client.fetch_best_story_ids()
        ...     item = await client.fetch_item(ids[0])
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize client.

        Args:
            base_url: API root, defaults to HN_API_BASE_URL
            timeout: Per-request timeout in seconds, defaults to API_TIMEOUT
            http_client: Pre-built httpx client (tests inject a MockTransport)
        """
        settings = get_settings()
        self.base_url = (base_url or settings.HN_API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.API_TIMEOUT
        self._http_client = http_client

    async def __aenter__(self) -> "HackerNewsClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def fetch_best_story_ids(
        self, cancellation: Optional[CancellationToken] = None
    ) -> list[int]:
        """Fetch the ordered best story ID list.

        Returns:
            Story IDs in upstream order (highest ranked first). A JSON null
            body yields an empty list.

        Raises:
            TransportError: Network failure, timeout or transient status
            UpstreamStatusError: Any other non-success status
            DecodeError: Body is not a JSON array of positive integers
            OperationCancelled: If the token fires mid-request
        """
        url = f"{self.base_url}/beststories.json"
        response = await self._get(url, cancellation)
        if response.status_code != 200:
            raise self._status_error(url, response)

        payload = self._decode(url, response)
        if payload is None:
            return []
        try:
            return _STORY_IDS.validate_python(payload)
        except ValidationError as e:
            raise DecodeError(
                f"Unexpected best stories payload: {e.error_count()} invalid value(s)", url=url
            ) from e

    async def fetch_item(
        self, item_id: int, cancellation: Optional[CancellationToken] = None
    ) -> Optional[RawItem]:
        """Fetch a single item.

        Args:
            item_id: Upstream item ID
            cancellation: Token that aborts the request when fired

        Returns:
            The raw item, or None when the item does not exist (404 or null body)

        Raises:
            TransportError: Network failure, timeout or transient status
            UpstreamStatusError: Any other non-success status
            DecodeError: Body is not a JSON item object
            OperationCancelled: If the token fires mid-request
        """
        url = f"{self.base_url}/item/{item_id}.json"
        response = await self._get(url, cancellation)
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise self._status_error(url, response)

        payload = self._decode(url, response)
        if payload is None:
            return None
        try:
            return RawItem.model_validate(payload)
        except ValidationError as e:
            raise DecodeError(f"Unexpected item payload for {item_id}", url=url) from e

    async def _get(
        self, url: str, cancellation: Optional[CancellationToken]
    ) -> httpx.Response:
        client = self._get_client()
        _get_logger().debug("GET %s", url)
        try:
            if cancellation is None:
                return await client.get(url, timeout=self.timeout)
            return await cancellation.guard(client.get(url, timeout=self.timeout))
        except httpx.TimeoutException as e:
            raise TransportError(f"Timed out after {self.timeout}s: {url}", url=url) from e
        except httpx.TransportError as e:
            raise TransportError(f"Request failed: {url}: {e}", url=url) from e

    @staticmethod
    def _status_error(url: str, response: httpx.Response) -> Exception:
        if _is_transient_status(response.status_code):
            return TransportError(
                f"Transient upstream failure: {url}", url=url, status_code=response.status_code
            )
        return UpstreamStatusError(
            f"Unexpected upstream status: {url}", url=url, status_code=response.status_code
        )

    @staticmethod
    def _decode(url: str, response: httpx.Response) -> Any:
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DecodeError(f"Malformed JSON from {url}", url=url) from e
