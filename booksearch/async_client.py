"""Async HTTP client for parallel detail lookups."""
import asyncio
import httpx
from typing import Optional, Any
import logging

from booksearch.client import author_path, work_path
from booksearch.errors import FetchError, FetchResult, SchemaError
from booksearch.models import WorkDetail
from booksearch.parse import parse_work_detail, parse_author_name

logger = logging.getLogger(__name__)


class AsyncCatalogClient:
    """Async client for concurrent work and author lookups."""

    BASE_URL = "https://openlibrary.org"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: int = 10,
        max_concurrent: int = 5,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize async client.

        Args:
            base_url: API root, defaults to openlibrary.org
            timeout: Request timeout
            max_concurrent: Maximum concurrent requests
            user_agent: Optional User-Agent header
            transport: Custom transport (tests use httpx.MockTransport)
        """
        self.timeout = timeout
        self.semaphore = asyncio.Semaphore(max_concurrent)

        headers = {"Accept": "application/json"}
        if user_agent:
            headers["User-Agent"] = user_agent

        # Create async HTTP client
        self.client = httpx.AsyncClient(
            base_url=(base_url or self.BASE_URL).rstrip("/"),
            timeout=timeout,
            headers=headers,
            transport=transport
        )

    async def fetch_work_detail(self, work_key: str) -> FetchResult[WorkDetail]:
        """Look up a work's title and author references."""
        try:
            path = work_path(work_key)
        except ValueError as e:
            return FetchResult.failure(FetchError.partial_item(f"bad work key {work_key!r}: {e}"))

        result = await self._get_json(path)
        if not result.ok:
            return result

        key = work_key if work_key.startswith("/works/") else f"/works/{work_key}"
        try:
            return FetchResult.success(parse_work_detail(result.value, key))
        except SchemaError as e:
            return FetchResult.failure(FetchError.decode(str(e)))

    async def fetch_author_name(self, author_key: str) -> FetchResult[str]:
        """Resolve an author key to a display name."""
        try:
            path = author_path(author_key)
        except ValueError as e:
            return FetchResult.failure(FetchError.partial_item(f"bad author key {author_key!r}: {e}"))

        result = await self._get_json(path)
        if not result.ok:
            return result

        try:
            return FetchResult.success(parse_author_name(result.value))
        except SchemaError as e:
            return FetchResult.failure(FetchError.decode(str(e)))

    async def _get_json(self, path: str) -> FetchResult[Any]:
        # Use semaphore to limit concurrency
        async with self.semaphore:
            try:
                logger.debug(f"Async request: {path}")
                response = await self.client.get(path)
            except httpx.TimeoutException:
                logger.warning(f"Timeout for {path}")
                return FetchResult.failure(FetchError.network(f"no response: timed out after {self.timeout}s"))
            except httpx.HTTPError as e:
                logger.warning(f"Async request failed for {path}: {e}")
                return FetchResult.failure(FetchError.network(f"no response: {e}"))

        if response.status_code != 200:
            logger.warning(f"Status {response.status_code} for {path}")
            return FetchResult.failure(
                FetchError.network(f"HTTP {response.status_code} for {path}", response.status_code)
            )

        try:
            return FetchResult.success(response.json())
        except ValueError as e:
            return FetchResult.failure(FetchError.decode(str(e), response.status_code))

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
