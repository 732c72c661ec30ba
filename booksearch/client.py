"""HTTP client for the Open Library API with resilience patterns."""
import time
import random
import urllib.parse
import requests
from typing import Optional, Any, List
import logging

from booksearch.errors import FetchError, FetchResult, SchemaError
from booksearch.models import BookRecord, SearchRequest, WorkDetail
from booksearch.parse import parse_search_response, parse_work_detail, parse_author_name

logger = logging.getLogger(__name__)

SEARCH_FIELDS = (
    "key,title,author_name,first_publish_year,edition_count,cover_i,language,"
    "subject,want_to_read_count,currently_reading_count,already_read_count"
)


def percent_encode(text: str) -> str:
    """
    Percent-encode every UTF-8 byte outside the unreserved set.

    Letters, digits and ``-_.~`` pass through; everything else becomes
    ``%XX`` with the byte's hex value.
    """
    return urllib.parse.quote(text, safe="", encoding="utf-8")


def build_search_path(request: SearchRequest) -> str:
    """Build the ``/search.json`` path for a request."""
    return (
        f"/search.json?{request.kind}={percent_encode(request.query)}"
        f"&limit={request.page_size}"
        f"&page={request.page}"
        f"&fields={SEARCH_FIELDS}"
    )


def work_path(work_key: str) -> str:
    """``OL1W`` or ``/works/OL1W`` -> ``/works/OL1W.json``."""
    work_id = work_key.strip()
    if work_id.startswith("/works/"):
        work_id = work_id[len("/works/"):]
    work_id = work_id.strip("/")
    if not work_id:
        raise ValueError("work key is empty")
    return f"/works/{percent_encode(work_id)}.json"


def author_path(author_key: str) -> str:
    """``OL1A`` or ``/authors/OL1A`` -> ``/authors/OL1A.json``."""
    key = author_key.strip()
    if not key.startswith("/"):
        key = f"/authors/{key}"
    if key.rstrip("/") in ("", "/authors"):
        raise ValueError("author key is empty")
    return f"{key}.json"


class CatalogClient:
    """Client for the Open Library API with timeouts, retries, and backoff."""

    BASE_URL = "https://openlibrary.org"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: int = 10,
        max_retries: int = 3,
        base_backoff: float = 1.0,
        user_agent: Optional[str] = None,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the catalog client.

        Args:
            base_url: API root, defaults to openlibrary.org
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts per call
            base_backoff: Base delay for exponential backoff
            user_agent: Optional User-Agent header
            session: Pre-built session (tests inject fakes here)
        """
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.base_backoff = base_backoff

        # Create session for connection pooling
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        if user_agent:
            self.session.headers.update({"User-Agent": user_agent})

    def search(self, request: SearchRequest) -> FetchResult[List[BookRecord]]:
        """
        Search the catalog for one page of results.

        Args:
            request: Query, kind and pagination

        Returns:
            FetchResult holding the parsed records or a network/decode error
        """
        result = self._get_json(build_search_path(request))
        if not result.ok:
            return result

        try:
            books = parse_search_response(result.value)
        except SchemaError as e:
            return FetchResult.failure(FetchError.decode(str(e)))

        logger.info(f"Search {request.kind}={request.query!r} page {request.page}: {len(books)} books")
        return FetchResult.success(books)

    def search_query(
        self,
        query: str,
        kind: str = "title",
        page_size: int = 10,
        page: int = 1
    ) -> FetchResult[List[BookRecord]]:
        """Shortcut for ``search(SearchRequest(...))``."""
        return self.search(SearchRequest(query, kind, page_size, page))

    def fetch_work_detail(self, work_key: str) -> FetchResult[WorkDetail]:
        """
        Look up a work's title and author references.

        Args:
            work_key: ``OL123W`` or ``/works/OL123W``
        """
        try:
            path = work_path(work_key)
        except ValueError as e:
            return FetchResult.failure(FetchError.partial_item(f"bad work key {work_key!r}: {e}"))

        result = self._get_json(path)
        if not result.ok:
            return result

        key = work_key if work_key.startswith("/works/") else f"/works/{work_key}"
        try:
            return FetchResult.success(parse_work_detail(result.value, key))
        except SchemaError as e:
            return FetchResult.failure(FetchError.decode(str(e)))

    def fetch_author_name(self, author_key: str) -> FetchResult[str]:
        """
        Resolve an author key (``/authors/OL1A``) to a display name.
        """
        try:
            path = author_path(author_key)
        except ValueError as e:
            return FetchResult.failure(FetchError.partial_item(f"bad author key {author_key!r}: {e}"))

        result = self._get_json(path)
        if not result.ok:
            return result

        try:
            return FetchResult.success(parse_author_name(result.value))
        except SchemaError as e:
            return FetchResult.failure(FetchError.decode(str(e)))

    def _get_json(self, path: str) -> FetchResult[Any]:
        """
        GET a path and decode its JSON body, retrying transient failures.

        Args:
            path: Path and query string below the base URL

        Returns:
            FetchResult with the decoded body, or the last error seen
        """
        url = f"{self.base_url}{path}"
        error = FetchError.network("no attempt made")

        for attempt in range(self.max_retries):
            try:
                logger.debug(f"Request attempt {attempt + 1}/{self.max_retries}: {url}")

                response = self.session.get(url, timeout=self.timeout)

                # Handle different status codes
                if response.status_code == 200:
                    try:
                        return FetchResult.success(response.json())
                    except ValueError as e:
                        logger.error(f"Undecodable body from {url}: {e}")
                        return FetchResult.failure(FetchError.decode(str(e), response.status_code))

                error = FetchError.network(f"HTTP {response.status_code} for {path}", response.status_code)

                if response.status_code == 429 or response.status_code >= 500:
                    # Rate limited or server error - retryable
                    logger.warning(f"Retryable status ({response.status_code}) on attempt {attempt + 1}")
                    if attempt < self.max_retries - 1:
                        self._backoff(attempt)
                    continue

                # Client error or unexpected status - don't retry
                logger.error(f"Request failed ({response.status_code}): {url}")
                return FetchResult.failure(error)

            except requests.exceptions.Timeout:
                logger.warning(f"Timeout on attempt {attempt + 1}")
                error = FetchError.network(f"no response: timed out after {self.timeout}s")

            except requests.exceptions.RequestException as e:
                logger.warning(f"Connection error on attempt {attempt + 1}: {e}")
                error = FetchError.network(f"no response: {e}")

            if attempt < self.max_retries - 1:
                self._backoff(attempt)

        logger.error(f"All {self.max_retries} attempts failed: {error}")
        return FetchResult.failure(error)

    def _backoff(self, attempt: int):
        """
        Sleep with exponential backoff and jitter.

        Args:
            attempt: Current attempt number (0-indexed)
        """
        # Exponential backoff: base * 2^attempt
        delay = self.base_backoff * (2 ** attempt)

        # Add jitter: random value between 0 and delay
        jitter = random.uniform(0, delay)
        total_delay = delay + jitter

        logger.info(f"Backing off for {total_delay:.2f} seconds")
        time.sleep(total_delay)

    def close(self):
        """Close the session."""
        self.session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
