"""Parse and normalize Open Library API responses."""
import logging
import re
from typing import Dict, Any, List, Optional

from booksearch.errors import FetchError, SchemaError
from booksearch.models import BookRecord, WorkDetail

logger = logging.getLogger(__name__)

_YEAR_RE = re.compile(r"\d{4}")


def _as_count(value: Any) -> int:
    """Non-negative integer or 0."""
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return max(0, value)


def _as_year(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return None
    return value


def _join_tags(value: Any) -> str:
    """Join a list of string tags with ', '."""
    if isinstance(value, str):
        return value
    if not isinstance(value, list):
        return ""
    return ", ".join(v for v in value if isinstance(v, str))


def _non_empty_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def parse_doc(doc: Dict[str, Any]) -> Optional[BookRecord]:
    """
    Parse a single ``docs`` entry from the search endpoint.

    Args:
        doc: Single element of the ``docs`` array

    Returns:
        BookRecord, or None when the entry lacks a key or title
    """
    if not isinstance(doc, dict):
        logger.warning(f"Skipping entry: {FetchError.partial_item('entry is not an object')}")
        return None

    key = _non_empty_str(doc.get("key"))
    title = _non_empty_str(doc.get("title"))
    if not key or not title:
        error = FetchError.partial_item(f"entry {key or '<no key>'} is missing key or title")
        logger.warning(f"Skipping entry: {error}")
        return None

    authors = doc.get("author_name")
    author_names = [a for a in authors if isinstance(a, str)] if isinstance(authors, list) else []

    return BookRecord(
        key=key,
        title=title,
        author_names=author_names,
        first_publish_year=_as_year(doc.get("first_publish_year")),
        edition_count=_as_count(doc.get("edition_count")),
        language=_join_tags(doc.get("language")),
        subject=_join_tags(doc.get("subject")),
        want_to_read_count=_as_count(doc.get("want_to_read_count")),
        currently_reading_count=_as_count(doc.get("currently_reading_count")),
        already_read_count=_as_count(doc.get("already_read_count")),
    )


def parse_search_response(response_json: Any) -> List[BookRecord]:
    """
    Parse a full search response.

    Args:
        response_json: Decoded JSON body of ``/search.json``

    Returns:
        Well-formed, deduplicated records in response order

    Raises:
        SchemaError: If the body is not an object with a ``docs`` array
    """
    if not isinstance(response_json, dict):
        raise SchemaError(f"expected a JSON object, got {type(response_json).__name__}")
    docs = response_json.get("docs")
    if not isinstance(docs, list):
        raise SchemaError("response has no 'docs' array")

    books = []
    for doc in docs:
        book = parse_doc(doc)
        if book:
            books.append(book)

    return deduplicate_books(books)


def deduplicate_books(books: List[BookRecord]) -> List[BookRecord]:
    """
    Remove duplicate books by key.

    Args:
        books: List of BookRecord objects

    Returns:
        Deduplicated list of books
    """
    seen_keys = set()
    unique_books = []

    for book in books:
        if book.key not in seen_keys:
            seen_keys.add(book.key)
            unique_books.append(book)

    return unique_books


def parse_work_detail(response_json: Any, work_key: str) -> WorkDetail:
    """
    Parse a ``/works/<id>.json`` body.

    Raises:
        SchemaError: If the body is not an object or has no title
    """
    if not isinstance(response_json, dict):
        raise SchemaError(f"expected a JSON object, got {type(response_json).__name__}")
    title = _non_empty_str(response_json.get("title"))
    if not title:
        raise SchemaError(f"work {work_key} has no title")

    author_keys = []
    authors = response_json.get("authors")
    for entry in authors if isinstance(authors, list) else []:
        author = entry.get("author") if isinstance(entry, dict) else None
        key = _non_empty_str(author.get("key")) if isinstance(author, dict) else None
        if key:
            author_keys.append(key)

    year = None
    published = response_json.get("first_publish_date")
    if isinstance(published, str):
        m = _YEAR_RE.search(published)
        if m:
            year = int(m.group())

    return WorkDetail(
        key=work_key,
        title=title,
        author_keys=author_keys,
        first_publish_year=year,
        subject=_join_tags(response_json.get("subjects")),
    )


def parse_author_name(response_json: Any) -> str:
    """Extract ``name`` from an author body."""
    if not isinstance(response_json, dict):
        raise SchemaError(f"expected a JSON object, got {type(response_json).__name__}")
    name = _non_empty_str(response_json.get("name"))
    if not name:
        raise SchemaError("author has no name")
    return name
