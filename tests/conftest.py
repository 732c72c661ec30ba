"""Pytest configuration and fixtures."""
import threading

import pytest
import requests

from booksearch.errors import FetchError, FetchResult
from booksearch.models import BookRecord, WorkDetail


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self.text is not None:
            raise ValueError(f"Expecting value: line 1 column 1 (char 0) in {self.text!r}")
        return self._payload


class FakeSession:
    """
    Records requested URLs and answers from a route table.

    Routes map a URL path (without query string) to a FakeResponse, an
    exception instance to raise, or a list of either consumed in order.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.headers = {}
        self.calls = []
        self.closed = False

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        path = url.split("://", 1)[-1]
        path = path[path.index("/"):] if "/" in path else "/"
        path = path.split("?", 1)[0]
        answer = self.routes.get(path)
        if isinstance(answer, list):
            answer = answer.pop(0) if len(answer) > 1 else answer[0]
        if answer is None:
            return FakeResponse(404, {"error": "notfound"})
        if isinstance(answer, Exception):
            raise answer
        return answer

    def close(self):
        self.closed = True


class FakeCatalog:
    """In-memory catalog client used by coordinator and enricher tests."""

    def __init__(self, pages=None, works=None, authors=None):
        self.pages = pages or {}
        self.works = works or {}
        self.authors = authors or {}
        self.search_calls = []
        self.work_calls = []
        self.author_calls = []
        self.lookup_threads = set()
        self.closed = False

    def search(self, request):
        self.search_calls.append(request)
        answer = self.pages.get(request.query, [])
        if isinstance(answer, FetchError):
            return FetchResult.failure(answer)
        return FetchResult.success([book.copy() for book in answer])

    def fetch_work_detail(self, key):
        self.work_calls.append(key)
        self.lookup_threads.add(threading.current_thread().name)
        answer = self.works.get(key)
        if answer is None:
            return FetchResult.failure(FetchError.network(f"HTTP 404 for {key}", 404))
        return FetchResult.success(answer)

    def fetch_author_name(self, key):
        self.author_calls.append(key)
        name = self.authors.get(key)
        if name is None:
            return FetchResult.failure(FetchError.network("no response: connection refused"))
        return FetchResult.success(name)

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def fake_response():
    """Factory for FakeResponse objects."""
    return FakeResponse


@pytest.fixture
def connection_error():
    return requests.exceptions.ConnectionError("connection refused")


@pytest.fixture
def dune_doc():
    return {
        "key": "/works/OL893415W",
        "title": "Dune",
        "author_name": ["Frank Herbert"],
        "first_publish_year": 1965,
        "edition_count": 120,
        "language": ["eng", "spa"],
        "subject": ["Science fiction", "Deserts"],
        "want_to_read_count": 900,
        "currently_reading_count": 120,
        "already_read_count": 450,
    }


@pytest.fixture
def search_payload(dune_doc):
    """Two well-formed docs and one missing its title."""
    return {
        "numFound": 3,
        "docs": [
            dune_doc,
            {"key": "/works/OL45804W", "title": "Children of Dune", "author_name": ["Frank Herbert"]},
            {"key": "/works/OL1W", "author_name": ["Nobody"]},
        ],
    }


@pytest.fixture
def books():
    return [
        BookRecord(key="/works/OL1W", title="Dune", author_names=["Frank Herbert"]),
        BookRecord(key="/works/OL2W", title="Emma", author_names=["Jane Austen"]),
        BookRecord(key="/works/OL3W", title="Ulysses", author_names=["James Joyce"]),
    ]


@pytest.fixture
def fake_catalog(books):
    return FakeCatalog(
        pages={"dune": books[:1], "classics": books[1:]},
        works={
            "/works/OL7W": WorkDetail("/works/OL7W", "Beloved", ["/authors/OL70A"]),
            "/works/OL8W": WorkDetail("/works/OL8W", "Middlemarch", ["/authors/OL80A", "/authors/OL81A"]),
        },
        authors={"/authors/OL70A": "Toni Morrison", "/authors/OL80A": "George Eliot"},
    )
