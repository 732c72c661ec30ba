"""Tests for the catalog HTTP client."""
import urllib.parse

import pytest
import requests

from booksearch.client import (
    CatalogClient,
    SEARCH_FIELDS,
    author_path,
    build_search_path,
    percent_encode,
    work_path,
)
from booksearch.errors import FetchErrorKind
from booksearch.models import SearchRequest


@pytest.fixture
def client(fake_session):
    return CatalogClient(timeout=10, max_retries=1, base_backoff=0, session=fake_session)


def test_percent_encode_uses_real_hex_values():
    """Test that reserved bytes become %XX of their actual value."""
    assert percent_encode("sci-fi, vol.1") == "sci-fi%2C%20vol.1"
    assert percent_encode("a/b?c=d&e") == "a%2Fb%3Fc%3Dd%26e"
    assert percent_encode("Az09-_.~") == "Az09-_.~"
    assert percent_encode("é") == "%C3%A9"


@pytest.mark.parametrize("text", ["sci-fi, vol.1", "Harry Potter & the Goblet", "100% [draft] #2", "Cien años"])
def test_percent_encode_round_trips(text):
    """Test that standard URL decoding restores the text byte for byte."""
    encoded = percent_encode(text)

    assert " " not in encoded
    assert urllib.parse.unquote(encoded, encoding="utf-8") == text


def test_build_search_path_title():
    path = build_search_path(SearchRequest("the hobbit", "title", 20, 3))

    assert path == f"/search.json?title=the%20hobbit&limit=20&page=3&fields={SEARCH_FIELDS}"


def test_build_search_path_author():
    path = build_search_path(SearchRequest("Le Guin", "author"))

    assert path.startswith("/search.json?author=Le%20Guin&limit=10&page=1&fields=")
    assert "title=" not in path


def test_work_and_author_paths():
    assert work_path("OL7W") == "/works/OL7W.json"
    assert work_path("/works/OL7W") == "/works/OL7W.json"
    assert author_path("/authors/OL70A") == "/authors/OL70A.json"
    assert author_path("OL70A") == "/authors/OL70A.json"

    with pytest.raises(ValueError):
        work_path("/works/")


def test_search_success(client, fake_session, fake_response, search_payload):
    """Test that a good response yields only well-formed records."""
    fake_session.routes["/search.json"] = fake_response(200, search_payload)

    result = client.search(SearchRequest("dune"))

    assert result.ok
    assert len(result.value) == 2
    url, timeout = fake_session.calls[0]
    assert url.startswith("https://openlibrary.org/search.json?title=dune&limit=10&page=1")
    assert timeout == 10


def test_search_query_shortcut(client, fake_session, fake_response):
    fake_session.routes["/search.json"] = fake_response(200, {"docs": []})

    result = client.search_query("tolkien", kind="author", page_size=5, page=2)

    assert result.ok
    assert result.value == []
    assert "author=tolkien&limit=5&page=2" in fake_session.calls[0][0]


def test_search_http_error_is_network(client, fake_session, fake_response):
    fake_session.routes["/search.json"] = fake_response(503, {})

    result = client.search(SearchRequest("dune"))

    assert not result.ok
    assert result.error.kind == FetchErrorKind.NETWORK
    assert result.error.status == 503


def test_search_without_response_is_network(client, fake_session, connection_error):
    fake_session.routes["/search.json"] = connection_error

    result = client.search(SearchRequest("dune"))

    assert result.error.kind == FetchErrorKind.NETWORK
    assert result.error.status is None
    assert "no response" in result.error.detail


def test_search_timeout_is_network(client, fake_session):
    fake_session.routes["/search.json"] = requests.exceptions.ReadTimeout("read timed out")

    result = client.search(SearchRequest("dune"))

    assert result.error.kind == FetchErrorKind.NETWORK
    assert "timed out" in result.error.detail


def test_search_invalid_json_is_decode(client, fake_session, fake_response):
    fake_session.routes["/search.json"] = fake_response(200, text="<html>oops</html>")

    result = client.search(SearchRequest("dune"))

    assert result.error.kind == FetchErrorKind.DECODE
    assert "Expecting value" in result.error.detail


def test_search_wrong_shape_is_decode(client, fake_session, fake_response):
    fake_session.routes["/search.json"] = fake_response(200, {"results": []})

    result = client.search(SearchRequest("dune"))

    assert result.error.kind == FetchErrorKind.DECODE


def test_retries_server_errors_then_succeeds(fake_session, fake_response, search_payload):
    """Test that 5xx and 429 responses are retried."""
    fake_session.routes["/search.json"] = [
        fake_response(500, {}),
        fake_response(429, {}),
        fake_response(200, search_payload),
    ]
    client = CatalogClient(max_retries=3, base_backoff=0, session=fake_session)

    result = client.search(SearchRequest("dune"))

    assert result.ok
    assert len(fake_session.calls) == 3


def test_retries_stop_at_max(fake_session, fake_response):
    fake_session.routes["/search.json"] = [fake_response(502, {})]
    client = CatalogClient(max_retries=2, base_backoff=0, session=fake_session)

    result = client.search(SearchRequest("dune"))

    assert result.error.status == 502
    assert len(fake_session.calls) == 2


def test_client_errors_are_not_retried(fake_session, fake_response):
    fake_session.routes["/search.json"] = [fake_response(400, {})]
    client = CatalogClient(max_retries=3, base_backoff=0, session=fake_session)

    result = client.search(SearchRequest("dune"))

    assert result.error.status == 400
    assert len(fake_session.calls) == 1


def test_fetch_work_detail(client, fake_session, fake_response):
    fake_session.routes["/works/OL7W.json"] = fake_response(
        200, {"title": "Beloved", "authors": [{"author": {"key": "/authors/OL70A"}}]}
    )

    result = client.fetch_work_detail("/works/OL7W")

    assert result.ok
    assert result.value.key == "/works/OL7W"
    assert result.value.author_keys == ["/authors/OL70A"]


def test_fetch_work_detail_bare_id(client, fake_session, fake_response):
    fake_session.routes["/works/OL7W.json"] = fake_response(200, {"title": "Beloved"})

    result = client.fetch_work_detail("OL7W")

    assert result.value.key == "/works/OL7W"
    assert result.value.author_keys == []


def test_fetch_work_detail_missing(client):
    result = client.fetch_work_detail("/works/OL404W")

    assert result.error.kind == FetchErrorKind.NETWORK
    assert result.error.status == 404


def test_fetch_author_name(client, fake_session, fake_response):
    fake_session.routes["/authors/OL70A.json"] = fake_response(200, {"name": "Toni Morrison"})
    fake_session.routes["/authors/OL71A.json"] = fake_response(200, {"key": "/authors/OL71A"})

    assert client.fetch_author_name("/authors/OL70A").value == "Toni Morrison"
    assert client.fetch_author_name("/authors/OL71A").error.kind == FetchErrorKind.DECODE


def test_malformed_keys_are_partial_item_failures(client, fake_session):
    """Test that an unusable key is reported, not raised, and never requested."""
    for result in (
        client.fetch_author_name("/authors/"),
        client.fetch_author_name("  "),
        client.fetch_work_detail("/works/"),
    ):
        assert not result.ok
        assert result.error.kind == FetchErrorKind.PARTIAL_ITEM

    assert fake_session.calls == []


def test_context_manager_closes_session(fake_session):
    with CatalogClient(session=fake_session, user_agent="tests/1.0") as client:
        assert client.session.headers["User-Agent"] == "tests/1.0"

    assert fake_session.closed
