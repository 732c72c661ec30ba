"""Tests for parsing functions."""
import pytest

from booksearch.errors import SchemaError
from booksearch.parse import (
    parse_doc,
    parse_search_response,
    deduplicate_books,
    parse_work_detail,
    parse_author_name,
)
from booksearch.models import BookRecord


def test_parse_doc_complete(dune_doc):
    """Test parsing a doc with all fields present."""
    book = parse_doc(dune_doc)

    assert book is not None
    assert book.key == "/works/OL893415W"
    assert book.title == "Dune"
    assert book.author_names == ["Frank Herbert"]
    assert book.first_publish_year == 1965
    assert book.edition_count == 120
    assert book.language == "eng, spa"
    assert book.subject == "Science fiction, Deserts"
    assert book.already_read_count == 450
    assert book.is_favorite is False
    assert book.note is None


def test_parse_doc_missing_fields():
    """Test parsing a doc with missing optional fields."""
    book = parse_doc({"key": "/works/OL9W", "title": "Mystery Book"})

    assert book is not None
    assert book.author_names == []
    assert book.first_publish_year is None
    assert book.edition_count == 0
    assert book.language == ""
    assert book.want_to_read_count == 0


def test_parse_doc_wrong_types_fall_back_to_defaults():
    """Test that mistyped optional fields are ignored."""
    book = parse_doc({
        "key": "/works/OL9W",
        "title": "Odd Book",
        "author_name": "not a list",
        "first_publish_year": "1999",
        "edition_count": -4,
        "language": ["eng", 7],
        "want_to_read_count": True,
    })

    assert book.author_names == []
    assert book.first_publish_year is None
    assert book.edition_count == 0
    assert book.language == "eng"
    assert book.want_to_read_count == 0


@pytest.mark.parametrize("doc", [
    {"title": "No Key Book"},
    {"key": "/works/OL9W"},
    {"key": "", "title": "Empty Key"},
    {"key": "/works/OL9W", "title": "   "},
    "not an object",
])
def test_parse_doc_requires_key_and_title(doc):
    """Test that docs without key or title return None."""
    assert parse_doc(doc) is None


def test_parse_search_response_drops_incomplete_docs(search_payload):
    """Test that a doc missing its title is dropped, not fatal."""
    books = parse_search_response(search_payload)

    assert len(books) == 2
    assert [b.title for b in books] == ["Dune", "Children of Dune"]
    assert all(b.key and b.title for b in books)


def test_parse_search_response_empty_docs():
    assert parse_search_response({"docs": []}) == []


@pytest.mark.parametrize("payload", [[], "docs", {"numFound": 0}, {"docs": {"key": "x"}}])
def test_parse_search_response_bad_shape(payload):
    """Test that a body without a docs array is a schema error."""
    with pytest.raises(SchemaError):
        parse_search_response(payload)


def test_deduplicate_books():
    """Test deduplication by book key."""
    books = [
        BookRecord("/works/1", "Book A"),
        BookRecord("/works/2", "Book B"),
        BookRecord("/works/1", "Book A Duplicate"),
    ]

    unique = deduplicate_books(books)

    assert len(unique) == 2
    assert unique[0].title == "Book A"
    assert unique[1].key == "/works/2"


def test_parse_work_detail():
    """Test extracting title and author references from a work."""
    payload = {
        "title": "Beloved",
        "authors": [
            {"author": {"key": "/authors/OL70A"}, "type": {"key": "/type/author_role"}},
            {"type": {"key": "/type/author_role"}},
            {"author": {"key": ""}},
            "garbage",
        ],
        "first_publish_date": "September 1987",
        "subjects": ["Slavery", "Ghosts"],
    }

    detail = parse_work_detail(payload, "/works/OL7W")

    assert detail.key == "/works/OL7W"
    assert detail.title == "Beloved"
    assert detail.author_keys == ["/authors/OL70A"]
    assert detail.first_publish_year == 1987
    assert detail.subject == "Slavery, Ghosts"


def test_parse_work_detail_without_title():
    with pytest.raises(SchemaError):
        parse_work_detail({"authors": []}, "/works/OL7W")


def test_parse_author_name():
    assert parse_author_name({"name": "Toni Morrison", "key": "/authors/OL70A"}) == "Toni Morrison"

    with pytest.raises(SchemaError):
        parse_author_name({"key": "/authors/OL70A"})


if __name__ == "__main__":
    # Run tests
    pytest.main([__file__])
