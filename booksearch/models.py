"""Data models for catalog records, notes and search requests."""
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, List, Tuple

SEARCH_KINDS = ("title", "author")


@dataclass
class Note:
    """User note attached to a book."""
    note: str
    date: str = ""

    @classmethod
    def create(cls, body: str, when: Optional[datetime] = None) -> "Note":
        """Stamp a note body with a ctime-style timestamp."""
        when = when or datetime.now()
        return cls(note=body, date=when.strftime("%a %b %d %H:%M:%S %Y"))

    def to_dict(self) -> dict:
        return {"note": self.note, "date": self.date}


@dataclass
class BookRecord:
    """Normalized catalog entry."""
    key: str
    title: str
    author_names: List[str] = field(default_factory=list)
    first_publish_year: Optional[int] = None
    edition_count: int = 0
    language: str = ""
    subject: str = ""
    want_to_read_count: int = 0
    currently_reading_count: int = 0
    already_read_count: int = 0
    is_favorite: bool = False
    note: Optional[Note] = None

    @property
    def authors_str(self) -> str:
        """Format authors as comma-separated string."""
        return ", ".join(self.author_names) if self.author_names else "Unknown"

    @property
    def year_str(self) -> str:
        return str(self.first_publish_year) if self.first_publish_year else "Unknown"

    def copy(self) -> "BookRecord":
        """Detached copy, safe to hand across threads."""
        note = replace(self.note) if self.note else None
        return replace(self, author_names=list(self.author_names), note=note)


@dataclass
class WorkDetail:
    """Partial record resolved from a work lookup."""
    key: str
    title: str
    author_keys: List[str] = field(default_factory=list)
    first_publish_year: Optional[int] = None
    subject: str = ""


@dataclass(frozen=True)
class SearchRequest:
    """One page of a title or author search."""
    query: str
    kind: str = "title"
    page_size: int = 10
    page: int = 1

    def __post_init__(self):
        if self.kind not in SEARCH_KINDS:
            raise ValueError(f"Unknown search kind: {self.kind!r}")
        if self.page_size < 1:
            raise ValueError("page_size must be at least 1")
        if self.page < 1:
            raise ValueError("page must be at least 1")

    def next_page(self) -> "SearchRequest":
        return replace(self, page=self.page + 1)

    def previous_page(self) -> "SearchRequest":
        return replace(self, page=max(1, self.page - 1))


@dataclass(frozen=True)
class ResultSnapshot:
    """Current page of results as seen by the consumer."""
    records: Tuple[BookRecord, ...] = ()
    ready: bool = False
    request: Optional[SearchRequest] = None

    def __len__(self) -> int:
        return len(self.records)

    def find(self, key: str) -> Optional[BookRecord]:
        """Return the record with the given key, if present."""
        for record in self.records:
            if record.key == key:
                return record
        return None
