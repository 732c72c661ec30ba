"""Resolve favorites that are not on the current result page."""
import asyncio
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from booksearch.models import BookRecord, Note, ResultSnapshot, WorkDetail
from booksearch.store import ResultStore

logger = logging.getLogger(__name__)


def partition(favorites: Sequence[str], snapshot: ResultSnapshot) -> Tuple[List[BookRecord], List[str]]:
    """
    Split favorite keys into records already in the snapshot and keys to look up.

    Returns:
        (present records, missing keys), both in favorites order
    """
    present = []
    missing = []
    for key in favorites:
        record = snapshot.find(key)
        if record is not None:
            present.append(record)
        else:
            missing.append(key)
    return present, missing


def _assemble(key: str, detail: WorkDetail, author_names: List[str], note: Optional[Note]) -> BookRecord:
    return BookRecord(
        key=key,
        title=detail.title,
        author_names=author_names,
        first_publish_year=detail.first_publish_year,
        subject=detail.subject,
        is_favorite=True,
        note=note,
    )


def _ordered(favorites: Sequence[str], records: Dict[str, BookRecord]) -> List[BookRecord]:
    return [records[key] for key in favorites if key in records]


class FavoritesEnricher:
    """Sequential enrichment through the blocking CatalogClient."""

    def __init__(self, store: ResultStore, client):
        self.store = store
        self.client = client

    def refresh(self) -> List[BookRecord]:
        """
        Build the favorites list for display.

        Favorites on the current page are reused; the rest are resolved with a
        work lookup plus one author lookup per author reference. A failed work
        lookup omits that item, a failed author lookup only drops that name.
        The store is not modified.
        """
        favorites = self.store.favorites()
        notes = self.store.notes()
        present, missing = partition(favorites, self.store.snapshot())
        records = {record.key: record for record in present}

        if missing:
            logger.info(f"Resolving {len(missing)} favorites not on the current page")
        for key in missing:
            record = self._resolve(key, notes.get(key))
            if record is not None:
                records[key] = record

        return _ordered(favorites, records)

    def _resolve(self, key: str, note: Optional[Note]) -> Optional[BookRecord]:
        result = self.client.fetch_work_detail(key)
        if not result.ok:
            logger.warning(f"Could not resolve favorite {key}: {result.error}")
            return None

        author_names = []
        for author_key in result.value.author_keys:
            author = self.client.fetch_author_name(author_key)
            if author.ok:
                author_names.append(author.value)
            else:
                logger.warning(f"Could not resolve author {author_key} of {key}: {author.error}")

        return _assemble(key, result.value, author_names, note)


class AsyncFavoritesEnricher:
    """Concurrent enrichment through the AsyncCatalogClient."""

    def __init__(self, store: ResultStore, client):
        self.store = store
        self.client = client

    async def refresh(self) -> List[BookRecord]:
        """Same contract as ``FavoritesEnricher.refresh`` with lookups in parallel."""
        favorites = self.store.favorites()
        notes = self.store.notes()
        present, missing = partition(favorites, self.store.snapshot())
        records = {record.key: record for record in present}

        resolved = await asyncio.gather(
            *(self._resolve(key, notes.get(key)) for key in missing),
            return_exceptions=True
        )
        for key, record in zip(missing, resolved):
            if isinstance(record, Exception):
                logger.warning(f"Skipping favorite {key}: {record!r}")
            elif record is not None:
                records[key] = record

        return _ordered(favorites, records)

    async def _resolve(self, key: str, note: Optional[Note]) -> Optional[BookRecord]:
        result = await self.client.fetch_work_detail(key)
        if not result.ok:
            logger.warning(f"Could not resolve favorite {key}: {result.error}")
            return None

        authors = await asyncio.gather(
            *(self.client.fetch_author_name(author_key) for author_key in result.value.author_keys),
            return_exceptions=True
        )
        author_names = []
        for author_key, author in zip(result.value.author_keys, authors):
            if isinstance(author, Exception):
                logger.warning(f"Author lookup {author_key} of {key} raised: {author!r}")
            elif author.ok:
                author_names.append(author.value)
            else:
                logger.warning(f"Could not resolve author {author_key} of {key}: {author.error}")

        return _assemble(key, result.value, author_names, note)
