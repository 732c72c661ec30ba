"""Shared result state between the fetch worker and the consumer."""
import logging
import threading
from typing import Dict, Iterable, List, Optional, Tuple, Union

from booksearch.models import BookRecord, Note, ResultSnapshot, SearchRequest

logger = logging.getLogger(__name__)


class ResultStore:
    """
    Thread-safe holder of the current results, pending search, favorites and notes.

    Every public method takes the same lock, so a publish from the fetch
    worker never interleaves with a toggle or note edit from the consumer.
    """

    def __init__(
        self,
        favorites: Optional[Iterable[str]] = None,
        notes: Optional[Dict[str, Note]] = None
    ):
        """
        Args:
            favorites: Persisted favorite keys (duplicates are collapsed)
            notes: Persisted notes keyed by book key
        """
        self._cond = threading.Condition()
        self._shutdown = threading.Event()
        self._pending: Optional[SearchRequest] = None
        self._records: List[BookRecord] = []
        self._ready = False
        self._request: Optional[SearchRequest] = None
        self._favorites: List[str] = []
        for key in favorites or ():
            if key and key not in self._favorites:
                self._favorites.append(key)
        self._notes: Dict[str, Note] = dict(notes or {})
        self._refresh_pending = False
        self._favorite_records: List[BookRecord] = []
        self._favorites_ready = False

    # Search requests

    def set_pending_search(self, request: SearchRequest) -> bool:
        """
        Record the latest desired search, replacing any request not yet taken.

        Returns:
            False if shutdown was requested and the request was ignored
        """
        with self._cond:
            if self._shutdown.is_set():
                logger.info(f"Ignoring search {request.query!r}: shutting down")
                return False
            if self._pending is not None:
                logger.debug(f"Replacing pending search {self._pending.query!r}")
            self._pending = request
            self._cond.notify_all()
            return True

    def take_pending_search(self) -> Optional[SearchRequest]:
        """Read and clear the pending request."""
        with self._cond:
            request, self._pending = self._pending, None
            return request

    def wait_for_work(self, timeout: float) -> Tuple[Optional[SearchRequest], bool]:
        """
        Block up to ``timeout`` seconds for a pending search or favorites refresh.

        Both triggers are taken (cleared) together. Returns ``(None, False)``
        as soon as shutdown is requested.

        Returns:
            (pending request or None, whether a favorites refresh was requested)
        """
        with self._cond:
            self._cond.wait_for(
                lambda: self._pending is not None or self._refresh_pending or self._shutdown.is_set(),
                timeout=timeout
            )
            if self._shutdown.is_set():
                return None, False
            request, self._pending = self._pending, None
            refresh, self._refresh_pending = self._refresh_pending, False
            return request, refresh

    # Favorites refresh

    def request_favorites_refresh(self) -> bool:
        """
        Ask the fetch worker to rebuild the favorites view.

        Returns:
            False if shutdown was requested and the refresh was ignored
        """
        with self._cond:
            if self._shutdown.is_set():
                logger.info("Ignoring favorites refresh: shutting down")
                return False
            self._refresh_pending = True
            self._cond.notify_all()
            return True

    def take_favorites_refresh(self) -> bool:
        """Read and clear the favorites refresh flag."""
        with self._cond:
            refresh, self._refresh_pending = self._refresh_pending, False
            return refresh

    def publish_favorites(self, records: Iterable[BookRecord]) -> ResultSnapshot:
        """
        Replace the favorites view.

        Records whose key stopped being a favorite while they were resolved are
        dropped; the rest get the current note.
        """
        with self._cond:
            self._favorite_records = [
                record for record in self._annotate_locked(records) if record.is_favorite
            ]
            self._favorites_ready = True
            return self._favorites_view_locked()

    def favorites_view(self) -> ResultSnapshot:
        """Last published favorites view; ``ready`` is False until the first refresh."""
        with self._cond:
            return self._favorites_view_locked()

    def _favorites_view_locked(self) -> ResultSnapshot:
        return ResultSnapshot(
            records=tuple(record.copy() for record in self._favorite_records),
            ready=self._favorites_ready
        )

    # Results

    def publish_results(
        self,
        records: Iterable[BookRecord],
        request: Optional[SearchRequest] = None
    ) -> ResultSnapshot:
        """
        Replace the current results wholesale and mark them ready.

        Each record's favorite flag and note are set from the store's current
        favorites and notes before it becomes visible.
        """
        with self._cond:
            self._records = self._annotate_locked(records)
            self._request = request
            self._ready = True
            return self._snapshot_locked()

    def _annotate_locked(self, records: Iterable[BookRecord]) -> List[BookRecord]:
        annotated = []
        for record in records:
            record = record.copy()
            record.is_favorite = record.key in self._favorites
            note = self._notes.get(record.key)
            record.note = Note(note.note, note.date) if note else None
            annotated.append(record)
        return annotated

    def snapshot(self) -> ResultSnapshot:
        """Consistent copy of the current results and readiness flag."""
        with self._cond:
            return self._snapshot_locked()

    def _snapshot_locked(self) -> ResultSnapshot:
        return ResultSnapshot(
            records=tuple(record.copy() for record in self._records),
            ready=self._ready,
            request=self._request
        )

    # Favorites and notes

    def toggle_favorite(self, key: str) -> bool:
        """
        Add or remove a favorite.

        Returns:
            The new favorite flag
        """
        if not key:
            raise ValueError("book key is empty")
        with self._cond:
            if key in self._favorites:
                self._favorites.remove(key)
                flag = False
            else:
                self._favorites.append(key)
                flag = True
            for record in self._records + self._favorite_records:
                if record.key == key:
                    record.is_favorite = flag
            logger.info(f"{'Added' if flag else 'Removed'} favorite {key}")
            return flag

    def set_note(self, key: str, note: Union[Note, str]) -> Note:
        """
        Insert or replace the note for a book.

        A plain string is stamped with the current time.
        """
        if not key:
            raise ValueError("book key is empty")
        if isinstance(note, str):
            note = Note.create(note)
        with self._cond:
            self._notes[key] = Note(note.note, note.date)
            for record in self._records + self._favorite_records:
                if record.key == key:
                    record.note = Note(note.note, note.date)
            return note

    def favorites(self) -> List[str]:
        """Favorite keys in the order they were added."""
        with self._cond:
            return list(self._favorites)

    def notes(self) -> Dict[str, Note]:
        with self._cond:
            return {key: Note(n.note, n.date) for key, n in self._notes.items()}

    def is_favorite(self, key: str) -> bool:
        with self._cond:
            return key in self._favorites

    def get_note(self, key: str) -> Optional[Note]:
        with self._cond:
            note = self._notes.get(key)
            return Note(note.note, note.date) if note else None

    # Shutdown

    def request_shutdown(self):
        """Set the process-wide shutdown flag and wake any waiting worker."""
        with self._cond:
            self._shutdown.set()
            self._cond.notify_all()

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown.is_set()
