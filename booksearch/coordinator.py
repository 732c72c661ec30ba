"""Background worker that serves pending searches and favorites refreshes."""
import logging
import threading
from enum import Enum
from typing import Callable, Optional

from booksearch.errors import FetchError, FetchResult
from booksearch.models import ResultSnapshot, SearchRequest
from booksearch.store import ResultStore

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[SearchRequest, FetchError], None]
PublishCallback = Callable[[SearchRequest, ResultSnapshot], None]
FavoritesCallback = Callable[[ResultSnapshot], None]


class CoordinatorState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    PUBLISHING = "publishing"


class FetchCoordinator:
    """
    Polls the store for a pending search, runs it and publishes the outcome.

    With an enricher it also rebuilds the favorites view on request, so every
    network call happens on the worker thread.

    Only one fetch is in flight at a time. A request submitted while a fetch
    runs waits in the store's pending slot; the in-flight result is still
    published first (last request wins, nothing is cancelled).
    """

    def __init__(
        self,
        store: ResultStore,
        client,
        poll_interval: float = 0.1,
        on_error: Optional[ErrorCallback] = None,
        on_published: Optional[PublishCallback] = None,
        enricher=None,
        on_favorites: Optional[FavoritesCallback] = None
    ):
        """
        Args:
            store: Shared result store
            client: Anything with ``search(SearchRequest) -> FetchResult``
            poll_interval: Max seconds between checks for work or shutdown
            on_error: Called with the request and error after a failed fetch
            on_published: Called with the request and new snapshot after a publish
            enricher: Anything with ``refresh() -> List[BookRecord]``
            on_favorites: Called with the favorites view after a refresh
        """
        self.store = store
        self.client = client
        self.poll_interval = poll_interval
        self.on_error = on_error
        self.on_published = on_published
        self.enricher = enricher
        self.on_favorites = on_favorites

        self.last_error: Optional[FetchError] = None
        self.fetch_count = 0
        self._state = CoordinatorState.IDLE
        self._state_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> CoordinatorState:
        with self._state_lock:
            return self._state

    def _set_state(self, state: CoordinatorState):
        with self._state_lock:
            self._state = state

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        """Start the worker thread."""
        if self.is_running:
            return
        self._thread = threading.Thread(target=self.run, name="fetch-coordinator", daemon=True)
        self._thread.start()
        logger.info("Fetch coordinator started")

    def stop(self, timeout: Optional[float] = None):
        """Request shutdown and wait for the worker to exit."""
        self.store.request_shutdown()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Fetch coordinator still busy with an in-flight request")
            else:
                logger.info("Fetch coordinator stopped")

    def run(self):
        """Serve requests until shutdown is requested."""
        while not self.store.shutdown_requested:
            self.poll_once(self.poll_interval)

    def poll_once(self, timeout: float = 0) -> bool:
        """
        Wait up to ``timeout`` seconds for a pending search or favorites refresh and serve it.

        A search is served before a refresh taken in the same round, so the
        refresh sees the newest page.

        Returns:
            True if any work was done (successfully or not)
        """
        if timeout > 0:
            request, refresh = self.store.wait_for_work(timeout)
        else:
            request = self.store.take_pending_search()
            refresh = self.store.take_favorites_refresh()

        if request is not None:
            self.serve(request)
        if refresh:
            self.refresh_favorites()
        return request is not None or refresh

    def serve(self, request: SearchRequest) -> FetchResult:
        """Fetch one request and publish it, or report the failure."""
        self._set_state(CoordinatorState.FETCHING)
        self.fetch_count += 1
        try:
            logger.info(f"Fetching {request.kind} search {request.query!r} (page {request.page})")
            try:
                result = self.client.search(request)
            except Exception as e:
                logger.exception(f"Unexpected error while fetching {request.query!r}")
                result = FetchResult.failure(FetchError.network(f"unexpected error: {e}"))

            self._set_state(CoordinatorState.PUBLISHING)
            if result.ok:
                snapshot = self.store.publish_results(result.value, request)
                self.last_error = None
                logger.info(f"Published {len(snapshot)} results for {request.query!r}")
                self._notify(self.on_published, request, snapshot)
            else:
                self.last_error = result.error
                logger.error(f"Search {request.query!r} failed, keeping previous results: {result.error}")
                self._notify(self.on_error, request, result.error)
            return result
        finally:
            self._set_state(CoordinatorState.IDLE)

    def refresh_favorites(self) -> Optional[ResultSnapshot]:
        """
        Rebuild the favorites view through the enricher and publish it.

        If the enricher raises, the previous view stays and ``on_favorites``
        still fires with it so a waiting consumer wakes up.
        """
        if self.enricher is None:
            logger.warning("Favorites refresh requested but no enricher is configured")
            return None

        self._set_state(CoordinatorState.FETCHING)
        try:
            try:
                records = self.enricher.refresh()
            except Exception:
                logger.exception("Unexpected error while refreshing favorites")
                records = None

            self._set_state(CoordinatorState.PUBLISHING)
            if records is None:
                view = self.store.favorites_view()
            else:
                view = self.store.publish_favorites(records)
                logger.info(f"Published {len(view)} favorites")
            self._notify(self.on_favorites, view)
            return view
        finally:
            self._set_state(CoordinatorState.IDLE)

    def _notify(self, callback, *args):
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception(f"Callback {getattr(callback, '__name__', callback)!r} failed")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop(timeout=self.poll_interval * 10)
