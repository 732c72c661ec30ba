#!/usr/bin/env python3
"""Book Search Explorer CLI - Open Library search, favorites and notes."""
import argparse
import asyncio
import sys
import json
import threading
from tabulate import tabulate
from booksearch.client import CatalogClient
from booksearch.async_client import AsyncCatalogClient
from booksearch.coordinator import FetchCoordinator
from booksearch.enricher import FavoritesEnricher, AsyncFavoritesEnricher
from booksearch.models import SearchRequest
from booksearch.storage import LibraryStorage
from booksearch.store import ResultStore
from booksearch.config import Config
import logging

logger = logging.getLogger(__name__)

# Range of the page-size setting in the interactive session
MIN_PAGE_SIZE = 5
MAX_PAGE_SIZE = 50

INTERACTIVE_HELP = """Commands:
  search TEXT      search by title
  author TEXT      search by author
  next / prev      move between result pages
  fav N            toggle favorite for result N
  note N TEXT      attach a note to result N
  show N           show details for result N
  list             show the current results again
  limit N          results per page for later searches (5-50)
  favorites        show all favorites
  unfav N          remove favorite N of the last favorites listing
  help             show this help
  quit             save and exit"""


def setup_logging(config: Config):
    """Configure root logging once for the CLI."""
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s'
    )


def setup_store(storage: LibraryStorage) -> ResultStore:
    """Build the shared store from persisted favorites and notes."""
    favorites, notes = storage.load()
    return ResultStore(favorites, notes)


def save_store(storage: LibraryStorage, store: ResultStore):
    storage.save(store.favorites(), store.notes())


def build_client(config: Config) -> CatalogClient:
    return CatalogClient(
        base_url=config.OPENLIBRARY_BASE_URL,
        timeout=config.DEFAULT_TIMEOUT,
        max_retries=config.DEFAULT_MAX_RETRIES,
        base_backoff=config.DEFAULT_BACKOFF,
        user_agent=config.USER_AGENT
    )


class ResultWaiter:
    """Signals the consumer when the coordinator finishes a request."""

    def __init__(self):
        self._event = threading.Event()
        self.error = None

    def on_published(self, request, snapshot):
        self.error = None
        self._event.set()

    def on_error(self, request, error):
        self.error = error
        self._event.set()

    def on_favorites(self, view):
        self.error = None
        self._event.set()

    def reset(self):
        self.error = None
        self._event.clear()

    def wait(self, timeout: float) -> bool:
        return self._event.wait(timeout)


def display_books(books, format_type: str):
    """Display books in specified format."""
    if format_type == "table":
        headers = ["#", "Title", "Authors", "Year", "Fav", "Note"]
        rows = [
            [
                i,
                book.title[:50] + "..." if len(book.title) > 50 else book.title,
                book.authors_str[:30] + "..." if len(book.authors_str) > 30 else book.authors_str,
                book.year_str,
                "*" if book.is_favorite else "",
                "yes" if book.note else ""
            ]
            for i, book in enumerate(books, 1)
        ]
        print("\n" + tabulate(rows, headers=headers, tablefmt="grid"))

    elif format_type == "json":
        books_dict = [
            {
                "key": book.key,
                "title": book.title,
                "author_names": book.author_names,
                "first_publish_year": book.first_publish_year,
                "edition_count": book.edition_count,
                "language": book.language,
                "subject": book.subject,
                "want_to_read_count": book.want_to_read_count,
                "currently_reading_count": book.currently_reading_count,
                "already_read_count": book.already_read_count,
                "is_favorite": book.is_favorite,
                "note": book.note.to_dict() if book.note else None
            }
            for book in books
        ]
        print(json.dumps(books_dict, indent=2))

    elif format_type == "compact":
        for i, book in enumerate(books, 1):
            marker = "*" if book.is_favorite else " "
            print(f"{i}.{marker} {book.title} - {book.authors_str}")


def display_details(book):
    """Show the full record for one book."""
    rows = [
        ["Key", book.key],
        ["Title", book.title],
        ["Authors", book.authors_str],
        ["First published", book.year_str],
        ["Languages", book.language or "-"],
        ["Editions", book.edition_count],
        ["Subjects", book.subject[:200] + "..." if len(book.subject) > 200 else (book.subject or "-")],
        ["Want to read", book.want_to_read_count],
        ["Currently reading", book.currently_reading_count],
        ["Already read", book.already_read_count],
        ["Favorite", "yes" if book.is_favorite else "no"],
    ]
    if book.note:
        rows.append(["Note", f"{book.note.note} ({book.note.date})"])
    print("\n" + tabulate(rows, tablefmt="plain"))


def search_once(args, config: Config):
    """Run a single search through the coordinator and print the page."""
    storage = LibraryStorage(config.DATA_PATH)
    store = setup_store(storage)
    waiter = ResultWaiter()

    with build_client(config) as client:
        coordinator = FetchCoordinator(
            store,
            client,
            poll_interval=config.POLL_INTERVAL,
            on_error=waiter.on_error,
            on_published=waiter.on_published
        )
        with coordinator:
            store.set_pending_search(SearchRequest(args.query, args.kind, args.limit, args.page))
            # Retries can take several timeouts
            if not waiter.wait(config.DEFAULT_TIMEOUT * (config.DEFAULT_MAX_RETRIES + 1)):
                logger.error("Timed out waiting for results")
                return 1

    if waiter.error:
        logger.error(f"❌ Search failed: {waiter.error}")
        return 1

    snapshot = store.snapshot()
    logger.info(f"Found {len(snapshot)} books")
    display_books(snapshot.records, args.format)
    return 0


def _pick(records, token: str):
    """Resolve a 1-based listing number to a record."""
    try:
        index = int(token)
    except ValueError:
        print(f"Not a result number: {token}")
        return None
    if not 1 <= index <= len(records):
        print(f"No result #{index} in this listing")
        return None
    return records[index - 1]


def _parse_page_size(token: str):
    try:
        size = int(token)
    except ValueError:
        return None
    if not MIN_PAGE_SIZE <= size <= MAX_PAGE_SIZE:
        return None
    return size


def interactive(args, config: Config):
    """Interactive session: the consumer side of the fetch pipeline."""
    storage = LibraryStorage(config.DATA_PATH)
    store = setup_store(storage)
    waiter = ResultWaiter()
    wait_seconds = config.DEFAULT_TIMEOUT * (config.DEFAULT_MAX_RETRIES + 1)
    page_size = args.limit
    favorites_listing = ()

    client = build_client(config)
    coordinator = FetchCoordinator(
        store,
        client,
        poll_interval=config.POLL_INTERVAL,
        on_error=waiter.on_error,
        on_published=waiter.on_published,
        enricher=FavoritesEnricher(store, client),
        on_favorites=waiter.on_favorites
    )
    coordinator.start()

    def submit(request):
        waiter.reset()
        if not store.set_pending_search(request):
            return
        print(f"Searching {request.kind} {request.query!r}, page {request.page}...")
        if not waiter.wait(wait_seconds):
            print("Still searching; type 'list' to check later.")
        elif waiter.error:
            print(f"Search failed: {waiter.error}")
        else:
            display_books(store.snapshot().records, args.format)

    def refresh_favorites():
        waiter.reset()
        if not store.request_favorites_refresh():
            return ()
        print("Loading favorites...")
        # Every missing favorite costs a work lookup plus its author lookups
        if not waiter.wait(wait_seconds * max(1, len(store.favorites()))):
            print("Still loading favorites; try again later.")
            return ()
        view = store.favorites_view()
        if not view.records:
            print("No favorites could be shown" if store.favorites() else "No favorites yet")
        else:
            display_books(view.records, args.format)
        return view.records

    print(INTERACTIVE_HELP)
    try:
        while True:
            try:
                line = input("\nbooks> ").strip()
            except EOFError:
                break
            if not line:
                continue

            command, _, rest = line.partition(" ")
            command = command.lower()
            rest = rest.strip()
            snapshot = store.snapshot()

            if command in ("quit", "exit", "q"):
                break
            elif command == "help":
                print(INTERACTIVE_HELP)
            elif command in ("search", "author"):
                if not rest:
                    print(f"Usage: {command} TEXT")
                    continue
                kind = "author" if command == "author" else "title"
                submit(SearchRequest(rest, kind, page_size, 1))
            elif command in ("next", "prev"):
                if snapshot.request is None:
                    print("Search for something first")
                    continue
                request = snapshot.request.next_page() if command == "next" else snapshot.request.previous_page()
                submit(request)
            elif command == "list":
                if not snapshot.ready:
                    print("No results yet")
                else:
                    display_books(snapshot.records, args.format)
            elif command == "limit":
                size = _parse_page_size(rest)
                if size is None:
                    print(f"Usage: limit N (N between {MIN_PAGE_SIZE} and {MAX_PAGE_SIZE})")
                else:
                    page_size = size
                    print(f"Showing {page_size} results per page from the next search")
            elif command == "fav":
                book = _pick(snapshot.records, rest)
                if book:
                    flag = store.toggle_favorite(book.key)
                    print(f"{'Added to' if flag else 'Removed from'} favorites: {book.title}")
            elif command == "note":
                # The note text is taken verbatim after the number
                index, _, body = rest.partition(" ")
                body = body.strip()
                book = _pick(snapshot.records, index) if index else None
                if book and body:
                    note = store.set_note(book.key, body)
                    print(f"Saved note for {book.title} ({note.date})")
                elif book or not index:
                    print("Usage: note N TEXT")
            elif command == "show":
                book = _pick(snapshot.records, rest)
                if book:
                    display_details(book)
            elif command == "favorites":
                favorites_listing = refresh_favorites()
            elif command == "unfav":
                if not favorites_listing:
                    print("List favorites first")
                    continue
                book = _pick(favorites_listing, rest)
                if book is None:
                    continue
                if store.is_favorite(book.key):
                    store.toggle_favorite(book.key)
                    print(f"Removed from favorites: {book.title}")
                else:
                    print(f"Not a favorite any more: {book.title}")
            else:
                print(f"Unknown command: {command} (type 'help')")
    except KeyboardInterrupt:
        print()
    finally:
        coordinator.stop(timeout=config.POLL_INTERVAL * 10)
        client.close()
        save_store(storage, store)

    return 0


async def _refresh_favorites_async(store: ResultStore, config: Config):
    async with AsyncCatalogClient(
        base_url=config.OPENLIBRARY_BASE_URL,
        timeout=config.DEFAULT_TIMEOUT,
        max_concurrent=config.MAX_CONCURRENT,
        user_agent=config.USER_AGENT
    ) as client:
        return await AsyncFavoritesEnricher(store, client).refresh()


def _refresh_favorites_sync(store: ResultStore, config: Config):
    """Resolve favorites on the fetch worker and return the published view."""
    waiter = ResultWaiter()
    with build_client(config) as client:
        coordinator = FetchCoordinator(
            store,
            client,
            poll_interval=config.POLL_INTERVAL,
            enricher=FavoritesEnricher(store, client),
            on_favorites=waiter.on_favorites
        )
        with coordinator:
            store.request_favorites_refresh()
            timeout = config.DEFAULT_TIMEOUT * (config.DEFAULT_MAX_RETRIES + 1) * len(store.favorites())
            if not waiter.wait(timeout):
                logger.error("Timed out waiting for favorites")
                return None
    return list(store.favorites_view().records)


def show_favorites(args, config: Config):
    """List all favorites with their catalog details."""
    storage = LibraryStorage(config.DATA_PATH)
    store = setup_store(storage)

    if not store.favorites():
        print("No favorites yet")
        return 0

    if args.use_async:
        books = asyncio.run(_refresh_favorites_async(store, config))
    else:
        books = _refresh_favorites_sync(store, config)
        if books is None:
            return 1

    missing = len(store.favorites()) - len(books)
    if missing:
        logger.warning(f"⚠️  {missing} favorites could not be resolved")
    display_books(books, args.format)
    return 0


def show_notes(args, config: Config):
    """List saved notes."""
    notes = LibraryStorage(config.DATA_PATH).load_notes()
    if not notes:
        print("No notes yet")
        return 0

    rows = [[key, note.date, note.note] for key, note in sorted(notes.items())]
    print("\n" + tabulate(rows, headers=["Key", "Date", "Note"], tablefmt="grid"))
    return 0


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Book Search Explorer - Open Library search, favorites and notes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Search titles
  %(prog)s search "dune"

  # Second page of an author search as JSON
  %(prog)s search "le guin" --kind author --page 2 --format json

  # Interactive session
  %(prog)s interactive --limit 20

  # Favorites, resolved in parallel
  %(prog)s favorites --async
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    formats = ["table", "json", "compact"]

    # Search command
    search_parser = subparsers.add_parser("search", help="Search for books")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("--kind", choices=["title", "author"], default="title", help="Search by title or author")
    search_parser.add_argument("--limit", type=int, default=None, help="Results per page (default: DEFAULT_PAGE_SIZE)")
    search_parser.add_argument("--page", type=int, default=1, help="Page number (default: 1)")
    search_parser.add_argument("--format", choices=formats, default="table", help="Output format")

    # Interactive command
    interactive_parser = subparsers.add_parser("interactive", help="Interactive search session")
    interactive_parser.add_argument("--limit", type=int, default=None, help="Results per page (default: DEFAULT_PAGE_SIZE)")
    interactive_parser.add_argument("--format", choices=formats, default="table", help="Output format")

    # Favorites command
    favorites_parser = subparsers.add_parser("favorites", help="Show favorite books")
    favorites_parser.add_argument("--async", dest="use_async", action="store_true", help="Resolve favorites in parallel")
    favorites_parser.add_argument("--format", choices=formats, default="table", help="Output format")

    # Notes command
    subparsers.add_parser("notes", help="Show saved notes")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    config = Config()
    setup_logging(config)
    if getattr(args, "limit", None) is None and args.command in ("search", "interactive"):
        args.limit = config.DEFAULT_PAGE_SIZE

    try:
        if args.command == "search":
            code = search_once(args, config)

        elif args.command == "interactive":
            code = interactive(args, config)

        elif args.command == "favorites":
            code = show_favorites(args, config)

        elif args.command == "notes":
            code = show_notes(args, config)

    except KeyboardInterrupt:
        logger.info("\n⚠️  Interrupted by user")
        sys.exit(0)
    except ValueError as e:
        logger.error(f"❌ {e}")
        sys.exit(2)
    except Exception as e:
        logger.error(f"❌ Error: {e}", exc_info=True)
        sys.exit(1)

    sys.exit(code)


if __name__ == "__main__":
    main()
