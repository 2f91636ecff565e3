import itertools
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Set, Tuple

from book import Book, BookDraft
from config import settings
from services.http_client import BooksAPIError, BooksClient

logger = logging.getLogger(__name__)

RELOAD_ERROR_MESSAGE = "Failed to load books. Please try again."


class CancellationToken:
    """Handed out by a view so results arriving after it went away are not applied."""

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


@dataclass(frozen=True)
class StoreSnapshot:
    """Read-only view of the store handed to the presentation layer."""

    books: Tuple[Book, ...]
    is_loading: bool
    is_submitting: bool
    deleting_id: Optional[int]
    last_error: Optional[str]

    def to_dict(self) -> dict:
        return {
            "books": [b.to_dict() for b in self.books],
            "is_loading": self.is_loading,
            "is_submitting": self.is_submitting,
            "deleting_id": self.deleting_id,
            "last_error": self.last_error,
        }


Listener = Callable[[StoreSnapshot], None]


class BookStore:
    """Keeps an in-memory list of books in step with the remote collection.

    The list only changes after the client confirms an operation. Operations
    are not serialized against each other. Every confirmed add/edit/remove
    bumps ``version``; a reload result is applied only when ``version`` has
    not moved since the reload was issued and no later reload got there first.
    """

    def __init__(self, client: BooksClient, *, list_cap: Optional[int] = None) -> None:
        self.client = client
        self.list_cap = settings.list_cap if list_cap is None else list_cap
        self.version = 0
        self.last_error: Optional[str] = None
        self._books: List[Book] = []
        self._reload_tickets = itertools.count(1)
        self._applied_reload = 0
        self._loading = 0
        self._submitting = 0
        self._deleting: List[int] = []
        self._listeners: List[Listener] = []

    # ------------------------- State access ------------------------- #
    @property
    def books(self) -> List[Book]:
        return list(self._books)

    @property
    def is_loading(self) -> bool:
        return self._loading > 0

    @property
    def is_submitting(self) -> bool:
        return self._submitting > 0

    @property
    def deleting_ids(self) -> Set[int]:
        return set(self._deleting)

    @property
    def deleting_id(self) -> Optional[int]:
        """The most recently issued delete still in flight, if any."""
        return self._deleting[-1] if self._deleting else None

    def is_deleting(self, book_id: int) -> bool:
        return book_id in self._deleting

    def find_book(self, book_id: int) -> Optional[Book]:
        for book in self._books:
            if book.id == book_id:
                return book
        return None

    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(
            books=tuple(self._books),
            is_loading=self.is_loading,
            is_submitting=self.is_submitting,
            deleting_id=self.deleting_id,
            last_error=self.last_error,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with a fresh snapshot after every change. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snap = self.snapshot()
        for listener in list(self._listeners):
            listener(snap)

    # ------------------------- Core operations ------------------------- #
    async def reload(self, token: Optional[CancellationToken] = None) -> bool:
        """Replace the list with the first ``list_cap`` remote records.

        On failure the current list is kept, ``last_error`` is set and False
        is returned. A result that went stale while in flight is dropped.
        """
        ticket = next(self._reload_tickets)
        issued_at = self.version
        self._loading += 1
        self.last_error = None
        self._notify()
        try:
            fetched = await self.client.list_books()
        except BooksAPIError as exc:
            logger.warning("Reload failed: %s", exc)
            if not _is_cancelled(token):
                self.last_error = RELOAD_ERROR_MESSAGE
            return False
        finally:
            self._loading -= 1
            self._notify()

        if _is_cancelled(token):
            logger.debug("Reload result dropped: caller cancelled")
            return True
        if self.version != issued_at or self._applied_reload > ticket:
            logger.info("Discarding stale reload #%s: the list changed while it was in flight", ticket)
            return True

        self._books = _unique_by_id(fetched[: self.list_cap])
        self._applied_reload = ticket
        self._notify()
        return True

    async def add(self, draft: BookDraft, token: Optional[CancellationToken] = None) -> Book:
        """Create a book remotely and prepend the confirmed record."""
        self._submitting += 1
        self._notify()
        try:
            book = await self.client.create_book(draft)
        finally:
            self._submitting -= 1
            self._notify()

        if _is_cancelled(token):
            logger.debug("Add result for book %s dropped: caller cancelled", book.id)
            return book
        # A remote that reuses an id we already list keeps only the newer record
        self._apply([book] + [b for b in self._books if b.id != book.id])
        return book

    async def edit(self, book_id: int, draft: BookDraft, token: Optional[CancellationToken] = None) -> Book:
        """Update a book remotely and replace the listed entry in place."""
        self._submitting += 1
        self._notify()
        try:
            book = await self.client.update_book(book_id, draft)
        finally:
            self._submitting -= 1
            self._notify()

        if _is_cancelled(token):
            logger.debug("Edit result for book %s dropped: caller cancelled", book_id)
            return book
        if self.find_book(book_id) is None:
            logger.debug("Book %s updated remotely but no longer listed", book_id)
            return book
        # Any other entry already carrying the returned id goes, so ids stay unique
        self._apply([book if b.id == book_id else b for b in self._books if b.id == book_id or b.id != book.id])
        return book

    async def remove(self, book_id: int, token: Optional[CancellationToken] = None) -> None:
        """Delete a book remotely and drop it from the list."""
        self._deleting.append(book_id)
        self._notify()
        try:
            await self.client.delete_book(book_id)
        finally:
            self._deleting.remove(book_id)
            self._notify()

        if _is_cancelled(token):
            logger.debug("Delete result for book %s dropped: caller cancelled", book_id)
            return
        self._apply([b for b in self._books if b.id != book_id])

    async def fetch(self, book_id: int) -> Book:
        """Fetch a single record straight from the remote collection. The list is not touched."""
        return await self.client.get_book(book_id)

    def _apply(self, books: List[Book]) -> None:
        self._books = books
        self.version += 1
        self._notify()


def _is_cancelled(token: Optional[CancellationToken]) -> bool:
    return token is not None and token.cancelled


def _unique_by_id(books: List[Book]) -> List[Book]:
    seen: Set[int] = set()
    unique: List[Book] = []
    for book in books:
        if book.id in seen:
            continue
        seen.add(book.id)
        unique.append(book)
    return unique
