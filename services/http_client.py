import httpx
from typing import Optional, Dict, Any, List, Tuple
import logging

from book import Book, BookDraft, BookDataError
from config import settings

logger = logging.getLogger(__name__)


class BooksAPIError(Exception):
    """Base class for failures talking to the remote books collection."""


class NetworkError(BooksAPIError):
    """No response reached us (connection refused, DNS, timeout...)."""


class HTTPError(BooksAPIError):
    """The remote system answered with a non-success status."""

    def __init__(self, status: int, message: Optional[str] = None):
        self.status = status
        super().__init__(message or f"Remote API returned HTTP {status}")


class NotFound(HTTPError):
    """The remote collection has no record with the requested id."""

    def __init__(self, book_id: int, status: int = 404):
        self.book_id = book_id
        super().__init__(status, f"Book {book_id} not found")


class InvalidResponse(HTTPError):
    """A success status whose body is not a usable book payload."""


class BooksClient:
    """Async wrapper around the remote collection endpoint.

    Every call reaches the network: no caching and no retries. A failed
    attempt surfaces to the caller immediately as a BooksAPIError.
    """

    def __init__(self, base_url: Optional[str] = None, *, timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = (base_url or settings.collection_url).rstrip("/")

        limits = httpx.Limits(
            max_keepalive_connections=10,
            max_connections=20,
            keepalive_expiry=30.0
        )

        self._client = httpx.AsyncClient(
            limits=limits,
            timeout=timeout if timeout is not None else settings.request_timeout,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            follow_redirects=True,
            transport=transport,
        )

    # ------------------------- Collection operations ------------------------- #
    async def list_books(self) -> List[Book]:
        """Fetch every record of the collection; no filtering is sent."""
        status, payload = await self._request("GET", self.base_url)
        if not isinstance(payload, list):
            raise InvalidResponse(status, "Expected a JSON array of books")
        return [self._parse_book(item, status) for item in payload]

    async def get_book(self, book_id: int) -> Book:
        status, payload = await self._request("GET", self._item_url(book_id), book_id=book_id)
        return self._parse_book(payload, status)

    async def create_book(self, draft: BookDraft) -> Book:
        """Create a record; the remote system assigns the id."""
        status, payload = await self._request("POST", self.base_url, json=draft.to_dict())
        return self._parse_book(payload, status)

    async def update_book(self, book_id: int, draft: BookDraft) -> Book:
        body = {"id": book_id, **draft.to_dict()}
        status, payload = await self._request("PUT", self._item_url(book_id), json=body, book_id=book_id)
        book = self._parse_book(payload, status)
        if book.id != book_id:
            raise InvalidResponse(status, f"Update of book {book_id} answered with book {book.id}")
        return book

    async def delete_book(self, book_id: int) -> None:
        """Delete a record. A 404 counts as success: the record is gone either way."""
        try:
            await self._request("DELETE", self._item_url(book_id), book_id=book_id)
        except NotFound:
            logger.debug("Book %s already absent remotely; treating delete as done", book_id)

    # ------------------------- Plumbing ------------------------- #
    def _item_url(self, book_id: int) -> str:
        return f"{self.base_url}/{book_id}"

    async def _request(self, method: str, url: str, *, json: Optional[Dict[str, Any]] = None,
                       book_id: Optional[int] = None) -> Tuple[int, Any]:
        try:
            response = await self._client.request(method, url, json=json)
        except httpx.TransportError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise NetworkError(f"Could not reach the books API: {exc}") from exc

        logger.debug("%s %s -> %s", method, url, response.status_code)

        if response.status_code == 404 and book_id is not None:
            raise NotFound(book_id)
        if response.is_error:
            logger.warning("%s %s returned HTTP %s", method, url, response.status_code)
            raise HTTPError(response.status_code)

        if not response.content:
            return response.status_code, None
        try:
            return response.status_code, response.json()
        except ValueError as exc:
            raise InvalidResponse(response.status_code, "Response body is not valid JSON") from exc

    @staticmethod
    def _parse_book(payload: Any, status: int) -> Book:
        try:
            return Book.from_dict(payload)
        except BookDataError as exc:
            raise InvalidResponse(status, f"Malformed book payload: {exc}") from exc

    async def close(self):
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
