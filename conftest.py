import asyncio
import json
from collections import deque
from typing import Deque, Dict, List, Optional

import httpx
import pytest

from book import Book, BookDraft
from library import BookStore
from services.http_client import BooksClient, NotFound

BASE_URL = "https://books.example.test/posts"


def make_books(count: int, start: int = 1) -> List[dict]:
    """Wire-format records like the ones the remote collection returns."""
    return [
        {"id": i, "title": f"Book {i}", "body": f"Description of book number {i}", "userId": (i % 10) + 1}
        for i in range(start, start + count)
    ]


class FakeRemote:
    """In-memory stand-in for the remote collection, served through httpx.MockTransport."""

    def __init__(self, records: Optional[List[dict]] = None, next_id: int = 101):
        self.records: Dict[int, dict] = {r["id"]: dict(r) for r in (records or [])}
        self.next_id = next_id
        self.requests: List[httpx.Request] = []
        self.fail_with: Optional[int] = None
        self.network_down = False
        self.strict_delete = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.network_down:
            raise httpx.ConnectError("connection refused", request=request)
        if self.fail_with:
            return httpx.Response(self.fail_with, json={"error": "boom"})

        parts = request.url.path.strip("/").split("/")
        if len(parts) == 1:
            if request.method == "GET":
                return httpx.Response(200, json=list(self.records.values()))
            if request.method == "POST":
                record = {**json.loads(request.content), "id": self.next_id}
                self.records[record["id"]] = record
                return httpx.Response(201, json=record)
            return httpx.Response(405)

        book_id = int(parts[1])
        if request.method == "GET":
            if book_id not in self.records:
                return httpx.Response(404, json={})
            return httpx.Response(200, json=self.records[book_id])
        if request.method == "PUT":
            if book_id not in self.records:
                return httpx.Response(404, json={})
            record = {**json.loads(request.content), "id": book_id}
            self.records[book_id] = record
            return httpx.Response(200, json=record)
        if request.method == "DELETE":
            if book_id not in self.records and self.strict_delete:
                return httpx.Response(404, json={})
            self.records.pop(book_id, None)
            return httpx.Response(200, json={})
        return httpx.Response(405)


class FakeBooksClient:
    """Client double for store tests.

    ``hold(op)`` returns an event the next ``op`` call waits on, so tests can
    interleave operations; ``errors[op]`` makes the next call raise.
    """

    def __init__(self, records: Optional[List[dict]] = None, next_id: int = 101):
        self.remote_books: List[Book] = [Book.from_dict(r) for r in (records or [])]
        self.next_id = next_id
        self.calls: List[str] = []
        self.errors: Dict[str, Exception] = {}
        self.gates: Dict[str, Deque[asyncio.Event]] = {}
        self.base_url = BASE_URL
        self.closed = False

    def hold(self, op: str) -> asyncio.Event:
        event = asyncio.Event()
        self.gates.setdefault(op, deque()).append(event)
        return event

    async def _enter(self, op: str) -> None:
        self.calls.append(op)
        gates = self.gates.get(op)
        if gates:
            await gates.popleft().wait()
        if op in self.errors:
            raise self.errors.pop(op)

    async def list_books(self) -> List[Book]:
        await self._enter("list")
        return list(self.remote_books)

    async def get_book(self, book_id: int) -> Book:
        await self._enter("get")
        for book in self.remote_books:
            if book.id == book_id:
                return book
        raise NotFound(book_id)

    async def create_book(self, draft: BookDraft) -> Book:
        await self._enter("create")
        return Book(id=self.next_id, title=draft.title, body=draft.body, owner_id=draft.owner_id)

    async def update_book(self, book_id: int, draft: BookDraft) -> Book:
        await self._enter("update")
        return Book(id=book_id, title=draft.title, body=draft.body, owner_id=draft.owner_id)

    async def delete_book(self, book_id: int) -> None:
        await self._enter("delete")

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def remote():
    return FakeRemote(make_books(5))


@pytest.fixture
def client_factory(remote):
    """Builds real BooksClients wired to the fake remote."""
    def factory() -> BooksClient:
        return BooksClient(BASE_URL, transport=httpx.MockTransport(remote.handler))
    return factory


@pytest.fixture
def fake_client():
    return FakeBooksClient(make_books(3))


@pytest.fixture
def store(fake_client):
    return BookStore(fake_client)
