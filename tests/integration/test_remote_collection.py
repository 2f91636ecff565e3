#!/usr/bin/env python3
"""
Live test against the configured remote collection (JSONPlaceholder by default).
Deselected by default; run with: pytest -m integration
"""

import pytest

from book import BookDraft
from library import BookStore
from services.http_client import BooksClient, NotFound

# Mark the entire module as integration to allow skipping by default
pytestmark = pytest.mark.integration


@pytest.mark.asyncio
async def test_full_crud_cycle_against_remote():
    async with BooksClient() as client:
        store = BookStore(client)

        assert await store.reload() is True
        assert 0 < len(store.books) <= store.list_cap

        book = await store.add(BookDraft(title="Integration Book", body="Created by the integration test", owner_id=1))
        assert store.books[0] == book

        first = store.books[1]
        updated = await store.edit(first.id, BookDraft(title="Updated title", body="Updated by the integration test", owner_id=1))
        assert store.find_book(first.id) == updated

        await store.remove(first.id)
        assert store.find_book(first.id) is None


@pytest.mark.asyncio
async def test_missing_record_is_not_found():
    async with BooksClient() as client:
        with pytest.raises(NotFound):
            await client.get_book(987654)
