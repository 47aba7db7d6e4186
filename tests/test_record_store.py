"""Tests for the SQL record store."""

import asyncio
from dataclasses import replace

import pytest

from conftest import make_book
from shelfsync.domain.entities import BookList
from shelfsync.domain.exceptions import AlreadyExists, InvalidRecord, NotFound, StorageUnavailable
from shelfsync.infrastructure.database.connection import create_engine
from shelfsync.infrastructure.database.repository import SettingsRepository, SqlRecordStore


async def test_add_and_get(store):
    book = make_book("gbooks:1", BookList.READ, isbn="9780000000001", page_count=320)
    await store.add(book)

    fetched = await store.get("gbooks:1")
    assert fetched == book
    assert await store.get("missing") is None


async def test_duplicate_add_is_rejected_and_leaves_record_unchanged(store):
    await store.add(make_book("gbooks:1", BookList.READ, notes="original"))

    with pytest.raises(AlreadyExists) as exc_info:
        await store.add(make_book("gbooks:1", BookList.OWN, notes="clobber"))

    assert exc_info.value.existing_list == "read"
    stored = await store.get("gbooks:1")
    assert stored.notes == "original"
    assert stored.book_list is BookList.READ
    assert len(await store.get_all()) == 1


async def test_get_by_list_orders_newest_first(store):
    await store.add(make_book("a", date_added=100))
    await store.add(make_book("b", date_added=300))
    await store.add(make_book("c", date_added=200))
    await store.add(make_book("x", BookList.OWN, date_added=999))

    books = await store.get_by_list(BookList.WANT_TO_READ)
    assert [b.id for b in books] == ["b", "c", "a"]

    await store.add(make_book("newest", date_added=1000))
    books = await store.get_by_list(BookList.WANT_TO_READ)
    assert books[0].id == "newest"


async def test_exists_reports_current_list(store):
    await store.add(make_book("a", BookList.OWN))

    presence = await store.exists("a")
    assert presence.exists
    assert presence.book_list is BookList.OWN

    missing = await store.exists("b")
    assert not missing.exists
    assert missing.book_list is None


async def test_update_applies_single_field_change(store):
    await store.add(make_book("a", notes="old"))

    updated = await store.update("a", lambda r: replace(r, notes="new"))

    assert updated.notes == "new"
    stored = await store.get("a")
    assert stored.notes == "new"
    assert stored.title == "Title a"


async def test_update_missing_raises_not_found(store):
    with pytest.raises(NotFound):
        await store.update("ghost", lambda r: replace(r, notes="x"))


async def test_update_rejects_invalid_state(store):
    await store.add(make_book("a", rating=3))

    with pytest.raises(InvalidRecord):
        await store.update("a", lambda r: replace(r, rating=9))
    with pytest.raises(InvalidRecord):
        await store.update("a", lambda r: replace(r, categories=["x", "y", "z"]))
    with pytest.raises(InvalidRecord):
        await store.update("a", lambda r: replace(r, id="b"))

    assert (await store.get("a")).rating == 3


async def test_concurrent_updates_on_same_id_do_not_clobber(store):
    await store.add(make_book("a"))

    await asyncio.gather(
        store.update("a", lambda r: replace(r, notes="great")),
        store.update("a", lambda r: replace(r, rating=4)),
        store.update("a", lambda r: replace(r, book_list=BookList.READ)),
    )

    stored = await store.get("a")
    assert stored.notes == "great"
    assert stored.rating == 4
    assert stored.book_list is BookList.READ


async def test_remove_is_idempotent(store):
    await store.add(make_book("a"))

    assert await store.remove("a") is True
    assert await store.remove("a") is False
    assert await store.get("a") is None


async def test_replace_all_swaps_entire_contents(store):
    await store.add(make_book("old-1"))
    await store.add(make_book("old-2"))

    await store.replace_all([make_book("new-1", BookList.OWN), make_book("new-2", notes="first"), make_book("new-2", notes="second")])

    ids = sorted(b.id for b in await store.get_all())
    assert ids == ["new-1", "new-2"]
    assert (await store.get("new-2")).notes == "second"


async def test_counts_by_list_includes_empty_lists(store):
    await store.add(make_book("a", BookList.READ))
    await store.add(make_book("b", BookList.READ))
    await store.add(make_book("c", BookList.OWN))

    counts = await store.counts_by_list()
    assert counts == {BookList.WANT_TO_READ: 0, BookList.READ: 2, BookList.OWN: 1}


async def test_lists_partition_records_after_moves(store):
    for i in range(6):
        await store.add(make_book(f"b{i}", date_added=i))
    moves = [("b0", BookList.READ), ("b1", BookList.OWN), ("b0", BookList.OWN), ("b4", BookList.READ)]
    for book_id, target in moves:
        await store.update(book_id, lambda r, target=target: replace(r, book_list=target))

    seen = []
    for book_list in BookList:
        seen.extend(b.id for b in await store.get_by_list(book_list))
    assert sorted(seen) == sorted(b.id for b in await store.get_all())
    assert len(seen) == len(set(seen)) == 6


async def test_initialize_is_idempotent(store):
    await store.initialize()
    await store.add(make_book("a"))
    await store.initialize()
    assert await store.get("a") is not None


async def test_initialize_fails_when_storage_cannot_be_opened(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'dir' / 'books.db'}"
    record_store = SqlRecordStore(create_engine(url))

    with pytest.raises(StorageUnavailable):
        await record_store.initialize()
    await record_store.close()


async def test_settings_repository_keeps_ordered_unique_labels(store):
    settings = SettingsRepository(store.engine)
    assert await settings.get_category_labels() == []

    saved = await settings.set_category_labels(["Fiction", " History ", "", "Fiction"])
    assert saved == ["Fiction", "History"]

    await settings.set_category_labels(["Poetry"])
    assert await settings.get_category_labels() == ["Poetry"]
