"""Tests for the Redis remote mirror against fakeredis."""

import asyncio
import json

import fakeredis
import pytest

from conftest import make_book
from shelfsync.domain.entities import BookList
from shelfsync.domain.exceptions import RemoteUnavailable, Unauthenticated
from shelfsync.infrastructure.identity.local import LocalIdentityProvider
from shelfsync.infrastructure.remote.redis_mirror import RedisRemoteMirror, document_id


@pytest.fixture
def identity():
    return LocalIdentityProvider("alice")


@pytest.fixture
def mirror(redis_client, identity):
    return RedisRemoteMirror(redis_client, identity, prefix="test")


def test_document_id_strips_path_separators():
    assert document_id("ol:works/OL1W") == "ol:works_OL1W"
    assert document_id("gbooks:abc") == "gbooks:abc"


async def test_put_then_fetch_all(mirror):
    await mirror.put(make_book("gbooks:1", BookList.READ, rating=4, categories=["Fiction"]))
    await mirror.put(make_book("ol:works/OL1W", BookList.OWN))

    records = {r.id: r for r in await mirror.fetch_all()}

    assert set(records) == {"gbooks:1", "ol:works/OL1W"}
    assert records["gbooks:1"].rating == 4
    assert records["gbooks:1"].categories == ["Fiction"]
    assert records["ol:works/OL1W"].book_list is BookList.OWN


async def test_put_merges_into_existing_document(mirror, redis_client):
    key = mirror.key("alice", "books", "gbooks:1")
    await redis_client.hset(key, "shelfColor", json.dumps("blue"))

    await mirror.put(make_book("gbooks:1", notes="hello"))

    stored = await redis_client.hgetall(key)
    assert json.loads(stored["shelfColor"]) == "blue"
    assert json.loads(stored["notes"]) == "hello"


async def test_remove_deletes_document(mirror):
    await mirror.put(make_book("a"))
    await mirror.put(make_book("b"))

    await mirror.remove("a")
    await mirror.remove("never-existed")

    assert [r.id for r in await mirror.fetch_all()] == ["b"]


async def test_users_are_isolated(mirror, identity):
    await mirror.put(make_book("a"))
    identity.sign_in("bob")

    assert await mirror.fetch_all() == []


async def test_requires_signed_in_user(mirror, identity):
    identity.sign_out()

    with pytest.raises(Unauthenticated):
        await mirror.put(make_book("a"))
    with pytest.raises(Unauthenticated):
        await mirror.fetch_all()
    with pytest.raises(Unauthenticated):
        await mirror.subscribe(lambda records: None)


async def test_connection_errors_become_remote_unavailable(identity):
    server = fakeredis.FakeServer()
    server.connected = False
    client = fakeredis.FakeAsyncRedis(server=server, decode_responses=True)
    offline = RedisRemoteMirror(client, identity)

    with pytest.raises(RemoteUnavailable):
        await offline.put(make_book("a"))
    with pytest.raises(RemoteUnavailable):
        await offline.fetch_all()


async def test_settings_round_trip(mirror):
    assert await mirror.fetch_settings() == {}

    await mirror.put_settings({"categories": ["Fiction", "History"]})

    assert await mirror.fetch_settings() == {"categories": ["Fiction", "History"]}


async def test_subscription_delivers_initial_and_later_snapshots(mirror):
    snapshots = []
    changed = asyncio.Event()

    async def on_change(records):
        snapshots.append([r.id for r in records])
        changed.set()

    subscription = await mirror.subscribe(on_change)
    try:
        assert subscription.active
        assert snapshots == [[]]

        changed.clear()
        await mirror.put(make_book("a"))
        await asyncio.wait_for(changed.wait(), 2)
        assert snapshots[-1] == ["a"]
    finally:
        await subscription.cancel()

    assert not subscription.active
    count = len(snapshots)
    await mirror.put(make_book("b"))
    await asyncio.sleep(0.05)
    assert len(snapshots) == count


async def test_malformed_document_is_skipped(mirror, redis_client):
    await mirror.put(make_book("good"))
    await redis_client.hset(mirror.key("alice", "books", "bad"), "title", "plain text")
    await redis_client.sadd(mirror.key("alice", "books"), "bad")

    assert [r.id for r in await mirror.fetch_all()] == ["good"]


async def test_subscription_survives_malformed_document(mirror, redis_client):
    snapshots = []
    changed = asyncio.Event()

    async def on_change(records):
        snapshots.append(sorted(r.id for r in records))
        changed.set()

    subscription = await mirror.subscribe(on_change)
    try:
        changed.clear()
        await redis_client.hset(mirror.key("alice", "books", "bad"), "title", "{not json")
        await redis_client.sadd(mirror.key("alice", "books"), "bad")
        await mirror.put(make_book("a"))
        await asyncio.wait_for(changed.wait(), 2)

        assert subscription.active
        assert snapshots[-1] == ["a"]
    finally:
        await subscription.cancel()
