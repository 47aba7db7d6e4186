"""Shared fixtures: a temporary SQLite record store and simulated devices."""

import asyncio
from dataclasses import dataclass

import fakeredis
import pytest

from shelfsync.domain.entities import BookList, BookRecord, SyncState
from shelfsync.domain.repositories import IRemoteMirror
from shelfsync.infrastructure.database.connection import create_engine
from shelfsync.infrastructure.database.repository import SettingsRepository, SqlRecordStore
from shelfsync.infrastructure.identity.local import LocalIdentityProvider
from shelfsync.infrastructure.remote.memory import InMemoryRemoteBackend, InMemoryRemoteMirror
from shelfsync.infrastructure.remote.redis_mirror import RedisRemoteMirror
from shelfsync.services.library_service import LibraryService
from shelfsync.services.sync_coordinator import SyncCoordinator


def make_book(book_id: str, book_list: BookList = BookList.WANT_TO_READ, date_added: int = 1000, **fields) -> BookRecord:
    return BookRecord(
        id=book_id,
        title=fields.pop("title", f"Title {book_id}"),
        authors=fields.pop("authors", ["Author"]),
        book_list=book_list,
        date_added=date_added,
        **fields,
    )


async def wait_for_state(coordinator: SyncCoordinator, state: SyncState, timeout: float = 2.0) -> None:
    async def _poll():
        while coordinator.state is not state:
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout)


async def eventually(check, timeout: float = 2.0) -> None:
    """Poll an async predicate until it holds."""

    async def _poll():
        while not await check():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout)


@dataclass
class Device:
    store: SqlRecordStore
    settings_store: SettingsRepository
    identity: LocalIdentityProvider
    mirror: IRemoteMirror
    coordinator: SyncCoordinator
    library: LibraryService

    async def sign_in(self, user_id: str) -> None:
        self.identity.sign_in(user_id)
        await self.coordinator.handle_auth_change(user_id)

    async def sign_out(self) -> None:
        self.identity.sign_out()
        await self.coordinator.handle_auth_change(None)


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'books.db'}"


@pytest.fixture
async def store(db_url):
    record_store = SqlRecordStore(create_engine(db_url))
    await record_store.initialize()
    yield record_store
    await record_store.close()


@pytest.fixture
def backend():
    return InMemoryRemoteBackend()


@pytest.fixture
async def redis_client():
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
async def make_device(tmp_path, backend, redis_client):
    devices: list[Device] = []

    async def factory(name: str = "device", mirror_class=InMemoryRemoteMirror, redis: bool = False) -> Device:
        engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / name}.db")
        record_store = SqlRecordStore(engine)
        await record_store.initialize()
        settings_store = SettingsRepository(engine)
        identity = LocalIdentityProvider()
        if redis:
            mirror = RedisRemoteMirror(redis_client, identity, prefix="test")
        else:
            mirror = mirror_class(backend, identity)
        coordinator = SyncCoordinator(record_store, settings_store, mirror, identity)
        library = LibraryService(record_store, settings_store, coordinator)
        device = Device(record_store, settings_store, identity, mirror, coordinator, library)
        devices.append(device)
        return device

    yield factory

    for device in devices:
        await device.coordinator.stop()
        await device.store.close()


@pytest.fixture
async def device(make_device):
    return await make_device("phone")
