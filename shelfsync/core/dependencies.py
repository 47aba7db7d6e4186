"""Dependency injection container.

``build_context`` is the composition root: it wires one device's record
store, identity provider, remote mirror, sync coordinator and services into
an :class:`AppContext`. The FastAPI app keeps that context on ``app.state``
and the providers below hand its parts to route handlers.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Request

from shelfsync.core.config import Settings
from shelfsync.core.redis_client import create_redis
from shelfsync.domain.repositories import ICatalogSearch, IRecordStore, IRemoteMirror, ISettingsStore
from shelfsync.domain.services import ILibraryService, ISyncCoordinator
from shelfsync.infrastructure.catalog.providers import GoogleBooksProvider, OpenLibraryProvider
from shelfsync.infrastructure.catalog.search import CatalogSearchService
from shelfsync.infrastructure.database.connection import create_engine
from shelfsync.infrastructure.database.repository import SettingsRepository, SqlRecordStore
from shelfsync.infrastructure.identity.local import LocalIdentityProvider
from shelfsync.infrastructure.remote.memory import InMemoryRemoteBackend, InMemoryRemoteMirror
from shelfsync.infrastructure.remote.redis_mirror import RedisRemoteMirror
from shelfsync.services.library_service import LibraryService
from shelfsync.services.sync_coordinator import SyncCoordinator

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    store: IRecordStore
    settings_store: ISettingsStore
    identity: LocalIdentityProvider
    mirror: IRemoteMirror
    coordinator: ISyncCoordinator
    library: ILibraryService
    catalog: ICatalogSearch
    redis: Optional[Any] = None

    async def start(self) -> None:
        """Open local storage (fatal on failure), then start following sign-ins."""
        await self.store.initialize()
        await self.coordinator.start()

    async def close(self) -> None:
        await self.coordinator.stop()
        self.identity.close()
        await self.store.close()
        if self.redis is not None:
            await self.redis.aclose()


# ---------------------------------------------------------------------------
# Infrastructure providers
# ---------------------------------------------------------------------------
def build_remote_mirror(
    settings: Settings,
    identity: LocalIdentityProvider,
    backend: Optional[InMemoryRemoteBackend] = None,
) -> tuple[IRemoteMirror, Optional[Any]]:
    """Return the configured remote mirror (and its Redis client, if any)."""
    if settings.remote_backend == "memory":
        return InMemoryRemoteMirror(backend or InMemoryRemoteBackend(), identity), None
    elif settings.remote_backend == "redis":
        client = create_redis(settings)
        return RedisRemoteMirror(client, identity, prefix=settings.redis_key_prefix), client
    raise ValueError(f"Unknown remote backend: {settings.remote_backend}")


def build_catalog(settings: Settings) -> ICatalogSearch:
    return CatalogSearchService(
        providers=[
            GoogleBooksProvider(
                base_url=settings.google_books_url,
                api_key=settings.google_books_api_key,
                timeout=settings.search_timeout,
            ),
            OpenLibraryProvider(
                base_url=settings.open_library_url,
                timeout=settings.search_timeout,
            ),
        ],
        limit=settings.search_results_limit,
    )


def build_context(
    settings: Settings,
    *,
    remote_backend: Optional[InMemoryRemoteBackend] = None,
    catalog: Optional[ICatalogSearch] = None,
) -> AppContext:
    engine = create_engine(settings.database_url)
    store = SqlRecordStore(engine)
    settings_store = SettingsRepository(engine)
    identity = LocalIdentityProvider()
    mirror, redis_client = build_remote_mirror(settings, identity, remote_backend)
    coordinator = SyncCoordinator(store, settings_store, mirror, identity)
    library = LibraryService(store, settings_store, coordinator)
    logger.info("Context built (remote backend: %s)", settings.remote_backend)
    return AppContext(
        settings=settings,
        store=store,
        settings_store=settings_store,
        identity=identity,
        mirror=mirror,
        coordinator=coordinator,
        library=library,
        catalog=catalog or build_catalog(settings),
        redis=redis_client,
    )


# ---------------------------------------------------------------------------
# FastAPI providers
# ---------------------------------------------------------------------------
def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_library_service(request: Request) -> ILibraryService:
    return get_context(request).library


def get_sync_coordinator(request: Request) -> ISyncCoordinator:
    return get_context(request).coordinator


def get_identity_provider(request: Request) -> LocalIdentityProvider:
    return get_context(request).identity


def get_catalog_search(request: Request) -> ICatalogSearch:
    return get_context(request).catalog
