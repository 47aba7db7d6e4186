"""In-process remote mirror for offline development and tests.

One :class:`InMemoryRemoteBackend` plays the cloud; each device gets its own
:class:`InMemoryRemoteMirror` client bound to that device's identity
provider. Documents are stored as plain dicts and writes merge, matching the
Redis implementation's contract.
"""

import copy
import logging
from typing import Any

from shelfsync.domain.entities import BookRecord
from shelfsync.domain.exceptions import RemoteUnavailable, Unauthenticated
from shelfsync.domain.repositories import (
    IIdentityProvider,
    IRemoteMirror,
    IRemoteSubscription,
    SnapshotCallback,
)
from shelfsync.infrastructure.remote.redis_mirror import document_id

logger = logging.getLogger(__name__)


class InMemoryRemoteBackend:
    """Shared document store: ``user -> doc_id -> document``."""

    def __init__(self) -> None:
        self.books: dict[str, dict[str, dict[str, Any]]] = {}
        self.settings: dict[str, dict[str, Any]] = {}
        self.subscriptions: dict[str, list["InMemorySubscription"]] = {}
        self.online = True

    def check_online(self) -> None:
        if not self.online:
            raise RemoteUnavailable("Remote backend is offline")

    def snapshot(self, user_id: str) -> list[BookRecord]:
        documents = self.books.get(user_id, {})
        return [BookRecord.from_dict(copy.deepcopy(doc)) for _, doc in sorted(documents.items())]

    async def notify(self, user_id: str) -> None:
        for subscription in list(self.subscriptions.get(user_id, [])):
            await subscription.deliver(self.snapshot(user_id))


class InMemorySubscription(IRemoteSubscription):

    def __init__(self, backend: InMemoryRemoteBackend, user_id: str, on_change: SnapshotCallback):
        self._backend = backend
        self._user_id = user_id
        self._on_change = on_change
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    async def deliver(self, snapshot: list[BookRecord]) -> None:
        if not self._active:
            return
        try:
            await self._on_change(snapshot)
        except Exception:
            logger.exception("Remote snapshot handler failed")

    async def cancel(self) -> None:
        self._active = False
        subscriptions = self._backend.subscriptions.get(self._user_id, [])
        if self in subscriptions:
            subscriptions.remove(self)


class InMemoryRemoteMirror(IRemoteMirror):

    def __init__(self, backend: InMemoryRemoteBackend, identity: IIdentityProvider):
        self.backend = backend
        self.identity = identity

    def _require_user(self) -> str:
        user_id = self.identity.current_user_id
        if not user_id:
            raise Unauthenticated("No signed-in user")
        self.backend.check_online()
        return user_id

    async def put(self, record: BookRecord) -> None:
        user_id = self._require_user()
        documents = self.backend.books.setdefault(user_id, {})
        documents.setdefault(document_id(record.id), {}).update(copy.deepcopy(record.to_dict()))
        await self.backend.notify(user_id)

    async def remove(self, book_id: str) -> None:
        user_id = self._require_user()
        self.backend.books.get(user_id, {}).pop(document_id(book_id), None)
        await self.backend.notify(user_id)

    async def fetch_all(self) -> list[BookRecord]:
        return self.backend.snapshot(self._require_user())

    async def subscribe(self, on_change: SnapshotCallback) -> IRemoteSubscription:
        user_id = self._require_user()
        subscription = InMemorySubscription(self.backend, user_id, on_change)
        self.backend.subscriptions.setdefault(user_id, []).append(subscription)
        await subscription.deliver(self.backend.snapshot(user_id))
        return subscription

    async def fetch_settings(self) -> dict[str, Any]:
        user_id = self._require_user()
        return copy.deepcopy(self.backend.settings.get(user_id, {}))

    async def put_settings(self, values: dict[str, Any]) -> None:
        user_id = self._require_user()
        self.backend.settings.setdefault(user_id, {}).update(copy.deepcopy(values))
