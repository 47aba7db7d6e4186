"""Repository interfaces (ports) for dependency inversion."""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

from shelfsync.core.events import Subscription
from shelfsync.domain.entities import BookList, BookRecord, Presence, SearchCandidate

Mutator = Callable[[BookRecord], BookRecord]
SnapshotCallback = Callable[[list[BookRecord]], Awaitable[None]]


class IRecordStore(ABC):
    """Local, durable, always-available store of book records."""

    @abstractmethod
    async def initialize(self) -> None:
        """Provision storage; raise ``StorageUnavailable`` if it cannot be opened."""
        pass

    @abstractmethod
    async def get_by_list(self, book_list: BookList) -> list[BookRecord]:
        """Records on *book_list*, newest ``date_added`` first."""
        pass

    @abstractmethod
    async def get_all(self) -> list[BookRecord]:
        pass

    @abstractmethod
    async def get(self, book_id: str) -> Optional[BookRecord]:
        pass

    @abstractmethod
    async def exists(self, book_id: str) -> Presence:
        pass

    @abstractmethod
    async def add(self, record: BookRecord) -> BookRecord:
        """Insert; raise ``AlreadyExists`` if the id is taken."""
        pass

    @abstractmethod
    async def update(self, book_id: str, mutator: Mutator) -> BookRecord:
        """Get-then-put under the store's write lock; raise ``NotFound`` if absent."""
        pass

    @abstractmethod
    async def remove(self, book_id: str) -> bool:
        """Delete; return whether anything was removed."""
        pass

    @abstractmethod
    async def replace_all(self, records: list[BookRecord]) -> None:
        """Atomically clear the store and insert *records*."""
        pass

    @abstractmethod
    async def counts_by_list(self) -> dict[BookList, int]:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


class ISettingsStore(ABC):
    """Local copy of the per-user settings document."""

    @abstractmethod
    async def get_category_labels(self) -> list[str]:
        pass

    @abstractmethod
    async def set_category_labels(self, labels: list[str]) -> list[str]:
        pass


class IRemoteSubscription(ABC):

    @property
    @abstractmethod
    def active(self) -> bool:
        pass

    @abstractmethod
    async def cancel(self) -> None:
        """Stop delivery. No callback fires once this returns."""
        pass


class IRemoteMirror(ABC):
    """Per-user remote replica; every call needs an active identity."""

    @abstractmethod
    async def put(self, record: BookRecord) -> None:
        """Merge-write the record by id."""
        pass

    @abstractmethod
    async def remove(self, book_id: str) -> None:
        pass

    @abstractmethod
    async def fetch_all(self) -> list[BookRecord]:
        pass

    @abstractmethod
    async def subscribe(self, on_change: SnapshotCallback) -> IRemoteSubscription:
        """Deliver the current snapshot now and again after every remote change."""
        pass

    @abstractmethod
    async def fetch_settings(self) -> dict[str, Any]:
        pass

    @abstractmethod
    async def put_settings(self, values: dict[str, Any]) -> None:
        """Merge-write the settings document."""
        pass


class IIdentityProvider(ABC):
    """Opaque sign-in capability: a current user id and a stream of changes."""

    @property
    @abstractmethod
    def current_user_id(self) -> Optional[str]:
        pass

    @abstractmethod
    def auth_changes(self) -> Subscription[Optional[str]]:
        """Yield the current identity, then every later change (``None`` = signed out)."""
        pass


class ICatalogProvider(ABC):

    name: str

    @abstractmethod
    async def search(self, query: str, limit: int) -> list[SearchCandidate]:
        pass


class ICatalogSearch(ABC):

    @abstractmethod
    async def search(self, query: str) -> list[SearchCandidate]:
        """Primary provider first, secondary on failure; ``SearchFailed`` if both fail."""
        pass
