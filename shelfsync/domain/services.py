"""Domain-level application service interfaces (ports).

The API layer depends on these abstract classes only. Concrete
implementations live in ``shelfsync/services/`` and are wired together by
the composition root in ``shelfsync/core/dependencies.py``.
"""

from abc import ABC, abstractmethod
from typing import Optional, Union

from shelfsync.core.events import Subscription
from shelfsync.domain.entities import (
    BookList,
    BookRecord,
    MutationResult,
    Presence,
    RemoteStatus,
    SearchCandidate,
    SyncEvent,
    SyncState,
)


class ISyncCoordinator(ABC):

    @property
    @abstractmethod
    def state(self) -> SyncState:
        pass

    @property
    @abstractmethod
    def live(self) -> bool:
        """True while a remote subscription is delivering snapshots."""
        pass

    @abstractmethod
    def events(self) -> Subscription[SyncEvent]:
        """Subscribe to sync notifications (refresh, synced, sync error, ...)."""
        pass

    @abstractmethod
    async def start(self) -> None:
        """Begin following the identity provider's auth changes."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        pass

    @abstractmethod
    async def handle_auth_change(self, user_id: Optional[str]) -> None:
        pass

    @abstractmethod
    async def reconcile(self) -> list[BookRecord]:
        """Merge local and remote state; return the resulting local record set."""
        pass

    @abstractmethod
    def mutation_gate(self):
        """Async context manager held by every local write.

        Reconciliation holds the same gate for its whole run.
        """
        pass

    @abstractmethod
    async def propagate_put(self, record: BookRecord) -> RemoteStatus:
        pass

    @abstractmethod
    async def propagate_remove(self, book_id: str) -> RemoteStatus:
        pass

    @abstractmethod
    async def propagate_settings(self, category_labels: list[str]) -> RemoteStatus:
        pass


class ILibraryService(ABC):

    # --- Reads ---

    @abstractmethod
    async def get_book(self, book_id: str) -> Optional[BookRecord]:
        pass

    @abstractmethod
    async def get_list(self, book_list: BookList) -> list[BookRecord]:
        pass

    @abstractmethod
    async def exists(self, book_id: str) -> Presence:
        pass

    @abstractmethod
    async def counts(self) -> dict[BookList, int]:
        pass

    @abstractmethod
    async def owned_by_category(self) -> list[tuple[Optional[str], list[BookRecord]]]:
        """Group the ``own`` list by category label; ``None`` is uncategorized."""
        pass

    # --- Mutations ---

    @abstractmethod
    async def add_book(
        self, candidate: Union[SearchCandidate, BookRecord], book_list: BookList
    ) -> MutationResult:
        pass

    @abstractmethod
    async def add_manual_book(
        self,
        title: str,
        authors: list[str],
        book_list: BookList,
        *,
        isbn: Optional[str] = None,
        publish_year: Optional[int] = None,
        page_count: Optional[int] = None,
        cover_url: Optional[str] = None,
    ) -> MutationResult:
        pass

    @abstractmethod
    async def move_book(self, book_id: str, book_list: BookList) -> MutationResult:
        pass

    @abstractmethod
    async def update_notes(self, book_id: str, notes: str) -> MutationResult:
        pass

    @abstractmethod
    async def update_rating(self, book_id: str, rating: int) -> MutationResult:
        pass

    @abstractmethod
    async def update_categories(self, book_id: str, categories: list[str]) -> MutationResult:
        pass

    @abstractmethod
    async def remove_book(self, book_id: str) -> MutationResult:
        pass

    # --- Category labels ---

    @abstractmethod
    async def category_labels(self) -> list[str]:
        pass

    @abstractmethod
    async def set_category_labels(self, labels: list[str]) -> tuple[list[str], RemoteStatus]:
        pass

    @abstractmethod
    async def remove_category_label(self, label: str) -> tuple[list[str], RemoteStatus]:
        pass
