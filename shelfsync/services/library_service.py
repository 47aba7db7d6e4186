"""Library service: the operations the presentation layer invokes."""

import logging
from dataclasses import replace
from typing import Callable, Optional, Union
from uuid import uuid4

from shelfsync.domain.entities import (
    MAX_CATEGORIES,
    MAX_RATING,
    UNKNOWN_AUTHOR,
    UNKNOWN_TITLE,
    BookList,
    BookRecord,
    MutationResult,
    Presence,
    RemoteStatus,
    SearchCandidate,
    now_ms,
)
from shelfsync.domain.exceptions import InvalidRecord
from shelfsync.domain.repositories import IRecordStore, ISettingsStore, Mutator
from shelfsync.domain.services import ILibraryService, ISyncCoordinator

logger = logging.getLogger(__name__)

MANUAL_ID_PREFIX = "manual:"


class LibraryService(ILibraryService):
    """Local-first book list operations.

    Each mutation commits to the record store first, inside the coordinator's
    mutation gate, and is then mirrored outward. The remote outcome is
    reported on the :class:`MutationResult` and never undoes the local write.
    """

    def __init__(
        self,
        store: IRecordStore,
        settings_store: ISettingsStore,
        coordinator: ISyncCoordinator,
    ):
        self.store = store
        self.settings_store = settings_store
        self.coordinator = coordinator

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def get_book(self, book_id: str) -> Optional[BookRecord]:
        return await self.store.get(book_id)

    async def get_list(self, book_list: BookList) -> list[BookRecord]:
        return await self.store.get_by_list(book_list)

    async def exists(self, book_id: str) -> Presence:
        return await self.store.exists(book_id)

    async def counts(self) -> dict[BookList, int]:
        return await self.store.counts_by_list()

    async def owned_by_category(self) -> list[tuple[Optional[str], list[BookRecord]]]:
        """Group the ``own`` list under the user's ordered category labels.

        A book tagged with two labels appears in both groups. Labels that no
        longer exist in the settings are ignored here, so a book whose only
        labels were deleted lands in the uncategorized (``None``) group.
        """
        labels = await self.settings_store.get_category_labels()
        owned = await self.store.get_by_list(BookList.OWN)
        groups: dict[Optional[str], list[BookRecord]] = {label: [] for label in labels}
        uncategorized: list[BookRecord] = []
        for record in owned:
            known = [label for label in record.categories if label in groups]
            if not known:
                uncategorized.append(record)
            for label in known:
                groups[label].append(record)
        result = [(label, records) for label, records in groups.items() if records]
        if uncategorized:
            result.append((None, uncategorized))
        return result

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    async def add_book(
        self, candidate: Union[SearchCandidate, BookRecord], book_list: BookList
    ) -> MutationResult:
        if isinstance(candidate, SearchCandidate):
            record = candidate.to_record(BookList(book_list))
        else:
            record = replace(candidate, book_list=BookList(book_list))

        async with self.coordinator.mutation_gate():
            await self.store.add(record)
        logger.info("Added %s to %s", record.id, record.book_list.value)
        remote = await self.coordinator.propagate_put(record)
        return MutationResult(record=record, remote=remote)

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
        record = BookRecord(
            id=f"{MANUAL_ID_PREFIX}{uuid4().hex}",
            title=(title or "").strip() or UNKNOWN_TITLE,
            authors=[a.strip() for a in authors if a and a.strip()] or [UNKNOWN_AUTHOR],
            isbn=isbn,
            cover_url=cover_url,
            publish_year=publish_year,
            page_count=page_count,
            book_list=BookList(book_list),
            date_added=now_ms(),
        )
        return await self.add_book(record, record.book_list)

    async def move_book(self, book_id: str, book_list: BookList) -> MutationResult:
        target = BookList(book_list)
        return await self._mutate(book_id, lambda r: replace(r, book_list=target))

    async def update_notes(self, book_id: str, notes: str) -> MutationResult:
        return await self._mutate(book_id, lambda r: replace(r, notes=notes or ""))

    async def update_rating(self, book_id: str, rating: int) -> MutationResult:
        # Out-of-range ratings are rejected, never clamped.
        if isinstance(rating, bool) or not isinstance(rating, int) or not 0 <= rating <= MAX_RATING:
            raise InvalidRecord(f"Rating must be an integer between 0 and {MAX_RATING}")
        return await self._mutate(book_id, lambda r: replace(r, rating=rating))

    async def update_categories(self, book_id: str, categories: list[str]) -> MutationResult:
        cleaned: list[str] = []
        for label in categories:
            label = (label or "").strip()
            if label and label not in cleaned:
                cleaned.append(label)
        if len(cleaned) > MAX_CATEGORIES:
            raise InvalidRecord(f"At most {MAX_CATEGORIES} categories allowed")
        return await self._mutate(book_id, lambda r: replace(r, categories=cleaned))

    async def remove_book(self, book_id: str) -> MutationResult:
        async with self.coordinator.mutation_gate():
            removed = await self.store.remove(book_id)
        if removed:
            logger.info("Removed %s", book_id)
        remote = await self.coordinator.propagate_remove(book_id)
        return MutationResult(record=None, remote=remote)

    async def _mutate(self, book_id: str, mutator: Mutator) -> MutationResult:
        async with self.coordinator.mutation_gate():
            record = await self.store.update(book_id, mutator)
        remote = await self.coordinator.propagate_put(record)
        return MutationResult(record=record, remote=remote)

    # ------------------------------------------------------------------
    # Category labels
    # ------------------------------------------------------------------
    async def category_labels(self) -> list[str]:
        return await self.settings_store.get_category_labels()

    async def set_category_labels(self, labels: list[str]) -> tuple[list[str], RemoteStatus]:
        return await self._edit_labels(lambda current: labels)

    async def remove_category_label(self, label: str) -> tuple[list[str], RemoteStatus]:
        # Records keep the stale label; owned_by_category demotes them at read time.
        return await self._edit_labels(lambda current: [existing for existing in current if existing != label])

    async def _edit_labels(
        self, edit: Callable[[list[str]], list[str]]
    ) -> tuple[list[str], RemoteStatus]:
        async with self.coordinator.mutation_gate():
            current = await self.settings_store.get_category_labels()
            saved = await self.settings_store.set_category_labels(edit(current))
        remote = await self.coordinator.propagate_settings(saved)
        return saved, remote
