"""Error taxonomy shared by the local store, the remote mirror and search."""

from typing import Optional


class ShelfSyncError(Exception):
    pass


class StorageUnavailable(ShelfSyncError):
    """Local persistence could not be opened."""


class AlreadyExists(ShelfSyncError):
    """An add targeted an id that is already stored."""

    def __init__(self, book_id: str, existing_list: Optional[str] = None):
        self.book_id = book_id
        self.existing_list = existing_list
        super().__init__(f"Book {book_id} already exists on list {existing_list}")


class NotFound(ShelfSyncError):
    def __init__(self, book_id: str):
        self.book_id = book_id
        super().__init__(f"Book {book_id} not found")


class InvalidRecord(ShelfSyncError, ValueError):
    """A write would break a record invariant (rating bounds, category count, ...)."""


class Unauthenticated(ShelfSyncError):
    """A remote call was attempted with no signed-in identity."""


class RemoteUnavailable(ShelfSyncError):
    """Network or remote service failure."""


class SearchFailed(ShelfSyncError):
    """Every catalog provider failed."""
