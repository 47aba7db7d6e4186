"""Domain entities for ShelfSync."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from shelfsync.domain.exceptions import InvalidRecord

UNKNOWN_TITLE = "Unknown Title"
UNKNOWN_AUTHOR = "Unknown Author"
MAX_RATING = 5
MAX_CATEGORIES = 2


class BookList(str, Enum):
    WANT_TO_READ = "wantToRead"
    READ = "read"
    OWN = "own"


class SyncState(str, Enum):
    SIGNED_OUT = "signed_out"
    SYNCING = "syncing"
    SIGNED_IN = "signed_in"


class SyncEvent(str, Enum):
    """Notifications published by the sync coordinator for the UI."""

    SYNCING = "syncing"
    UPLOADED = "uploaded"
    SYNCED = "synced"
    SYNC_ERROR = "sync_error"
    REFRESH = "refresh"
    SIGNED_OUT = "signed_out"


class RemoteStatus(str, Enum):
    """Outcome of mirroring one local mutation to the remote store."""

    SKIPPED = "skipped"  # signed out
    SYNCED = "synced"
    FAILED = "failed"


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class BookRecord:
    id: str
    title: str = UNKNOWN_TITLE
    authors: list[str] = field(default_factory=lambda: [UNKNOWN_AUTHOR])
    isbn: Optional[str] = None
    cover_url: Optional[str] = None
    publish_year: Optional[int] = None
    page_count: Optional[int] = None
    book_list: BookList = BookList.WANT_TO_READ
    date_added: int = field(default_factory=now_ms)
    notes: str = ""
    rating: int = 0
    categories: list[str] = field(default_factory=list)

    def validate(self) -> "BookRecord":
        """Raise :class:`InvalidRecord` if any invariant is broken."""
        if not self.id:
            raise InvalidRecord("Book id is required")
        if not isinstance(self.book_list, BookList):
            raise InvalidRecord(f"Unknown list: {self.book_list!r}")
        if not isinstance(self.rating, int) or not 0 <= self.rating <= MAX_RATING:
            raise InvalidRecord(f"Rating must be between 0 and {MAX_RATING}, got {self.rating!r}")
        if len(self.categories) > MAX_CATEGORIES:
            raise InvalidRecord(f"At most {MAX_CATEGORIES} categories allowed")
        if len(set(self.categories)) != len(self.categories):
            raise InvalidRecord("Duplicate categories")
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase document shape shared with the remote store."""
        return {
            "id": self.id,
            "title": self.title,
            "authors": list(self.authors),
            "isbn": self.isbn,
            "coverUrl": self.cover_url,
            "publishYear": self.publish_year,
            "pageCount": self.page_count,
            "list": self.book_list.value,
            "dateAdded": self.date_added,
            "notes": self.notes,
            "rating": self.rating,
            "categories": list(self.categories),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BookRecord":
        """Build a record from a remote document, filling defaults for absent fields.

        Remote documents are written by other devices, so out-of-range values
        are coerced rather than rejected.
        """
        try:
            book_list = BookList(data.get("list") or BookList.WANT_TO_READ.value)
        except ValueError:
            book_list = BookList.WANT_TO_READ
        rating = _as_int(data.get("rating")) or 0
        categories: list[str] = []
        for label in data.get("categories") or []:
            if label and label not in categories:
                categories.append(label)
        return cls(
            id=str(data["id"]),
            title=data.get("title") or UNKNOWN_TITLE,
            authors=list(data.get("authors") or [UNKNOWN_AUTHOR]),
            isbn=data.get("isbn"),
            cover_url=data.get("coverUrl"),
            publish_year=_as_int(data.get("publishYear")),
            page_count=_as_int(data.get("pageCount")),
            book_list=book_list,
            date_added=_as_int(data.get("dateAdded")) or 0,
            notes=data.get("notes") or "",
            rating=min(max(rating, 0), MAX_RATING),
            categories=categories[:MAX_CATEGORIES],
        )


@dataclass
class Presence:
    """Answer to "is this book already on one of my lists?"."""

    exists: bool
    book_list: Optional[BookList] = None


@dataclass
class SearchCandidate:
    """A normalized catalog search hit, not yet on any list."""

    id: str
    title: str = UNKNOWN_TITLE
    authors: list[str] = field(default_factory=lambda: [UNKNOWN_AUTHOR])
    isbn: Optional[str] = None
    cover_url: Optional[str] = None
    publish_year: Optional[int] = None
    page_count: Optional[int] = None

    def to_record(self, book_list: BookList, date_added: Optional[int] = None) -> BookRecord:
        return BookRecord(
            id=self.id,
            title=self.title or UNKNOWN_TITLE,
            authors=list(self.authors) or [UNKNOWN_AUTHOR],
            isbn=self.isbn,
            cover_url=self.cover_url,
            publish_year=self.publish_year,
            page_count=self.page_count,
            book_list=book_list,
            date_added=date_added if date_added is not None else now_ms(),
        )


@dataclass
class MutationResult:
    """Result of a local mutation plus the best-effort remote outcome."""

    record: Optional[BookRecord]
    remote: RemoteStatus = RemoteStatus.SKIPPED

    @property
    def remote_warning(self) -> bool:
        return self.remote is RemoteStatus.FAILED


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
