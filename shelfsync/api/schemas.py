"""Pydantic schemas for API requests and responses."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from shelfsync.domain.entities import BookList, RemoteStatus, SyncState


# ---------------------------------------------------------------------------
# Books
# ---------------------------------------------------------------------------
class BookResponse(BaseModel):
    id: str
    title: str
    authors: list[str]
    isbn: Optional[str] = None
    cover_url: Optional[str] = None
    publish_year: Optional[int] = None
    page_count: Optional[int] = None
    book_list: BookList
    date_added: int
    notes: str
    rating: int
    categories: list[str]

    model_config = ConfigDict(from_attributes=True)


class BookAddRequest(BaseModel):
    """Add a catalog search hit to one of the lists."""

    id: str = Field(..., min_length=1, max_length=255)
    title: str = "Unknown Title"
    authors: list[str] = Field(default_factory=lambda: ["Unknown Author"])
    isbn: Optional[str] = None
    cover_url: Optional[str] = None
    publish_year: Optional[int] = None
    page_count: Optional[int] = None
    book_list: BookList


class ManualBookRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=512)
    authors: list[str] = Field(default_factory=list)
    book_list: BookList
    isbn: Optional[str] = None
    cover_url: Optional[str] = None
    publish_year: Optional[int] = None
    page_count: Optional[int] = None


class MoveRequest(BaseModel):
    book_list: BookList


class NotesRequest(BaseModel):
    notes: str = ""


class RatingRequest(BaseModel):
    rating: int


class CategoriesRequest(BaseModel):
    categories: list[str] = Field(default_factory=list)


class MutationResponse(BaseModel):
    book: Optional[BookResponse] = None
    remote: RemoteStatus
    remote_warning: bool = False


class PresenceResponse(BaseModel):
    exists: bool
    book_list: Optional[BookList] = None


class CountsResponse(BaseModel):
    counts: dict[BookList, int]
    total: int


class CategoryGroupResponse(BaseModel):
    label: Optional[str] = None
    books: list[BookResponse]


# ---------------------------------------------------------------------------
# Category labels
# ---------------------------------------------------------------------------
class CategoryLabelsRequest(BaseModel):
    labels: list[str] = Field(default_factory=list)


class CategoryLabelsResponse(BaseModel):
    labels: list[str]
    remote: Optional[RemoteStatus] = None


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------
class SearchResultResponse(BaseModel):
    id: str
    title: str
    authors: list[str]
    isbn: Optional[str] = None
    cover_url: Optional[str] = None
    publish_year: Optional[int] = None
    page_count: Optional[int] = None
    on_list: Optional[BookList] = None

    model_config = ConfigDict(from_attributes=True)


class SearchResponse(BaseModel):
    query: str
    results: list[SearchResultResponse]
    total: int


# ---------------------------------------------------------------------------
# Auth / sync status
# ---------------------------------------------------------------------------
class SignInRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=128)


class AuthStatusResponse(BaseModel):
    user_id: Optional[str] = None
    state: SyncState
    live: bool = False
