"""Book API routes (lists, add, move, rate, annotate, categorize, remove)."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from shelfsync.api.schemas import (
    BookAddRequest,
    BookResponse,
    CategoriesRequest,
    CategoryGroupResponse,
    CountsResponse,
    ManualBookRequest,
    MoveRequest,
    MutationResponse,
    NotesRequest,
    PresenceResponse,
    RatingRequest,
)
from shelfsync.core.dependencies import get_library_service
from shelfsync.domain.entities import BookList, MutationResult, SearchCandidate
from shelfsync.domain.exceptions import AlreadyExists, InvalidRecord, NotFound
from shelfsync.domain.services import ILibraryService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/books", tags=["books"])

Library = Annotated[ILibraryService, Depends(get_library_service)]


def _mutation_response(result: MutationResult) -> MutationResponse:
    if result.remote_warning:
        logger.warning("Saved locally but not yet synced: %s", result.record.id if result.record else "-")
    return MutationResponse(
        book=BookResponse.model_validate(result.record) if result.record else None,
        remote=result.remote,
        remote_warning=result.remote_warning,
    )


def _already_exists(exc: AlreadyExists) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={"message": "Book already on a list", "existing_list": exc.existing_list},
    )


def _not_found(book_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Book {book_id} not found")


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
@router.get("/", response_model=list[BookResponse])
async def list_books(library: Library, book_list: BookList = BookList.WANT_TO_READ) -> list[BookResponse]:
    """Books on one list, most recently added first."""
    books = await library.get_list(book_list)
    return [BookResponse.model_validate(b) for b in books]


@router.get("/counts", response_model=CountsResponse)
async def get_counts(library: Library) -> CountsResponse:
    counts = await library.counts()
    return CountsResponse(counts=counts, total=sum(counts.values()))


@router.get("/owned/grouped", response_model=list[CategoryGroupResponse])
async def owned_by_category(library: Library) -> list[CategoryGroupResponse]:
    groups = await library.owned_by_category()
    return [
        CategoryGroupResponse(label=label, books=[BookResponse.model_validate(b) for b in books])
        for label, books in groups
    ]


@router.get("/{book_id}/presence", response_model=PresenceResponse)
async def get_presence(book_id: str, library: Library) -> PresenceResponse:
    presence = await library.exists(book_id)
    return PresenceResponse(exists=presence.exists, book_list=presence.book_list)


@router.get("/{book_id}", response_model=BookResponse)
async def get_book(book_id: str, library: Library) -> BookResponse:
    book = await library.get_book(book_id)
    if book is None:
        raise _not_found(book_id)
    return BookResponse.model_validate(book)


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------
@router.post("/", response_model=MutationResponse, status_code=status.HTTP_201_CREATED)
async def add_book(body: BookAddRequest, library: Library) -> MutationResponse:
    """Add a search result to a list. Fails with 409 if it is already on one."""
    candidate = SearchCandidate(**body.model_dump(exclude={"book_list"}))
    try:
        result = await library.add_book(candidate, body.book_list)
    except AlreadyExists as e:
        raise _already_exists(e)
    except InvalidRecord as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _mutation_response(result)


@router.post("/manual", response_model=MutationResponse, status_code=status.HTTP_201_CREATED)
async def add_manual_book(body: ManualBookRequest, library: Library) -> MutationResponse:
    result = await library.add_manual_book(
        body.title,
        body.authors,
        body.book_list,
        isbn=body.isbn,
        publish_year=body.publish_year,
        page_count=body.page_count,
        cover_url=body.cover_url,
    )
    return _mutation_response(result)


@router.post("/{book_id}/move", response_model=MutationResponse)
async def move_book(book_id: str, body: MoveRequest, library: Library) -> MutationResponse:
    try:
        result = await library.move_book(book_id, body.book_list)
    except NotFound:
        raise _not_found(book_id)
    return _mutation_response(result)


@router.put("/{book_id}/notes", response_model=MutationResponse)
async def update_notes(book_id: str, body: NotesRequest, library: Library) -> MutationResponse:
    try:
        result = await library.update_notes(book_id, body.notes)
    except NotFound:
        raise _not_found(book_id)
    return _mutation_response(result)


@router.put("/{book_id}/rating", response_model=MutationResponse)
async def update_rating(book_id: str, body: RatingRequest, library: Library) -> MutationResponse:
    """Set a 0-5 star rating. Out-of-range values are rejected with 422."""
    try:
        result = await library.update_rating(book_id, body.rating)
    except NotFound:
        raise _not_found(book_id)
    except InvalidRecord as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _mutation_response(result)


@router.put("/{book_id}/categories", response_model=MutationResponse)
async def update_categories(book_id: str, body: CategoriesRequest, library: Library) -> MutationResponse:
    try:
        result = await library.update_categories(book_id, body.categories)
    except NotFound:
        raise _not_found(book_id)
    except InvalidRecord as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _mutation_response(result)


@router.delete("/{book_id}", response_model=MutationResponse)
async def remove_book(book_id: str, library: Library) -> MutationResponse:
    """Remove a book. Removing an unknown id succeeds as a no-op."""
    result = await library.remove_book(book_id)
    return _mutation_response(result)
