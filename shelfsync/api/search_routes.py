"""Catalog search route."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from shelfsync.api.schemas import SearchResponse, SearchResultResponse
from shelfsync.core.dependencies import get_catalog_search, get_library_service
from shelfsync.domain.exceptions import SearchFailed
from shelfsync.domain.repositories import ICatalogSearch
from shelfsync.domain.services import ILibraryService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/search", tags=["search"])


@router.get("/", response_model=SearchResponse)
async def search(
    catalog: Annotated[ICatalogSearch, Depends(get_catalog_search)],
    library: Annotated[ILibraryService, Depends(get_library_service)],
    q: str = "",
) -> SearchResponse:
    """Search the catalogs by free text or ISBN.

    Each hit carries ``on_list`` when the book is already in the library.
    A 503 means every provider failed, which is different from zero results.
    """
    try:
        candidates = await catalog.search(q)
    except SearchFailed as e:
        logger.error(f"Search failed for '{q}': {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Search is unavailable right now. Please try again.",
        )

    results = []
    for candidate in candidates:
        presence = await library.exists(candidate.id)
        result = SearchResultResponse.model_validate(candidate)
        result.on_list = presence.book_list
        results.append(result)
    return SearchResponse(query=q, results=results, total=len(results))
