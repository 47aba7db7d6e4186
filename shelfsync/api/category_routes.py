"""Category label routes for the owned list's grouping."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from shelfsync.api.schemas import CategoryLabelsRequest, CategoryLabelsResponse
from shelfsync.core.dependencies import get_library_service
from shelfsync.domain.services import ILibraryService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("/", response_model=CategoryLabelsResponse)
async def get_labels(
    library: Annotated[ILibraryService, Depends(get_library_service)],
) -> CategoryLabelsResponse:
    return CategoryLabelsResponse(labels=await library.category_labels())


@router.put("/", response_model=CategoryLabelsResponse)
async def set_labels(
    body: CategoryLabelsRequest,
    library: Annotated[ILibraryService, Depends(get_library_service)],
) -> CategoryLabelsResponse:
    """Replace the ordered label list (blank and duplicate labels are dropped)."""
    labels, remote = await library.set_category_labels(body.labels)
    return CategoryLabelsResponse(labels=labels, remote=remote)


@router.delete("/{label}", response_model=CategoryLabelsResponse)
async def delete_label(
    label: str,
    library: Annotated[ILibraryService, Depends(get_library_service)],
) -> CategoryLabelsResponse:
    """Delete a label. Books tagged with it show up as uncategorized."""
    labels, remote = await library.remove_category_label(label)
    logger.info("Category label deleted: %s", label)
    return CategoryLabelsResponse(labels=labels, remote=remote)
