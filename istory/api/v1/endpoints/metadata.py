"""Story metadata read, canonical toggle and analysis retry."""

from typing import Annotated

from fastapi import APIRouter, Depends

from istory.api.v1.dependencies import (
    get_analysis_pipeline,
    get_metadata_repository,
    get_story_repository,
)
from istory.core.auth import get_current_user
from istory.core.exceptions import ForbiddenError, NotFoundError, StoreError
from istory.repositories.story_metadata_repository import StoryMetadataRepository
from istory.repositories.story_repository import StoryRepository
from istory.schemas.auth import CurrentUser
from istory.schemas.metadata import (
    CanonicalUpdateRequest,
    MetadataEnvelope,
    StoryMetadataResponse,
    normalize_story_id,
)
from istory.services.analysis import AnalysisPipeline
from istory.services.verification.dispatcher import is_author
from istory.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()

MISSING_TABLE_WARNING = "story_metadata table not yet created"


async def _require_author(story_repository: StoryRepository, story_id: str, user: CurrentUser) -> None:
    story = await story_repository.get_by_id(story_id)
    if story is None:
        raise NotFoundError("Story not found")
    if not is_author(story.author_id, user.id):
        raise ForbiddenError("Forbidden")


@router.get(
    "/{story_id}/metadata",
    response_model=MetadataEnvelope,
    response_model_exclude_unset=True,
    summary="Get story metadata",
    operation_id="get_story_metadata",
)
async def get_story_metadata(
    story_id: str,
    metadata_repository: Annotated[StoryMetadataRepository, Depends(get_metadata_repository)],
) -> MetadataEnvelope:
    """Return the stored metadata row, or ``null`` if the story has none.

    A store without the metadata table degrades to ``null`` with a warning.
    """
    story_id = normalize_story_id(story_id)
    try:
        record = await metadata_repository.get_by_story_id(story_id)
    except StoreError as e:
        if not e.schema_missing:
            raise
        return MetadataEnvelope(metadata=None, warning=MISSING_TABLE_WARNING)

    if record is None:
        return MetadataEnvelope(metadata=None)
    return MetadataEnvelope(metadata=StoryMetadataResponse.model_validate(record))


@router.patch(
    "/{story_id}/metadata",
    response_model=MetadataEnvelope,
    response_model_exclude_unset=True,
    summary="Mark a story as canonical",
    operation_id="update_story_canonical",
)
async def update_story_canonical(
    story_id: str,
    payload: CanonicalUpdateRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    story_repository: Annotated[StoryRepository, Depends(get_story_repository)],
    metadata_repository: Annotated[StoryMetadataRepository, Depends(get_metadata_repository)],
) -> MetadataEnvelope:
    story_id = normalize_story_id(story_id)
    await _require_author(story_repository, story_id, current_user)

    record = await metadata_repository.set_canonical(story_id, payload.is_canonical)
    LOGGER.info(
        "Updated canonical flag",
        extra={"story_id": story_id, "is_canonical": payload.is_canonical},
    )
    return MetadataEnvelope(metadata=StoryMetadataResponse.model_validate(record))


@router.post(
    "/{story_id}/metadata/retry",
    response_model=MetadataEnvelope,
    response_model_exclude_unset=True,
    summary="Retry a failed analysis",
    operation_id="retry_story_analysis",
)
async def retry_story_analysis(
    story_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    story_repository: Annotated[StoryRepository, Depends(get_story_repository)],
    pipeline: Annotated[AnalysisPipeline, Depends(get_analysis_pipeline)],
) -> MetadataEnvelope:
    """Re-run analysis over the stored story content.

    Only the author may retry, and only when the previous analysis failed
    or never produced a row.
    """
    story_id = normalize_story_id(story_id)
    await _require_author(story_repository, story_id, current_user)

    record = await pipeline.retry(story_id)
    return MetadataEnvelope(metadata=StoryMetadataResponse.model_validate(record))
