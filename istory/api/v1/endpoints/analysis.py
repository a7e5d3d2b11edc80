"""Story analysis endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from istory.api.v1.dependencies import get_analysis_pipeline
from istory.core.exceptions import ValidationError
from istory.schemas.metadata import (
    AnalyzeRequest,
    AnalyzeResponse,
    StoryMetadataResponse,
    normalize_story_id,
)
from istory.services.analysis import AnalysisPipeline
from istory.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()


@router.post(
    "/analyze",
    response_model=AnalyzeResponse,
    status_code=status.HTTP_200_OK,
    summary="Analyze a story",
    description="Extract themes, tone, domain, scores and entities from a story and store them",
    operation_id="analyze_story",
)
async def analyze_story(
    payload: AnalyzeRequest,
    pipeline: Annotated[AnalysisPipeline, Depends(get_analysis_pipeline)],
) -> AnalyzeResponse:
    """Analyze a story and upsert its metadata row.

    Analysis failures surface as 500 with the failure message; nothing is
    retried here.
    """
    if not payload.story_id or not payload.story_text:
        raise ValidationError("Missing required fields: storyId and storyText")

    story_id = normalize_story_id(payload.story_id)
    record = await pipeline.run(story_id, payload.story_text)

    return AnalyzeResponse(
        success=True,
        metadata=StoryMetadataResponse.model_validate(record),
        insight=record.brief_insight,
    )
