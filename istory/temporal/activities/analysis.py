"""Temporal activities for metadata backfill."""

from typing import List

from temporalio import activity

from istory.core.database import async_session_maker
from istory.core.exceptions import AnalysisError, StoreError
from istory.repositories.story_repository import StoryRepository
from istory.services.analysis.pipeline import build_analysis_pipeline
from istory.temporal.core.activity_registry import ActivityRegistry
from istory.utils.logging import get_logger

LOGGER = get_logger(__name__)


@ActivityRegistry.register("analysis", "list_stories_missing_metadata")
@activity.defn(name="list_stories_missing_metadata")
async def list_stories_missing_metadata(min_content_length: int, limit: int) -> List[str]:
    async with async_session_maker() as session:
        stories = await StoryRepository(session).list_missing_metadata(min_content_length, limit)
    story_ids = [story.id for story in stories]
    LOGGER.info(f"Found {len(story_ids)} stories without metadata")
    return story_ids


@ActivityRegistry.register("analysis", "analyze_story_metadata")
@activity.defn(name="analyze_story_metadata")
async def analyze_story_metadata(story_id: str) -> dict:
    """Analyze one stored story.

    Analysis and store failures are reported in the result instead of
    raised, so one bad story does not stop the backfill.
    """
    async with async_session_maker() as session:
        story = await StoryRepository(session).get_by_id(story_id)
        if story is None or not story.content:
            return {"story_id": story_id, "success": False, "error": "Story not found or empty"}

        pipeline = build_analysis_pipeline(session)
        try:
            record = await pipeline.run(story_id, story.content)
        except (AnalysisError, StoreError) as e:
            return {"story_id": story_id, "success": False, "error": e.message}

    return {
        "story_id": story_id,
        "success": True,
        "emotional_tone": record.emotional_tone,
        "life_domain": record.life_domain,
    }
