"""Status bookkeeping around story analysis."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from istory.core.config import settings
from istory.core.exceptions import AnalysisError, ConflictError, NotFoundError, ValidationError
from istory.core.llm_client import LLMClient, create_llm_client
from istory.database.models import StoryMetadata
from istory.repositories.story_metadata_repository import StoryMetadataRepository
from istory.repositories.story_repository import StoryRepository
from istory.schemas.metadata import AnalysisStatus
from istory.services.analysis.story_analyzer import StoryAnalyzer
from istory.services.monitoring import get_analysis_log, get_performance_monitor
from istory.utils.logging import get_logger

LOGGER = get_logger(__name__)

RETRYABLE_STATUSES = (AnalysisStatus.FAILED.value,)


class AnalysisPipeline:
    """Runs the analyzer and keeps ``analysis_status`` in step with it.

    An existing row moves to ``processing`` before the model is called and
    to ``failed`` if analysis fails. A story without a row gets one only
    when analysis succeeds.
    """

    def __init__(
        self,
        analyzer: StoryAnalyzer,
        metadata_repository: StoryMetadataRepository,
        story_repository: StoryRepository,
    ):
        self.analyzer = analyzer
        self.metadata_repository = metadata_repository
        self.story_repository = story_repository

    async def run(self, story_id: str, story_text: str) -> StoryMetadata:
        existing = await self.metadata_repository.get_by_story_id(story_id)
        if existing is not None:
            await self.metadata_repository.set_status(story_id, AnalysisStatus.PROCESSING)

        try:
            return await self.analyzer.analyze(story_id, story_text)
        except AnalysisError as e:
            LOGGER.warning(
                f"Analysis failed for story {story_id}: {e.message}",
                extra={"story_id": story_id, "kind": e.kind.value, "reason": e.reason},
            )
            if existing is not None:
                await self.metadata_repository.set_status(story_id, AnalysisStatus.FAILED)
            raise

    async def retry(self, story_id: str) -> StoryMetadata:
        """Re-run analysis of a stored story whose previous analysis failed.

        Raises:
            NotFoundError: If the story does not exist
            ValidationError: If the story has no content
            ConflictError: If the stored row is not in a retryable state
        """
        story = await self.story_repository.get_by_id(story_id)
        if story is None:
            raise NotFoundError("Story not found")
        if not story.content or not story.content.strip():
            raise ValidationError("Story has no content to analyze")

        existing = await self.metadata_repository.get_by_story_id(story_id)
        if existing is not None and existing.analysis_status not in RETRYABLE_STATUSES:
            raise ConflictError(
                f"Analysis cannot be retried while status is '{existing.analysis_status}'"
            )

        LOGGER.info("Retrying story analysis", extra={"story_id": story_id})
        return await self.run(story_id, story.content)


def build_analysis_pipeline(
    session: AsyncSession,
    llm_client: Optional[LLMClient] = None,
) -> AnalysisPipeline:
    """Wire a pipeline over one session with the process-wide monitors.

    Raises:
        ConfigurationError: If no LLM client is given and none can be configured
    """
    metadata_repository = StoryMetadataRepository(session)
    analyzer = StoryAnalyzer(
        llm_client=llm_client or create_llm_client(settings.llm),
        metadata_repository=metadata_repository,
        analysis_log=get_analysis_log(),
        performance=get_performance_monitor(),
    )
    return AnalysisPipeline(
        analyzer=analyzer,
        metadata_repository=metadata_repository,
        story_repository=StoryRepository(session),
    )
