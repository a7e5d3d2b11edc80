"""LLM-backed story analysis.

The analyzer sends the story to the model, parses the reply, sanitizes it
and stores the result. It does not touch the stored row when analysis
fails; marking a row as failed is the caller's decision.
"""

from istory.core.exceptions import AnalysisError, AnalysisErrorKind, APIClientError
from istory.core.llm_client import LLMClient
from istory.database.models import StoryMetadata
from istory.repositories.story_metadata_repository import StoryMetadataRepository
from istory.schemas.metadata import AnalysisStatus
from istory.services.analysis.prompts import build_analysis_prompt
from istory.services.analysis.sanitizer import sanitize
from istory.services.monitoring import AnalysisLogBuffer, PerformanceMonitor
from istory.utils.json_parser import parse_llm_json
from istory.utils.logging import get_logger

LOGGER = get_logger(__name__)

GENERATION_CONFIG = {"temperature": 0.2}


class StoryAnalyzer:
    """Extracts structured metadata from a story with an LLM."""

    def __init__(
        self,
        llm_client: LLMClient,
        metadata_repository: StoryMetadataRepository,
        analysis_log: AnalysisLogBuffer,
        performance: PerformanceMonitor,
    ):
        self.llm_client = llm_client
        self.metadata_repository = metadata_repository
        self.analysis_log = analysis_log
        self.performance = performance

    async def analyze(self, story_id: str, story_text: str) -> StoryMetadata:
        """Analyze a story and persist the sanitized metadata.

        Args:
            story_id: Key of the story
            story_text: Full story text

        Returns:
            The stored metadata row, with status ``completed``

        Raises:
            AnalysisError: UPSTREAM_FAILURE if the model call fails,
                INVALID_RESPONSE if the reply is not usable JSON
            StoreError: If the result cannot be stored
        """
        self.analysis_log.info(story_id, "analysis_started", {"text_length": len(story_text)})

        with self.performance.timer("full_analysis"):
            raw = await self._generate(story_id, story_text)

            try:
                candidate = parse_llm_json(raw)
            except AnalysisError as e:
                self.analysis_log.error(
                    story_id, "parse_failed", e.message,
                    {"reason": e.reason, "response_preview": (raw or "")[:200]},
                )
                raise

            fields = sanitize(candidate).as_record()
            fields["analysis_status"] = AnalysisStatus.COMPLETED.value

            with self.performance.timer("db_save"):
                record = await self.metadata_repository.upsert(story_id, fields)

        self.analysis_log.info(
            story_id,
            "analysis_completed",
            {"emotional_tone": record.emotional_tone, "life_domain": record.life_domain},
        )
        return record

    async def _generate(self, story_id: str, story_text: str) -> str:
        prompt = build_analysis_prompt(story_text)
        timer = self.performance.timer("llm_call")
        try:
            raw = await self.llm_client.generate_content(
                contents=prompt,
                generation_config=GENERATION_CONFIG,
            )
        except APIClientError as e:
            timer.stop(False)
            self.analysis_log.error(story_id, "llm_call_failed", e.message)
            raise AnalysisError(
                e.message,
                kind=AnalysisErrorKind.UPSTREAM_FAILURE,
                original_error=e,
            ) from e

        duration = timer.stop(True)
        self.analysis_log.timed(story_id, "llm_call", duration, {"model": self.llm_client.model})
        return raw
