"""Unit tests for the story analyzer and analysis pipeline."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest

from istory.core.exceptions import (
    AnalysisError,
    AnalysisErrorKind,
    APIClientError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from istory.schemas.metadata import AnalysisStatus
from istory.services.analysis import AnalysisPipeline, StoryAnalyzer
from istory.services.monitoring import AnalysisLogBuffer, PerformanceMonitor

STORY_ID = "3f2b8c1e-9a4d-4e6f-8b21-0c5d7e9f1a23"
STORY_TEXT = "We drove up to the lake house every summer with my grandmother."

MODEL_REPLY = {
    "themes": ["Family", "Summer", "Memory"],
    "emotional_tone": "reflective",
    "life_domain": "family",
    "intensity_score": 1.5,
    "significance_score": 0.8,
    "people_mentioned": ["grandmother"],
    "places_mentioned": ["lake house"],
    "time_references": ["every summer"],
    "brief_insight": "Summers at the lake anchor your sense of family.",
}


@pytest.fixture
def llm_client():
    client = Mock()
    client.model = "gemini-2.5-flash"
    client.generate_content = AsyncMock(return_value=json.dumps(MODEL_REPLY))
    return client


@pytest.fixture
def metadata_repository():
    repo = Mock()

    async def upsert(story_id, fields):
        return SimpleNamespace(story_id=story_id, is_canonical=False, **fields)

    repo.upsert = AsyncMock(side_effect=upsert)
    repo.get_by_story_id = AsyncMock(return_value=None)
    repo.set_status = AsyncMock(return_value=True)
    return repo


@pytest.fixture
def analysis_log():
    return AnalysisLogBuffer(max_entries=100)


@pytest.fixture
def performance():
    return PerformanceMonitor(max_records=100)


@pytest.fixture
def analyzer(llm_client, metadata_repository, analysis_log, performance):
    return StoryAnalyzer(llm_client, metadata_repository, analysis_log, performance)


class TestStoryAnalyzer:

    @pytest.mark.asyncio
    async def test_scores_are_clamped_before_storage(self, analyzer, metadata_repository):
        record = await analyzer.analyze(STORY_ID, STORY_TEXT)

        stored = metadata_repository.upsert.call_args.args[1]
        assert stored["intensity_score"] == 1.0
        assert stored["significance_score"] == 0.8
        assert stored["themes"] == ["family", "summer", "memory"]
        assert stored["analysis_status"] == AnalysisStatus.COMPLETED.value
        assert record.intensity_score == 1.0

    @pytest.mark.asyncio
    async def test_fenced_reply_is_parsed(self, analyzer, llm_client):
        llm_client.generate_content.return_value = f"```json\n{json.dumps(MODEL_REPLY)}\n```"

        record = await analyzer.analyze(STORY_ID, STORY_TEXT)

        assert record.emotional_tone == "reflective"
        assert record.brief_insight == MODEL_REPLY["brief_insight"]

    @pytest.mark.asyncio
    async def test_prompt_contains_story_text(self, analyzer, llm_client):
        await analyzer.analyze(STORY_ID, STORY_TEXT)

        prompt = llm_client.generate_content.call_args.kwargs["contents"]
        assert STORY_TEXT in prompt
        assert "{STORY_TEXT}" not in prompt

    @pytest.mark.asyncio
    async def test_invalid_reply_is_not_stored(self, analyzer, llm_client, metadata_repository, analysis_log):
        llm_client.generate_content.return_value = '{"themes": ["fam'

        with pytest.raises(AnalysisError) as exc_info:
            await analyzer.analyze(STORY_ID, STORY_TEXT)

        assert exc_info.value.kind == AnalysisErrorKind.INVALID_RESPONSE
        assert exc_info.value.reason == "truncated"
        metadata_repository.upsert.assert_not_called()
        assert [e.action for e in analysis_log.errors()] == ["parse_failed"]

    @pytest.mark.asyncio
    async def test_upstream_failure(self, analyzer, llm_client, metadata_repository, performance):
        llm_client.generate_content.side_effect = APIClientError("Gemini API error: quota exceeded")

        with pytest.raises(AnalysisError) as exc_info:
            await analyzer.analyze(STORY_ID, STORY_TEXT)

        assert exc_info.value.kind == AnalysisErrorKind.UPSTREAM_FAILURE
        assert exc_info.value.message == "Gemini API error: quota exceeded"
        metadata_repository.upsert.assert_not_called()
        assert performance.stats("llm_call").failure_count == 1
        assert performance.stats("full_analysis").failure_count == 1

    @pytest.mark.asyncio
    async def test_records_timings(self, analyzer, performance, analysis_log):
        await analyzer.analyze(STORY_ID, STORY_TEXT)

        assert set(performance.operations()) == {"llm_call", "db_save", "full_analysis"}
        assert performance.stats("full_analysis").success_rate == 1.0
        actions = [e.action for e in analysis_log.for_story(STORY_ID)]
        assert actions == ["analysis_started", "llm_call", "analysis_completed"]


class TestAnalysisPipeline:

    @pytest.fixture
    def story_repository(self):
        repo = Mock()
        repo.get_by_id = AsyncMock(
            return_value=SimpleNamespace(id=STORY_ID, content=STORY_TEXT)
        )
        return repo

    @pytest.fixture
    def pipeline(self, analyzer, metadata_repository, story_repository):
        return AnalysisPipeline(analyzer, metadata_repository, story_repository)

    @pytest.mark.asyncio
    async def test_new_story_is_not_marked_processing(self, pipeline, metadata_repository):
        await pipeline.run(STORY_ID, STORY_TEXT)

        metadata_repository.set_status.assert_not_called()
        metadata_repository.upsert.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_existing_row_moves_through_processing(self, pipeline, metadata_repository):
        metadata_repository.get_by_story_id.return_value = SimpleNamespace(analysis_status="completed")

        record = await pipeline.run(STORY_ID, STORY_TEXT)

        metadata_repository.set_status.assert_awaited_once_with(STORY_ID, AnalysisStatus.PROCESSING)
        assert record.analysis_status == "completed"

    @pytest.mark.asyncio
    async def test_failure_marks_existing_row_failed(self, pipeline, llm_client, metadata_repository):
        metadata_repository.get_by_story_id.return_value = SimpleNamespace(analysis_status="completed")
        llm_client.generate_content.return_value = "not json at all"

        with pytest.raises(AnalysisError):
            await pipeline.run(STORY_ID, STORY_TEXT)

        statuses = [c.args[1] for c in metadata_repository.set_status.await_args_list]
        assert statuses == [AnalysisStatus.PROCESSING, AnalysisStatus.FAILED]

    @pytest.mark.asyncio
    async def test_failure_without_row_leaves_store_untouched(self, pipeline, llm_client, metadata_repository):
        llm_client.generate_content.return_value = ""

        with pytest.raises(AnalysisError):
            await pipeline.run(STORY_ID, STORY_TEXT)

        metadata_repository.set_status.assert_not_called()
        metadata_repository.upsert.assert_not_called()

    @pytest.mark.asyncio
    async def test_retry_of_failed_row(self, pipeline, metadata_repository, llm_client):
        metadata_repository.get_by_story_id.return_value = SimpleNamespace(analysis_status="failed")

        await pipeline.retry(STORY_ID)

        assert STORY_TEXT in llm_client.generate_content.call_args.kwargs["contents"]
        metadata_repository.upsert.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_retry_rejects_completed_row(self, pipeline, metadata_repository):
        metadata_repository.get_by_story_id.return_value = SimpleNamespace(analysis_status="completed")

        with pytest.raises(ConflictError):
            await pipeline.retry(STORY_ID)

    @pytest.mark.asyncio
    async def test_retry_of_missing_or_empty_story(self, pipeline, story_repository):
        story_repository.get_by_id.return_value = None
        with pytest.raises(NotFoundError):
            await pipeline.retry(STORY_ID)

        story_repository.get_by_id.return_value = SimpleNamespace(id=STORY_ID, content="   ")
        with pytest.raises(ValidationError):
            await pipeline.retry(STORY_ID)
