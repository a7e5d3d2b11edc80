"""Unit tests for the story metadata repository against SQLite."""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from sqlalchemy import func, select, text

from istory.core.exceptions import StoreError, StoreErrorKind
from istory.database.models import StoryMetadata
from istory.repositories.story_metadata_repository import StoryMetadataRepository
from istory.schemas.metadata import AnalysisStatus

STORY_ID = "3f2b8c1e-9a4d-4e6f-8b21-0c5d7e9f1a23"

ANALYSIS_FIELDS = {
    "themes": ["family", "summer"],
    "emotional_tone": "reflective",
    "life_domain": "family",
    "intensity_score": 0.6,
    "significance_score": 0.8,
    "people_mentioned": ["grandmother"],
    "places_mentioned": ["lake house"],
    "time_references": ["every summer"],
    "brief_insight": "Summers at the lake anchor your sense of family.",
    "analysis_status": AnalysisStatus.COMPLETED.value,
}


async def _row_count(session) -> int:
    return (await session.execute(select(func.count()).select_from(StoryMetadata))).scalar_one()


@pytest.mark.asyncio
async def test_upsert_inserts_full_row(session):
    repo = StoryMetadataRepository(session)

    record = await repo.upsert(STORY_ID, ANALYSIS_FIELDS)

    assert record.story_id == STORY_ID
    assert record.themes == ["family", "summer"]
    assert record.emotional_tone == "reflective"
    assert record.is_canonical is False
    assert record.analysis_status == "completed"
    assert record.created_at is not None


@pytest.mark.asyncio
async def test_upsert_accepts_opaque_story_id(session):
    repo = StoryMetadataRepository(session)

    await repo.upsert("t1", {"intensity_score": 1.0})
    record = await repo.get_by_story_id("t1")

    assert record.story_id == "t1"
    assert record.intensity_score == 1.0


@pytest.mark.asyncio
async def test_upsert_twice_keeps_one_row_and_refreshes_updated_at(session):
    repo = StoryMetadataRepository(session)
    first = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    second = datetime(2026, 1, 1, 12, 5, tzinfo=timezone.utc)

    with patch("istory.repositories.story_metadata_repository.utcnow", side_effect=[first, second]):
        await repo.upsert(STORY_ID, ANALYSIS_FIELDS)
        record = await repo.upsert(STORY_ID, {**ANALYSIS_FIELDS, "themes": ["grief"]})

    assert await _row_count(session) == 1
    assert record.themes == ["grief"]
    assert record.updated_at.replace(tzinfo=None) == second.replace(tzinfo=None)
    assert record.created_at.replace(tzinfo=None) == first.replace(tzinfo=None)


@pytest.mark.asyncio
async def test_reanalysis_preserves_canonical_flag(session):
    repo = StoryMetadataRepository(session)
    await repo.set_canonical(STORY_ID, True)

    record = await repo.upsert(STORY_ID, ANALYSIS_FIELDS)

    assert record.is_canonical is True
    assert record.analysis_status == "completed"


@pytest.mark.asyncio
async def test_set_canonical_creates_pending_row_with_defaults(session):
    repo = StoryMetadataRepository(session)

    record = await repo.set_canonical(STORY_ID, True)

    assert record.is_canonical is True
    assert record.analysis_status == "pending"
    assert record.themes == []
    assert record.emotional_tone == "neutral"
    assert record.life_domain == "general"
    assert record.intensity_score == 0.5


@pytest.mark.asyncio
async def test_set_status_reports_missing_row(session):
    repo = StoryMetadataRepository(session)

    assert await repo.set_status(STORY_ID, AnalysisStatus.PROCESSING) is False

    await repo.upsert(STORY_ID, ANALYSIS_FIELDS)
    assert await repo.set_status(STORY_ID, AnalysisStatus.FAILED) is True
    record = await repo.get_by_story_id(STORY_ID)
    await session.refresh(record)
    assert record.analysis_status == "failed"


@pytest.mark.asyncio
async def test_upsert_rejects_unknown_fields(session):
    repo = StoryMetadataRepository(session)

    with pytest.raises(ValueError):
        await repo.upsert(STORY_ID, {"story_id": "other"})


@pytest.mark.asyncio
async def test_missing_table_is_reported_as_schema_missing(session):
    await session.execute(text("DROP TABLE story_metadata"))
    await session.commit()
    repo = StoryMetadataRepository(session)

    with pytest.raises(StoreError) as exc_info:
        await repo.get_by_story_id(STORY_ID)

    assert exc_info.value.kind == StoreErrorKind.SCHEMA_MISSING
    assert exc_info.value.schema_missing
    assert exc_info.value.message == (
        "Database table 'story_metadata' not found. Please run the migration."
    )
    assert exc_info.value.to_payload()["migration_required"] is True


@pytest.mark.asyncio
async def test_count_by_status(session):
    repo = StoryMetadataRepository(session)
    await repo.upsert(STORY_ID, ANALYSIS_FIELDS)
    await repo.set_canonical("0b6f2d8e-4c1a-4f3e-9d57-8a2e6c4b1f90", False)

    assert await repo.count() == 2
    assert await repo.count_by("analysis_status") == {"completed": 1, "pending": 1}
