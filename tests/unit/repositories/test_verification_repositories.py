"""Unit tests for verification log, verified metrics and story repositories."""

from datetime import timedelta

import pytest

from istory.core.exceptions import DispatchRejectedError, DispatchRejection
from istory.database.models import Story
from istory.repositories.base_repository import utcnow
from istory.repositories.story_metadata_repository import StoryMetadataRepository
from istory.repositories.story_repository import StoryRepository
from istory.repositories.verification_log_repository import VerificationLogRepository
from istory.repositories.verified_metrics_repository import VerifiedMetricsRepository
from istory.schemas.verification import DispatchOutcome, DispatchStatus, VerifiedMetricsPayload

STORY_ID = "3f2b8c1e-9a4d-4e6f-8b21-0c5d7e9f1a23"


def _metrics(**overrides) -> VerifiedMetricsPayload:
    values = {
        "significance_score": 72,
        "emotional_depth": 64,
        "quality_score": 81,
        "word_count": 412,
        "verified_themes": ["family", "memory"],
        "cre_attestation_id": "0x" + "ab" * 32,
        "on_chain_verified_at": 1760000000,
    }
    values.update(overrides)
    return VerifiedMetricsPayload(**values)


class TestVerificationLogRepository:

    @pytest.mark.asyncio
    async def test_second_pending_log_is_rejected(self, session):
        repo = VerificationLogRepository(session)
        await repo.create_pending(STORY_ID, "wf_1_aaaaaaa")

        with pytest.raises(DispatchRejectedError) as exc_info:
            await repo.create_pending(STORY_ID, "wf_2_bbbbbbb")

        assert exc_info.value.kind == DispatchRejection.DISPATCH_IN_PROGRESS
        assert exc_info.value.status_code == 409
        pending = await repo.get_pending(STORY_ID)
        assert pending.workflow_run_id == "wf_1_aaaaaaa"

    @pytest.mark.asyncio
    async def test_completed_log_allows_new_pending(self, session):
        repo = VerificationLogRepository(session)
        await repo.create_pending(STORY_ID, "wf_1_aaaaaaa")

        assert await repo.mark_completed(STORY_ID) == 1
        assert await repo.get_pending(STORY_ID) is None

        log = await repo.create_pending(STORY_ID, "wf_2_bbbbbbb")
        assert log.status == "pending"

    @pytest.mark.asyncio
    async def test_expire_stale_only_touches_old_pending_logs(self, session):
        repo = VerificationLogRepository(session)
        await repo.create_pending(STORY_ID, "wf_1_aaaaaaa")

        assert await repo.expire_stale(utcnow() - timedelta(hours=1)) == 0
        assert await repo.get_pending(STORY_ID) is not None

        assert await repo.expire_stale(utcnow() + timedelta(seconds=1), story_id=STORY_ID) == 1
        assert await repo.get_pending(STORY_ID) is None

    @pytest.mark.asyncio
    async def test_record_dispatch_outcome(self, session):
        repo = VerificationLogRepository(session)
        log = await repo.create_pending(STORY_ID, "wf_1_aaaaaaa")

        updated = await repo.record_dispatch_outcome(
            "wf_1_aaaaaaa",
            DispatchOutcome(status=DispatchStatus.FAILED, attempts=5, error="HTTP 503"),
        )

        assert updated is True
        await session.refresh(log)
        assert log.dispatch_status == "failed"
        assert log.dispatch_attempts == 5
        assert log.dispatch_error == "HTTP 503"
        assert log.status == "pending"

    @pytest.mark.asyncio
    async def test_record_dispatch_outcome_for_unknown_run(self, session):
        repo = VerificationLogRepository(session)

        assert await repo.record_dispatch_outcome(
            "wf_missing", DispatchOutcome(status=DispatchStatus.DELIVERED, attempts=1)
        ) is False


class TestVerifiedMetricsRepository:

    @pytest.mark.asyncio
    async def test_repeated_upsert_keeps_one_row(self, session):
        repo = VerifiedMetricsRepository(session)

        await repo.upsert(STORY_ID, _metrics())
        record = await repo.upsert(STORY_ID, _metrics(quality_score=90))

        assert await repo.count() == 1
        assert record.quality_score == 90
        assert record.verified_themes == ["family", "memory"]
        assert record.on_chain_verified_at == 1760000000


class TestStoryRepository:

    @pytest.mark.asyncio
    async def test_get_by_id(self, session, story):
        repo = StoryRepository(session)

        found = await repo.get_by_id(STORY_ID)

        assert found.title == "The lake house"
        assert await repo.get_by_id("00000000-0000-4000-8000-000000000000") is None

    @pytest.mark.asyncio
    async def test_list_missing_metadata(self, session, story):
        analyzed = Story(
            id="0b6f2d8e-4c1a-4f3e-9d57-8a2e6c4b1f90",
            content="A long enough story that already has its metadata row.",
        )
        short = Story(id="5e7a1c3b-2d4f-4a6e-8b90-1c2d3e4f5a6b", content="Too short")
        session.add_all([analyzed, short])
        await session.commit()
        await StoryMetadataRepository(session).set_canonical(analyzed.id, False)

        missing = await StoryRepository(session).list_missing_metadata(min_content_length=20, limit=10)

        assert [s.id for s in missing] == [STORY_ID]
