"""Backfill of analysis metadata for stories written before analysis existed."""

import asyncio
from datetime import timedelta
from typing import Dict, Optional

from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError

from istory.temporal.core.constants import (
    ANALYSIS_ACTIVITY_TIMEOUT_SECONDS,
    BACKFILL_DEFAULT_LIMIT,
    BACKFILL_DELAY_SECONDS,
    BACKFILL_MIN_CONTENT_LENGTH,
    DB_ACTIVITY_TIMEOUT_SECONDS,
)
from istory.temporal.core.workflow_registry import WorkflowRegistry, WorkflowType


@WorkflowRegistry.register(category=WorkflowType.ANALYSIS)
@workflow.defn
class MetadataBackfillWorkflow:
    """Analyzes stories without metadata one at a time, pausing between calls."""

    def __init__(self):
        self._processed = 0
        self._succeeded = 0
        self._failed = 0
        self._total = 0

    @workflow.query
    def get_progress(self) -> dict:
        return {
            "total": self._total,
            "processed": self._processed,
            "succeeded": self._succeeded,
            "failed": self._failed,
        }

    @workflow.run
    async def run(self, payload: Optional[Dict] = None) -> dict:
        payload = payload or {}
        limit = payload.get("limit") or BACKFILL_DEFAULT_LIMIT
        delay = payload.get("delay_seconds", BACKFILL_DELAY_SECONDS)

        story_ids = await workflow.execute_activity(
            "list_stories_missing_metadata",
            args=[BACKFILL_MIN_CONTENT_LENGTH, limit],
            start_to_close_timeout=timedelta(seconds=DB_ACTIVITY_TIMEOUT_SECONDS),
        )
        self._total = len(story_ids)
        workflow.logger.info(f"Backfilling metadata for {self._total} stories")

        failures = []
        for index, story_id in enumerate(story_ids):
            try:
                result = await workflow.execute_activity(
                    "analyze_story_metadata",
                    story_id,
                    start_to_close_timeout=timedelta(seconds=ANALYSIS_ACTIVITY_TIMEOUT_SECONDS),
                    retry_policy=RetryPolicy(maximum_attempts=1),
                )
            except ActivityError as e:
                result = {"story_id": story_id, "success": False, "error": str(e.cause or e)}

            self._processed += 1
            if result.get("success"):
                self._succeeded += 1
            else:
                self._failed += 1
                failures.append({"story_id": story_id, "error": result.get("error")})

            # Spaces out model calls to stay under provider rate limits.
            if delay and index < len(story_ids) - 1:
                await asyncio.sleep(delay)

        return {
            "processed": self._processed,
            "succeeded": self._succeeded,
            "failed": self._failed,
            "failures": failures,
        }
