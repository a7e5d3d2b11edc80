"""Verification trigger: precondition checks and dispatch bookkeeping."""

import time
import uuid
from datetime import timedelta

from istory.core.exceptions import AppError, DispatchRejectedError, DispatchRejection
from istory.repositories.base_repository import utcnow
from istory.repositories.story_repository import StoryRepository
from istory.repositories.verification_log_repository import VerificationLogRepository
from istory.repositories.verified_metrics_repository import VerifiedMetricsRepository
from istory.schemas.verification import DispatchJob, DispatchOutcome, DispatchResult, DispatchStatus
from istory.services.verification.dispatch_queue import DispatchQueue
from istory.utils.logging import get_logger

LOGGER = get_logger(__name__)


def new_workflow_run_id() -> str:
    return f"wf_{int(time.time() * 1000)}_{uuid.uuid4().hex[:7]}"


def is_author(author_id, user_id) -> bool:
    return author_id is not None and str(author_id).lower() == str(user_id).lower()


class VerificationDispatcher:
    """Starts on-chain verification of a story.

    Preconditions are checked in a fixed order so the caller always sees
    the first one that fails. The pending log row is the commit point:
    once it exists the dispatch has succeeded, whatever happens to the
    network notification afterwards.
    """

    def __init__(
        self,
        story_repository: StoryRepository,
        log_repository: VerificationLogRepository,
        metrics_repository: VerifiedMetricsRepository,
        queue: DispatchQueue,
        pending_ttl_seconds: int = 3600,
    ):
        self.story_repository = story_repository
        self.log_repository = log_repository
        self.metrics_repository = metrics_repository
        self.queue = queue
        self.pending_ttl = timedelta(seconds=pending_ttl_seconds)

    async def dispatch(self, story_id: str, user_id: str) -> DispatchResult:
        """Dispatch verification of ``story_id`` on behalf of ``user_id``.

        Raises:
            DispatchRejectedError: NOT_FOUND, FORBIDDEN, EMPTY_CONTENT,
                MISSING_IDENTITY, ALREADY_VERIFIED or DISPATCH_IN_PROGRESS
            StoreError: If the pending log cannot be written
        """
        story = await self.story_repository.get_by_id(story_id)
        if story is None:
            raise DispatchRejectedError("Story not found", DispatchRejection.NOT_FOUND)
        if not is_author(story.author_id, user_id):
            raise DispatchRejectedError("Forbidden", DispatchRejection.FORBIDDEN)

        if not story.content or not story.content.strip():
            raise DispatchRejectedError(
                "Story has no content to verify", DispatchRejection.EMPTY_CONTENT
            )
        if not story.author_wallet:
            raise DispatchRejectedError(
                "Author wallet address required for verification",
                DispatchRejection.MISSING_IDENTITY,
            )

        if await self.metrics_repository.get_by_story_id(story_id) is not None:
            raise DispatchRejectedError(
                "Story already verified", DispatchRejection.ALREADY_VERIFIED
            )

        # A pending run past its TTL no longer blocks a new dispatch.
        await self.log_repository.expire_stale(utcnow() - self.pending_ttl, story_id=story_id)
        if await self.log_repository.get_pending(story_id) is not None:
            raise DispatchRejectedError(
                "Verification already in progress", DispatchRejection.DISPATCH_IN_PROGRESS
            )

        workflow_run_id = new_workflow_run_id()
        await self.log_repository.create_pending(story_id, workflow_run_id)
        LOGGER.info(
            "Verification dispatched",
            extra={"story_id": story_id, "workflow_run_id": workflow_run_id},
        )

        job = DispatchJob(
            story_id=story.id,
            title=story.title or "Untitled",
            content=story.content,
            author_wallet=story.author_wallet,
            workflow_run_id=workflow_run_id,
        )
        await self._enqueue(job)

        return DispatchResult(workflow_run_id=workflow_run_id)

    async def _enqueue(self, job: DispatchJob) -> None:
        try:
            await self.queue.enqueue(job)
        except AppError as e:
            LOGGER.error(
                f"Could not queue verification workflow trigger: {e.message}",
                extra={"story_id": job.story_id, "workflow_run_id": job.workflow_run_id},
            )
            try:
                await self.log_repository.record_dispatch_outcome(
                    job.workflow_run_id,
                    DispatchOutcome(status=DispatchStatus.FAILED, attempts=0, error=e.message),
                )
            except AppError as record_error:
                LOGGER.error(
                    f"Failed to record dispatch outcome: {record_error.message}",
                    extra={"workflow_run_id": job.workflow_run_id},
                )
