"""Sweep of pending verification logs."""

from datetime import timedelta

from istory.core.exceptions import AppError
from istory.repositories.base_repository import utcnow
from istory.repositories.verification_log_repository import VerificationLogRepository
from istory.schemas.verification import ReconcileSummary
from istory.services.verification.metrics_cache import VerifiedMetricsService
from istory.utils.logging import get_logger

LOGGER = get_logger(__name__)


class VerificationReconciler:
    """Completes pending logs whose result reached the ledger, then expires stale ones.

    Covers runs whose polling client went away before the result landed.
    """

    def __init__(
        self,
        log_repository: VerificationLogRepository,
        metrics_service: VerifiedMetricsService,
        pending_ttl_seconds: int = 3600,
    ):
        self.log_repository = log_repository
        self.metrics_service = metrics_service
        self.pending_ttl = timedelta(seconds=pending_ttl_seconds)

    async def reconcile(self, limit: int = 500) -> ReconcileSummary:
        summary = ReconcileSummary()
        story_ids = [log.story_id for log in await self.log_repository.list_pending(limit)]

        for story_id in story_ids:
            summary.checked += 1
            try:
                result = await self.metrics_service.check_and_cache(story_id)
            except AppError as e:
                summary.errors += 1
                LOGGER.warning(
                    f"Reconcile check failed: {e.message}",
                    extra={"story_id": story_id},
                )
                continue
            if result.verified:
                summary.completed += 1

        summary.expired = await self.log_repository.expire_stale(utcnow() - self.pending_ttl)

        LOGGER.info("Verification reconcile finished", extra=summary.model_dump())
        return summary
