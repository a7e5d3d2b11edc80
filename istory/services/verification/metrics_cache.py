"""On-chain metrics reader with a database read-through cache."""

from istory.core.exceptions import StoreError
from istory.core.ledger_client import LedgerClient
from istory.repositories.verification_log_repository import VerificationLogRepository
from istory.repositories.verified_metrics_repository import VerifiedMetricsRepository
from istory.schemas.verification import CheckResult, VerificationStatusResponse, VerifiedMetricsPayload
from istory.utils.logging import get_logger

LOGGER = get_logger(__name__)

CONTRACT_NOT_DEPLOYED = "Contract not deployed"


class VerifiedMetricsService:
    """Reads verified metrics from the ledger and keeps the cache in step.

    The ledger is the source of truth. A failed cache write is logged and
    does not change the answer, since the record is still on-chain.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        metrics_repository: VerifiedMetricsRepository,
        log_repository: VerificationLogRepository,
    ):
        self.ledger = ledger
        self.metrics_repository = metrics_repository
        self.log_repository = log_repository

    async def check_and_cache(self, story_id: str) -> CheckResult:
        """Read the ledger record of a story and cache it when present.

        Raises:
            ValidationError: If the story id cannot be encoded as a ledger key
            LedgerReadError: If the ledger cannot be read
        """
        if not self.ledger.is_deployed:
            return CheckResult(verified=False, reason=CONTRACT_NOT_DEPLOYED)

        on_chain = await self.ledger.read_metrics(story_id)
        if on_chain is None:
            return CheckResult(verified=False)

        metrics = VerifiedMetricsPayload(
            significance_score=on_chain.significance_score,
            emotional_depth=on_chain.emotional_depth,
            quality_score=on_chain.quality_score,
            word_count=on_chain.word_count,
            verified_themes=on_chain.themes,
            cre_attestation_id=on_chain.attestation_id,
            on_chain_verified_at=on_chain.verified_at,
        )

        try:
            await self.metrics_repository.upsert(story_id, metrics)
        except StoreError as e:
            LOGGER.warning(
                f"Verified metrics cache write failed: {e.message}",
                extra={"story_id": story_id},
            )

        try:
            completed = await self.log_repository.mark_completed(story_id)
        except StoreError as e:
            LOGGER.warning(
                f"Could not complete pending verification log: {e.message}",
                extra={"story_id": story_id},
            )
        else:
            if completed:
                LOGGER.info("Verification completed", extra={"story_id": story_id})

        return CheckResult(verified=True, metrics=metrics)

    async def cached_status(self, story_id: str) -> VerificationStatusResponse:
        """Cache and pending-log state, without touching the ledger."""
        cached = await self.metrics_repository.get_by_story_id(story_id)
        if cached is not None:
            return VerificationStatusResponse(
                metrics=VerifiedMetricsPayload.model_validate(cached)
            )

        pending = await self.log_repository.get_pending(story_id)
        if pending is not None:
            return VerificationStatusResponse(pending=True, workflow_run_id=pending.workflow_run_id)
        return VerificationStatusResponse()
