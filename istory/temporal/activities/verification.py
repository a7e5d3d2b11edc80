"""Temporal activities for verification dispatch."""

from typing import Optional

from temporalio import activity

from istory.core.config import settings
from istory.core.database import async_session_maker
from istory.schemas.verification import DispatchJob, DispatchOutcome, DispatchStatus
from istory.services.verification.dispatch_queue import record_outcome
from istory.services.verification.network_client import VerificationNetworkClient
from istory.temporal.core.activity_registry import ActivityRegistry
from istory.utils.logging import get_logger

LOGGER = get_logger(__name__)


@ActivityRegistry.register("verification", "notify_verification_network")
@activity.defn(name="notify_verification_network")
async def notify_verification_network(job: dict) -> dict:
    """Post one job to the compute network.

    Failures propagate so the workflow's retry policy re-runs the activity.
    """
    dispatch_job = DispatchJob(**job)
    attempt = activity.info().attempt
    LOGGER.info(
        f"Notifying verification network (attempt {attempt})",
        extra={"workflow_run_id": dispatch_job.workflow_run_id},
    )

    client = VerificationNetworkClient.from_settings(settings.verification)
    status = await client.submit(dispatch_job)
    return {"status": status.value, "attempts": attempt}


@ActivityRegistry.register("verification", "record_dispatch_outcome")
@activity.defn(name="record_dispatch_outcome")
async def record_dispatch_outcome(
    workflow_run_id: str,
    status: str,
    attempts: int,
    error: Optional[str] = None,
) -> bool:
    outcome = DispatchOutcome(status=DispatchStatus(status), attempts=attempts, error=error)
    recorded = await record_outcome(async_session_maker, workflow_run_id, outcome)
    if not recorded:
        LOGGER.warning(
            "No verification log found for dispatch outcome",
            extra={"workflow_run_id": workflow_run_id},
        )
    return recorded
