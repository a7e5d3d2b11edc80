"""Durable delivery of one verification job to the compute network."""

from datetime import timedelta
from typing import Dict

from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError

from istory.temporal.core.constants import (
    DB_ACTIVITY_TIMEOUT_SECONDS,
    NOTIFY_ACTIVITY_TIMEOUT_SECONDS,
    NOTIFY_INITIAL_RETRY_SECONDS,
    NOTIFY_MAX_ATTEMPTS,
)
from istory.temporal.core.workflow_registry import WorkflowRegistry, WorkflowType


@WorkflowRegistry.register(category=WorkflowType.VERIFICATION)
@workflow.defn
class VerificationDispatchWorkflow:
    """Notifies the network with retries, then records the outcome on the log."""

    def __init__(self):
        self._status = "queued"

    @workflow.query
    def get_status(self) -> str:
        return self._status

    @workflow.run
    async def run(self, job: Dict) -> dict:
        workflow_run_id = job["workflow_run_id"]
        error = None

        try:
            result = await workflow.execute_activity(
                "notify_verification_network",
                job,
                start_to_close_timeout=timedelta(seconds=NOTIFY_ACTIVITY_TIMEOUT_SECONDS),
                retry_policy=RetryPolicy(
                    initial_interval=timedelta(seconds=NOTIFY_INITIAL_RETRY_SECONDS),
                    backoff_coefficient=2.0,
                    maximum_attempts=NOTIFY_MAX_ATTEMPTS,
                ),
            )
            self._status = result["status"]
            attempts = result["attempts"]
        except ActivityError as e:
            self._status = "failed"
            attempts = NOTIFY_MAX_ATTEMPTS
            error = str(e.cause or e)
            workflow.logger.error(
                f"Verification network notification failed for {workflow_run_id}: {error}"
            )

        await workflow.execute_activity(
            "record_dispatch_outcome",
            args=[workflow_run_id, self._status, attempts, error],
            start_to_close_timeout=timedelta(seconds=DB_ACTIVITY_TIMEOUT_SECONDS),
        )

        return {
            "workflow_run_id": workflow_run_id,
            "status": self._status,
            "attempts": attempts,
            "error": error,
        }
