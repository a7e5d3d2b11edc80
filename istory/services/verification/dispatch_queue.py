"""Delivery of verification jobs, decoupled from the request that created them.

Both queues give at-least-once delivery to the compute network and record
the final outcome on the job's verification log.
"""

import asyncio
from dataclasses import asdict
from typing import Awaitable, Callable, Optional, Protocol, Set

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from temporalio.client import Client as TemporalClient

from istory.core.exceptions import APIClientError, DispatchQueueError, StoreError
from istory.repositories.verification_log_repository import VerificationLogRepository
from istory.schemas.verification import DispatchJob, DispatchOutcome, DispatchStatus
from istory.services.verification.network_client import VerificationNetworkClient
from istory.utils.logging import get_logger

LOGGER = get_logger(__name__)

DISPATCH_WORKFLOW_NAME = "VerificationDispatchWorkflow"


class DispatchQueue(Protocol):
    async def enqueue(self, job: DispatchJob) -> None:
        """Accept a job for delivery; must not wait for the delivery itself."""
        ...


async def deliver_with_retries(
    network_client: VerificationNetworkClient,
    job: DispatchJob,
    max_attempts: int,
    retry_delay: float,
) -> DispatchOutcome:
    """Submit a job, retrying failures with exponential backoff."""
    last_error: Optional[str] = None
    for attempt in range(1, max_attempts + 1):
        try:
            status = await network_client.submit(job)
            return DispatchOutcome(status=status, attempts=attempt)
        except APIClientError as e:
            last_error = e.message
            LOGGER.warning(
                f"Workflow trigger failed (Attempt {attempt}/{max_attempts}): {e.message}",
                extra={"workflow_run_id": job.workflow_run_id},
            )
            if attempt < max_attempts:
                await asyncio.sleep(retry_delay * (2 ** (attempt - 1)))

    return DispatchOutcome(status=DispatchStatus.FAILED, attempts=max_attempts, error=last_error)


async def record_outcome(
    session_factory: async_sessionmaker[AsyncSession],
    workflow_run_id: str,
    outcome: DispatchOutcome,
) -> bool:
    async with session_factory() as session:
        repository = VerificationLogRepository(session)
        return await repository.record_dispatch_outcome(workflow_run_id, outcome)


class BackgroundDispatchQueue:
    """Delivers jobs from asyncio tasks owned by this process.

    Tasks are tracked so shutdown can wait for in-flight deliveries.
    """

    def __init__(
        self,
        network_client: VerificationNetworkClient,
        session_factory: async_sessionmaker[AsyncSession],
        max_attempts: int = 5,
        retry_delay: float = 2.0,
    ):
        self.network_client = network_client
        self.session_factory = session_factory
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def pending_jobs(self) -> int:
        return len(self._tasks)

    async def enqueue(self, job: DispatchJob) -> None:
        if self._closed:
            raise DispatchQueueError("Dispatch queue is shut down")

        task = asyncio.create_task(
            self._deliver(job), name=f"verification-dispatch-{job.workflow_run_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, job: DispatchJob) -> DispatchOutcome:
        try:
            outcome = await deliver_with_retries(
                self.network_client, job, self.max_attempts, self.retry_delay
            )
        except Exception as e:
            LOGGER.error(
                f"Workflow trigger crashed: {e}",
                exc_info=True,
                extra={"workflow_run_id": job.workflow_run_id},
            )
            outcome = DispatchOutcome(status=DispatchStatus.FAILED, error=str(e) or type(e).__name__)
        else:
            if outcome.status == DispatchStatus.FAILED:
                LOGGER.error(
                    f"Workflow trigger gave up after {outcome.attempts} attempts",
                    extra={"workflow_run_id": job.workflow_run_id, "error": outcome.error},
                )

        try:
            await record_outcome(self.session_factory, job.workflow_run_id, outcome)
        except StoreError as e:
            # Nobody awaits this task; the log line is the only trace.
            LOGGER.error(
                f"Failed to record dispatch outcome: {e.message}",
                extra={"workflow_run_id": job.workflow_run_id, "status": outcome.status.value},
            )
        return outcome

    async def drain(self) -> None:
        """Wait for every in-flight delivery to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def close(self) -> None:
        self._closed = True
        await self.drain()


class TemporalDispatchQueue:
    """Hands each job to a Temporal workflow that delivers and records it."""

    def __init__(
        self,
        client_provider: Callable[[], Awaitable[TemporalClient]],
        task_queue: str,
    ):
        self.client_provider = client_provider
        self.task_queue = task_queue

    async def enqueue(self, job: DispatchJob) -> None:
        try:
            client = await self.client_provider()
            await client.start_workflow(
                DISPATCH_WORKFLOW_NAME,
                asdict(job),
                id=f"verification-dispatch-{job.workflow_run_id}",
                task_queue=self.task_queue,
            )
        except Exception as e:
            raise DispatchQueueError(f"Failed to start dispatch workflow: {e}", original_error=e) from e

        LOGGER.info(
            "Dispatch workflow started",
            extra={"workflow_run_id": job.workflow_run_id, "task_queue": self.task_queue},
        )
