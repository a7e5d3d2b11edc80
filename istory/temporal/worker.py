"""Temporal worker for verification dispatch and metadata backfill.

Run with ``python -m istory.temporal.worker``. The worker connects with
retries, then serves every registered workflow and activity, one worker
per task queue.
"""

import asyncio
from typing import Dict, List

from temporalio.client import Client
from temporalio.worker import Worker
from temporalio.worker.workflow_sandbox import SandboxedWorkflowRunner, SandboxRestrictions

from istory.core.config import settings
from istory.core.database import close_database
from istory.temporal.core.discovery import discover_all
from istory.temporal.core.activity_registry import ActivityRegistry
from istory.temporal.core.constants import DEFAULT_TASK_QUEUE
from istory.temporal.core.workflow_registry import WorkflowRegistry
from istory.utils.logging import configure_logging, get_logger

discover_all()

LOGGER = get_logger(__name__)


async def connect(max_retries: int = 5, retry_delay: int = 5) -> Client:
    for attempt in range(max_retries):
        try:
            LOGGER.info(
                f"Connecting to Temporal server at {settings.temporal_host}:{settings.temporal_port} "
                f"(Attempt {attempt + 1}/{max_retries})"
            )
            return await Client.connect(
                target_host=f"{settings.temporal_host}:{settings.temporal_port}",
                namespace=settings.temporal_namespace,
            )
        except Exception as e:
            if attempt < max_retries - 1:
                LOGGER.warning(f"Connection attempt {attempt + 1} failed: {e}. Retrying in {retry_delay}s...")
                await asyncio.sleep(retry_delay)
            else:
                LOGGER.error(f"Failed to connect to Temporal server after {max_retries} attempts: {e}")
                raise


def build_workers(client: Client) -> List[Worker]:
    all_workflows = WorkflowRegistry.get_all_workflows()
    all_activities = ActivityRegistry.get_all_activities()
    LOGGER.info(f"Registered {len(all_workflows)} workflows and {len(all_activities)} activities")

    queues: Dict[str, list] = {}
    for metadata in all_workflows.values():
        queues.setdefault(metadata.task_queue or DEFAULT_TASK_QUEUE, []).append(metadata.workflow_class)

    return [
        Worker(
            client,
            task_queue=queue_name,
            workflows=workflows,
            activities=list(all_activities.values()),
            max_concurrent_activities=10,
            max_concurrent_workflow_tasks=20,
            workflow_runner=SandboxedWorkflowRunner(
                restrictions=SandboxRestrictions.default.with_passthrough_all_modules()
            ),
        )
        for queue_name, workflows in queues.items()
    ]


async def main():
    configure_logging(settings.log_level)
    client = await connect()
    workers = build_workers(client)

    LOGGER.info(f"Workers polling queues: {[w.task_queue for w in workers]}")
    try:
        await asyncio.gather(*(worker.run() for worker in workers))
    finally:
        await close_database()


if __name__ == "__main__":
    asyncio.run(main())
