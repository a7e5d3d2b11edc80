"""Starting the metadata backfill workflow from the API."""

import time
from typing import Awaitable, Callable, Optional

from temporalio.client import Client as TemporalClient

from istory.core.exceptions import DispatchQueueError
from istory.utils.logging import get_logger

LOGGER = get_logger(__name__)

BACKFILL_WORKFLOW_NAME = "MetadataBackfillWorkflow"


async def start_metadata_backfill(
    client_provider: Callable[[], Awaitable[TemporalClient]],
    task_queue: str,
    limit: int,
    delay_seconds: Optional[float] = None,
) -> str:
    """Start a backfill run and return its workflow id.

    Raises:
        DispatchQueueError: If the workflow could not be started
    """
    workflow_id = f"metadata-backfill-{int(time.time() * 1000)}"
    payload = {"limit": limit}
    if delay_seconds is not None:
        payload["delay_seconds"] = delay_seconds

    try:
        client = await client_provider()
        await client.start_workflow(
            BACKFILL_WORKFLOW_NAME,
            payload,
            id=workflow_id,
            task_queue=task_queue,
        )
    except Exception as e:
        raise DispatchQueueError(f"Failed to start backfill workflow: {e}", original_error=e) from e

    LOGGER.info("Metadata backfill started", extra={"workflow_id": workflow_id, "limit": limit})
    return workflow_id
