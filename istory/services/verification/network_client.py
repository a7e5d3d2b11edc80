"""HTTP trigger for the consensus compute network's verification workflow."""

from typing import Optional

import httpx

from istory.core.config import VerificationSettings
from istory.core.exceptions import APIClientError, APITimeoutError
from istory.schemas.verification import DispatchJob, DispatchStatus
from istory.utils.logging import get_logger

LOGGER = get_logger(__name__)


class VerificationNetworkClient:
    """Posts verification jobs to the compute network's workflow endpoint."""

    def __init__(self, workflow_url: Optional[str], api_key: str = "", timeout: int = 30):
        self.workflow_url = workflow_url or ""
        self.api_key = api_key
        self.timeout = timeout

    @classmethod
    def from_settings(cls, verification_settings: VerificationSettings) -> "VerificationNetworkClient":
        return cls(
            workflow_url=verification_settings.workflow_url,
            api_key=verification_settings.api_key,
            timeout=verification_settings.notify_timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.workflow_url)

    async def submit(self, job: DispatchJob) -> DispatchStatus:
        """Deliver one job.

        Returns:
            DELIVERED on a 2xx response, SKIPPED when no workflow URL is configured

        Raises:
            APITimeoutError: If the request times out
            APIClientError: On a non-2xx response or transport failure
        """
        if not self.is_configured:
            LOGGER.warning(
                "CRE_WORKFLOW_URL not set, skipping workflow trigger",
                extra={"story_id": job.story_id, "workflow_run_id": job.workflow_run_id},
            )
            return DispatchStatus.SKIPPED

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.workflow_url,
                    headers=headers,
                    json=job.to_network_payload(),
                )
                response.raise_for_status()
        except httpx.TimeoutException as e:
            raise APITimeoutError(f"Workflow trigger timed out: {e}", original_error=e) from e
        except httpx.HTTPStatusError as e:
            raise APIClientError(
                f"Workflow trigger failed with status {e.response.status_code}",
                original_error=e,
            ) from e
        except httpx.HTTPError as e:
            raise APIClientError(f"Workflow trigger failed: {e}", original_error=e) from e

        LOGGER.info(
            "Verification workflow triggered",
            extra={"story_id": job.story_id, "workflow_run_id": job.workflow_run_id},
        )
        return DispatchStatus.DELIVERED
