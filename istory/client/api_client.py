"""HTTP client for the verification endpoints."""

from typing import Optional

import httpx

from istory.core.exceptions import APIClientError, APITimeoutError, LedgerReadError
from istory.schemas.verification import CheckResult, VerificationStatusResponse
from istory.utils.logging import get_logger

LOGGER = get_logger(__name__)


class VerificationApiClient:
    """Wraps ``GET /verification/{id}/status`` and ``POST /verification/check``.

    Args:
        base_url: Service root including the API prefix, e.g. ``https://host/api/v1``
        access_token: Bearer token of the signed-in user, required by ``check``
        timeout: Request timeout in seconds
        transport: Optional httpx transport, used to stub the server in tests
    """

    def __init__(
        self,
        base_url: str,
        access_token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Content-Type": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "VerificationApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise APITimeoutError(f"Request to {path} timed out", original_error=e) from e
        except httpx.HTTPError as e:
            raise APIClientError(f"Request to {path} failed: {e}", original_error=e) from e

        if response.status_code == 502:
            raise LedgerReadError(_error_message(response, "Failed to read on-chain metrics"))
        if response.is_error:
            raise APIClientError(
                f"{method} {path} returned {response.status_code}: "
                f"{_error_message(response, response.reason_phrase)}"
            )
        return response.json()

    async def get_status(self, story_id: str) -> VerificationStatusResponse:
        """Cached metrics and pending state; never touches the ledger."""
        data = await self._request("GET", f"/verification/{story_id}/status")
        return VerificationStatusResponse.model_validate(
            {**data, "workflow_run_id": data.get("workflowRunId")}
        )

    async def check(self, story_id: str) -> CheckResult:
        """Read the ledger through the service.

        Raises:
            LedgerReadError: If the service could not read the ledger
        """
        data = await self._request("POST", "/verification/check", json={"storyId": story_id})
        return CheckResult.model_validate(data)


def _error_message(response: httpx.Response, default: str) -> str:
    try:
        return response.json().get("error") or default
    except ValueError:
        return default
