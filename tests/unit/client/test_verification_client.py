"""Unit tests for the verification API client and poller."""

import asyncio
import json
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from istory.client import PollerState, VerificationApiClient, VerificationPoller
from istory.core.exceptions import APIClientError, LedgerReadError
from istory.schemas.verification import CheckResult, VerificationStatusResponse, VerifiedMetricsPayload

STORY_ID = "3f2b8c1e-9a4d-4e6f-8b21-0c5d7e9f1a23"

METRICS = VerifiedMetricsPayload(
    significance_score=72,
    emotional_depth=64,
    quality_score=81,
    word_count=412,
    verified_themes=["family"],
)


class TestVerificationApiClient:

    @pytest.mark.asyncio
    async def test_status_and_check(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                assert request.url.path == f"/api/v1/verification/{STORY_ID}/status"
                return httpx.Response(200, json={"metrics": None, "pending": True, "workflowRunId": "wf_1_a"})
            assert request.headers["Authorization"] == "Bearer user-token"
            assert json.loads(request.content) == {"storyId": STORY_ID}
            return httpx.Response(200, json={"verified": False})

        async with VerificationApiClient(
            "https://istory.test/api/v1", access_token="user-token", transport=httpx.MockTransport(handler)
        ) as client:
            status = await client.get_status(STORY_ID)
            result = await client.check(STORY_ID)

        assert status.pending is True
        assert status.workflow_run_id == "wf_1_a"
        assert result.verified is False

    @pytest.mark.asyncio
    async def test_bad_gateway_is_a_ledger_read_error(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(502, json={"error": "Failed to read verified metrics"})
        )

        async with VerificationApiClient("https://istory.test/api/v1", transport=transport) as client:
            with pytest.raises(LedgerReadError) as exc_info:
                await client.check(STORY_ID)

        assert exc_info.value.message == "Failed to read verified metrics"

    @pytest.mark.asyncio
    async def test_other_errors_are_client_errors(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(401, json={"error": "Unauthorized"}))

        async with VerificationApiClient("https://istory.test/api/v1", transport=transport) as client:
            with pytest.raises(APIClientError) as exc_info:
                await client.check(STORY_ID)

        assert not isinstance(exc_info.value, LedgerReadError)


@pytest.fixture
def api_client():
    client = Mock(spec=VerificationApiClient)
    client.get_status = AsyncMock(return_value=VerificationStatusResponse(pending=True, workflow_run_id="wf_1_a"))
    client.check = AsyncMock(return_value=CheckResult(verified=False))
    return client


class TestVerificationPoller:

    @pytest.mark.asyncio
    async def test_cached_metrics_finish_without_polling(self, api_client):
        api_client.get_status.return_value = VerificationStatusResponse(metrics=METRICS)
        poller = VerificationPoller(api_client, STORY_ID, interval_seconds=0)

        poller.start()
        state = await poller.wait()

        assert state == PollerState.DONE
        assert poller.metrics == METRICS
        api_client.check.assert_not_called()

    @pytest.mark.asyncio
    async def test_nothing_pending_goes_idle(self, api_client):
        api_client.get_status.return_value = VerificationStatusResponse()
        poller = VerificationPoller(api_client, STORY_ID, interval_seconds=0)

        poller.start()

        assert await poller.wait() == PollerState.IDLE
        api_client.check.assert_not_called()

    @pytest.mark.asyncio
    async def test_polls_until_verified(self, api_client):
        api_client.check.side_effect = [
            CheckResult(verified=False),
            CheckResult(verified=False),
            CheckResult(verified=True, metrics=METRICS),
        ]
        states = []
        poller = VerificationPoller(
            api_client, STORY_ID, interval_seconds=0, on_change=lambda p: states.append(p.state)
        )

        poller.start()

        assert await poller.wait() == PollerState.DONE
        assert poller.attempts == 3
        assert poller.is_verified
        assert states == [PollerState.CHECKING_CACHE, PollerState.POLLING, PollerState.DONE]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, api_client):
        poller = VerificationPoller(api_client, STORY_ID, interval_seconds=0, max_attempts=4)

        poller.start()

        assert await poller.wait() == PollerState.TIMED_OUT
        assert api_client.check.await_count == 4

    @pytest.mark.asyncio
    async def test_ledger_failure_is_terminal(self, api_client):
        api_client.check.side_effect = LedgerReadError("Failed to read verified metrics")
        poller = VerificationPoller(api_client, STORY_ID, interval_seconds=0)

        poller.start()

        assert await poller.wait() == PollerState.ERROR
        assert poller.error == "Failed to read verified metrics"
        assert api_client.check.await_count == 1

    @pytest.mark.asyncio
    async def test_transient_check_failure_keeps_polling(self, api_client):
        api_client.check.side_effect = [
            APIClientError("POST /verification/check returned 500: Internal server error"),
            CheckResult(verified=True, metrics=METRICS),
        ]
        poller = VerificationPoller(api_client, STORY_ID, interval_seconds=0)

        poller.start()

        assert await poller.wait() == PollerState.DONE

    @pytest.mark.asyncio
    async def test_stop_cancels_the_polling_task(self, api_client):
        poller = VerificationPoller(api_client, STORY_ID, interval_seconds=60)

        task = poller.start()
        while api_client.check.await_count == 0:
            await asyncio.sleep(0)
        await poller.stop()

        assert task.cancelled()
        assert poller.running is False
        assert poller.state == PollerState.IDLE
