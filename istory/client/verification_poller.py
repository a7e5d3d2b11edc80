"""Polls the ledger check until a story's verified metrics appear.

The poller first probes the cached status. Cached metrics finish it at once;
no pending run leaves it idle; a pending run starts polling the check
endpoint every ``interval_seconds`` until the story is verified, the
attempt budget runs out, or a ledger read fails.
"""

import asyncio
from enum import Enum
from typing import Callable, Optional

from istory.client.api_client import VerificationApiClient
from istory.core.config import settings
from istory.core.exceptions import APIClientError, LedgerReadError
from istory.schemas.verification import VerifiedMetricsPayload
from istory.utils.logging import get_logger

LOGGER = get_logger(__name__)


class PollerState(str, Enum):
    IDLE = "idle"
    CHECKING_CACHE = "checking_cache"
    POLLING = "polling"
    DONE = "done"
    TIMED_OUT = "timed_out"
    ERROR = "error"


TERMINAL_STATES = frozenset({PollerState.IDLE, PollerState.DONE, PollerState.TIMED_OUT, PollerState.ERROR})


class VerificationPoller:
    """Drives one story from a cache probe to verified metrics.

    ``on_change`` is called with the poller after every state change.
    """

    def __init__(
        self,
        api_client: VerificationApiClient,
        story_id: str,
        interval_seconds: Optional[float] = None,
        max_attempts: Optional[int] = None,
        on_change: Optional[Callable[["VerificationPoller"], None]] = None,
    ):
        self.api_client = api_client
        self.story_id = story_id
        self.interval_seconds = (
            settings.verification.poll_interval_seconds if interval_seconds is None else interval_seconds
        )
        self.max_attempts = (
            settings.verification.poll_max_attempts if max_attempts is None else max_attempts
        )
        self.on_change = on_change

        self.state = PollerState.IDLE
        self.metrics: Optional[VerifiedMetricsPayload] = None
        self.error: Optional[str] = None
        self.attempts = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def is_pending(self) -> bool:
        return self.state == PollerState.POLLING

    @property
    def is_verified(self) -> bool:
        return self.metrics is not None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _set_state(self, state: PollerState) -> None:
        if state == self.state:
            return
        self.state = state
        LOGGER.debug(f"Poller for story {self.story_id} moved to {state.value}")
        if self.on_change is not None:
            self.on_change(self)

    def start(self) -> asyncio.Task:
        """Start polling in a background task; a running poller is left alone."""
        if not self.running:
            self.metrics = None
            self.error = None
            self.attempts = 0
            self._task = asyncio.create_task(self._run())
        return self._task

    async def stop(self) -> None:
        """Cancel the polling task and wait for it to finish."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        if self.state not in TERMINAL_STATES:
            self._set_state(PollerState.IDLE)

    async def wait(self) -> PollerState:
        """Wait for the current run to reach a terminal state."""
        if self._task is not None:
            await asyncio.wait({self._task})
        return self.state

    async def _run(self) -> None:
        self._set_state(PollerState.CHECKING_CACHE)
        try:
            status = await self.api_client.get_status(self.story_id)
        except APIClientError as e:
            self._fail(e)
            return

        if status.metrics is not None:
            self.metrics = status.metrics
            self._set_state(PollerState.DONE)
            return
        if not status.pending:
            self._set_state(PollerState.IDLE)
            return

        self._set_state(PollerState.POLLING)
        while self.attempts < self.max_attempts:
            self.attempts += 1
            try:
                result = await self.api_client.check(self.story_id)
            except LedgerReadError as e:
                self._fail(e)
                return
            except APIClientError as e:
                LOGGER.warning(
                    f"Verification check failed for story {self.story_id}, will retry: {e.message}"
                )
            else:
                if result.verified and result.metrics is not None:
                    self.metrics = result.metrics
                    self._set_state(PollerState.DONE)
                    return

            if self.attempts < self.max_attempts:
                await asyncio.sleep(self.interval_seconds)

        LOGGER.info(
            f"Gave up polling story {self.story_id} after {self.attempts} attempts"
        )
        self._set_state(PollerState.TIMED_OUT)

    def _fail(self, error: APIClientError) -> None:
        LOGGER.error(f"Verification polling failed for story {self.story_id}: {error.message}")
        self.error = error.message
        self._set_state(PollerState.ERROR)
