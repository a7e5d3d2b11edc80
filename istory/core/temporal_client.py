"""Temporal client connection management.

The API process shares one lazily created client for starting dispatch and
backfill workflows.
"""

from typing import Optional

from temporalio.client import Client as TemporalClient

from istory.core.config import settings


class TemporalClientManager:
    """Lazily creates a Temporal client and keeps it around for reuse."""

    _client: Optional[TemporalClient] = None

    async def get_client(self) -> TemporalClient:
        if self._client is None:
            self._client = await TemporalClient.connect(
                f"{settings.temporal_host}:{settings.temporal_port}",
                namespace=settings.temporal_namespace,
            )
        return self._client


_temporal_manager = TemporalClientManager()


async def get_temporal_client() -> TemporalClient:
    """Get the shared Temporal client instance."""
    return await _temporal_manager.get_client()
