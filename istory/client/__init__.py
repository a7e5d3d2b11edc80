"""Async client for the verification status and check endpoints."""

from istory.client.api_client import VerificationApiClient
from istory.client.verification_poller import PollerState, VerificationPoller

__all__ = ["PollerState", "VerificationApiClient", "VerificationPoller"]
