"""Verification API schemas."""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class VerificationStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    EXPIRED = "expired"


class DispatchStatus(str, Enum):
    """Delivery state of the notification sent to the compute network."""

    QUEUED = "queued"
    DELIVERED = "delivered"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class DispatchJob:
    """Payload delivered to the consensus compute network."""

    story_id: str
    title: str
    content: str
    author_wallet: str
    workflow_run_id: str

    def to_network_payload(self) -> dict:
        return {
            "storyId": self.story_id,
            "title": self.title or "Untitled",
            "content": self.content,
            "authorWallet": self.author_wallet,
        }


@dataclass
class DispatchOutcome:
    status: DispatchStatus
    attempts: int = 0
    error: Optional[str] = None


class StoryIdRequest(BaseModel):
    """Body carrying a story id; optional so the endpoint owns the 400 message."""

    model_config = ConfigDict(populate_by_name=True)

    story_id: Optional[str] = Field(None, alias="storyId")


class DispatchResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    workflow_run_id: str = Field(..., serialization_alias="workflowRunId")
    message: str = "Verification started"


class VerifiedMetricsPayload(BaseModel):
    """Decoded on-chain metrics, as cached and returned."""

    model_config = ConfigDict(from_attributes=True)

    significance_score: int
    emotional_depth: int
    quality_score: int
    word_count: int
    verified_themes: List[str]
    cre_attestation_id: Optional[str] = None
    on_chain_verified_at: Optional[int] = None


class CheckResult(BaseModel):
    verified: bool
    metrics: Optional[VerifiedMetricsPayload] = None
    reason: Optional[str] = None


class VerificationStatusResponse(BaseModel):
    """Cache probe used by polling clients before they hit the ledger."""

    model_config = ConfigDict(populate_by_name=True)

    metrics: Optional[VerifiedMetricsPayload] = None
    pending: bool = False
    workflow_run_id: Optional[str] = Field(None, serialization_alias="workflowRunId")


class ReconcileSummary(BaseModel):
    checked: int = 0
    completed: int = 0
    expired: int = 0
    errors: int = 0
