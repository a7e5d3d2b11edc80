"""Admin request and response schemas."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BackfillRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    limit: int = Field(100, ge=1, le=1000, description="Maximum number of stories to analyze")
    delay_seconds: Optional[float] = Field(
        None, ge=0, alias="delaySeconds", description="Pause between model calls"
    )


class BackfillStarted(BaseModel):
    success: bool = True
    workflow_id: str = Field(..., serialization_alias="workflowId")
    message: str = "Metadata backfill started"
