"""Verification trigger, on-chain check and cached status endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends

from istory.api.v1.dependencies import get_verification_dispatcher, get_verified_metrics_service
from istory.core.auth import get_current_user
from istory.core.exceptions import ValidationError
from istory.schemas.auth import CurrentUser
from istory.schemas.metadata import normalize_story_id
from istory.schemas.verification import (
    CheckResult,
    DispatchResult,
    StoryIdRequest,
    VerificationStatusResponse,
)
from istory.services.verification import VerificationDispatcher, VerifiedMetricsService
from istory.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()


def _required_story_id(payload: StoryIdRequest) -> str:
    if not payload.story_id:
        raise ValidationError("Story ID is required")
    return normalize_story_id(payload.story_id)


@router.post(
    "/trigger",
    response_model=DispatchResult,
    summary="Start verification of a story",
    description="Checks preconditions, records a pending run and queues delivery to the verification network",
    operation_id="trigger_verification",
)
async def trigger_verification(
    payload: StoryIdRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    dispatcher: Annotated[VerificationDispatcher, Depends(get_verification_dispatcher)],
) -> DispatchResult:
    story_id = _required_story_id(payload)
    return await dispatcher.dispatch(story_id, current_user.id)


@router.post(
    "/check",
    response_model=CheckResult,
    response_model_exclude_unset=True,
    summary="Check the ledger for verified metrics",
    operation_id="check_verification",
)
async def check_verification(
    payload: StoryIdRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    metrics_service: Annotated[VerifiedMetricsService, Depends(get_verified_metrics_service)],
) -> CheckResult:
    """Read the ledger and cache the metrics if the story is verified.

    An unverified story is a normal 200 answer; a failed ledger read is a 502.
    """
    story_id = _required_story_id(payload)
    return await metrics_service.check_and_cache(story_id)


@router.get(
    "/{story_id}/status",
    response_model=VerificationStatusResponse,
    summary="Cached verification status",
    operation_id="get_verification_status",
)
async def get_verification_status(
    story_id: str,
    metrics_service: Annotated[VerifiedMetricsService, Depends(get_verified_metrics_service)],
) -> VerificationStatusResponse:
    return await metrics_service.cached_status(normalize_story_id(story_id))
