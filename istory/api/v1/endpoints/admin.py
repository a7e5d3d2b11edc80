"""Admin endpoints, protected by the ``ADMIN_SECRET`` bearer token."""

from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query

from istory.api.v1.dependencies import (
    get_metadata_repository,
    get_story_repository,
    get_verification_reconciler,
)
from istory.core.auth import require_admin
from istory.core.config import settings
from istory.core.temporal_client import get_temporal_client
from istory.repositories.story_metadata_repository import StoryMetadataRepository
from istory.repositories.story_repository import StoryRepository
from istory.schemas.admin import BackfillRequest, BackfillStarted
from istory.schemas.verification import ReconcileSummary
from istory.services.analysis.backfill import start_metadata_backfill
from istory.services.monitoring import (
    AnalysisLogBuffer,
    PerformanceMonitor,
    get_analysis_log,
    get_performance_monitor,
)
from istory.services.monitoring.stats_report import AnalysisStatsReport
from istory.services.verification import VerificationReconciler

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get(
    "/analysis-stats",
    summary="Analysis pipeline health",
    description="Metadata coverage, per-operation performance, recent analysis logs and a health summary",
    operation_id="get_analysis_stats",
)
async def get_analysis_stats(
    metadata_repository: Annotated[StoryMetadataRepository, Depends(get_metadata_repository)],
    story_repository: Annotated[StoryRepository, Depends(get_story_repository)],
    analysis_log: Annotated[AnalysisLogBuffer, Depends(get_analysis_log)],
    performance: Annotated[PerformanceMonitor, Depends(get_performance_monitor)],
) -> Dict[str, Any]:
    report = AnalysisStatsReport(metadata_repository, story_repository, analysis_log, performance)
    return await report.build()


@router.post(
    "/verification/reconcile",
    response_model=ReconcileSummary,
    summary="Reconcile pending verification runs",
    operation_id="reconcile_verifications",
)
async def reconcile_verifications(
    reconciler: Annotated[VerificationReconciler, Depends(get_verification_reconciler)],
    limit: int = Query(500, ge=1, le=5000),
) -> ReconcileSummary:
    return await reconciler.reconcile(limit=limit)


@router.post(
    "/metadata/backfill",
    response_model=BackfillStarted,
    summary="Backfill missing story metadata",
    operation_id="start_metadata_backfill",
)
async def backfill_metadata(
    payload: Annotated[Optional[BackfillRequest], Body()] = None,
) -> BackfillStarted:
    payload = payload or BackfillRequest()
    workflow_id = await start_metadata_backfill(
        get_temporal_client,
        task_queue=settings.temporal_task_queue,
        limit=payload.limit,
        delay_seconds=payload.delay_seconds,
    )
    return BackfillStarted(workflow_id=workflow_id)
