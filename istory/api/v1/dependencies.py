"""FastAPI dependency providers for services and repositories."""

from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from istory.core.config import settings
from istory.core.database import async_session_maker, get_async_session
from istory.core.ledger_client import LedgerClient
from istory.core.llm_client import LLMClient, create_llm_client
from istory.core.temporal_client import get_temporal_client
from istory.repositories.story_metadata_repository import StoryMetadataRepository
from istory.repositories.story_repository import StoryRepository
from istory.repositories.verification_log_repository import VerificationLogRepository
from istory.repositories.verified_metrics_repository import VerifiedMetricsRepository
from istory.services.analysis import AnalysisPipeline, StoryAnalyzer
from istory.services.monitoring import (
    AnalysisLogBuffer,
    PerformanceMonitor,
    get_analysis_log,
    get_performance_monitor,
)
from istory.services.verification import (
    BackgroundDispatchQueue,
    TemporalDispatchQueue,
    VerificationDispatcher,
    VerificationNetworkClient,
    VerificationReconciler,
    VerifiedMetricsService,
)
from istory.services.verification.dispatch_queue import DispatchQueue

SessionDep = Annotated[AsyncSession, Depends(get_async_session)]

_dispatch_queue: Optional[DispatchQueue] = None


def get_llm_client() -> LLMClient:
    return create_llm_client(settings.llm)


@lru_cache
def get_ledger_client() -> LedgerClient:
    return LedgerClient.from_settings(settings.ledger)


def get_dispatch_queue() -> DispatchQueue:
    """Process-wide dispatch queue for the configured backend."""
    global _dispatch_queue
    if _dispatch_queue is None:
        if settings.verification.dispatch_backend == "temporal":
            _dispatch_queue = TemporalDispatchQueue(
                client_provider=get_temporal_client,
                task_queue=settings.temporal_task_queue,
            )
        else:
            _dispatch_queue = BackgroundDispatchQueue(
                network_client=VerificationNetworkClient.from_settings(settings.verification),
                session_factory=async_session_maker,
                max_attempts=settings.verification.notify_max_attempts,
                retry_delay=settings.verification.notify_retry_delay,
            )
    return _dispatch_queue


async def shutdown_dispatch_queue() -> None:
    """Wait for in-flight background deliveries before the process exits."""
    if isinstance(_dispatch_queue, BackgroundDispatchQueue):
        await _dispatch_queue.close()


async def get_story_repository(session: SessionDep) -> StoryRepository:
    return StoryRepository(session)


async def get_metadata_repository(session: SessionDep) -> StoryMetadataRepository:
    return StoryMetadataRepository(session)


async def get_verification_log_repository(session: SessionDep) -> VerificationLogRepository:
    return VerificationLogRepository(session)


async def get_verified_metrics_repository(session: SessionDep) -> VerifiedMetricsRepository:
    return VerifiedMetricsRepository(session)


async def get_analysis_pipeline(
    llm_client: Annotated[LLMClient, Depends(get_llm_client)],
    metadata_repository: Annotated[StoryMetadataRepository, Depends(get_metadata_repository)],
    story_repository: Annotated[StoryRepository, Depends(get_story_repository)],
    analysis_log: Annotated[AnalysisLogBuffer, Depends(get_analysis_log)],
    performance: Annotated[PerformanceMonitor, Depends(get_performance_monitor)],
) -> AnalysisPipeline:
    analyzer = StoryAnalyzer(
        llm_client=llm_client,
        metadata_repository=metadata_repository,
        analysis_log=analysis_log,
        performance=performance,
    )
    return AnalysisPipeline(analyzer, metadata_repository, story_repository)


async def get_verification_dispatcher(
    story_repository: Annotated[StoryRepository, Depends(get_story_repository)],
    log_repository: Annotated[VerificationLogRepository, Depends(get_verification_log_repository)],
    metrics_repository: Annotated[VerifiedMetricsRepository, Depends(get_verified_metrics_repository)],
    queue: Annotated[DispatchQueue, Depends(get_dispatch_queue)],
) -> VerificationDispatcher:
    return VerificationDispatcher(
        story_repository=story_repository,
        log_repository=log_repository,
        metrics_repository=metrics_repository,
        queue=queue,
        pending_ttl_seconds=settings.verification.pending_ttl_seconds,
    )


async def get_verified_metrics_service(
    ledger: Annotated[LedgerClient, Depends(get_ledger_client)],
    metrics_repository: Annotated[VerifiedMetricsRepository, Depends(get_verified_metrics_repository)],
    log_repository: Annotated[VerificationLogRepository, Depends(get_verification_log_repository)],
) -> VerifiedMetricsService:
    return VerifiedMetricsService(ledger, metrics_repository, log_repository)


async def get_verification_reconciler(
    log_repository: Annotated[VerificationLogRepository, Depends(get_verification_log_repository)],
    metrics_service: Annotated[VerifiedMetricsService, Depends(get_verified_metrics_service)],
) -> VerificationReconciler:
    return VerificationReconciler(
        log_repository=log_repository,
        metrics_service=metrics_service,
        pending_ttl_seconds=settings.verification.pending_ttl_seconds,
    )
