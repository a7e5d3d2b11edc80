"""Analysis pipeline health report for the admin stats endpoint."""

from typing import Any, Dict, List, Optional

from istory.core.exceptions import StoreError
from istory.repositories.story_metadata_repository import StoryMetadataRepository
from istory.repositories.story_repository import StoryRepository
from istory.services.monitoring.analysis_logger import AnalysisLogBuffer
from istory.services.monitoring.performance_monitor import OperationStats, PerformanceMonitor
from istory.utils.logging import get_logger

LOGGER = get_logger(__name__)

FULL_ANALYSIS_OPERATION = "full_analysis"
ERROR_THRESHOLD = 5
MIN_SUCCESS_RATE = 0.9
RECENT_ERRORS = 20
RECENT_LOGS = 50
RECENT_METADATA = 10


def health_summary(
    error_count: int, full_analysis: Optional[OperationStats]
) -> Dict[str, Any]:
    """Healthy when there are few recent errors and analyses mostly succeed.

    With no recorded analyses only the error count decides.
    """
    reasons: List[str] = []
    if error_count >= ERROR_THRESHOLD:
        reasons.append(f"{error_count} recent errors")
    if full_analysis is not None and full_analysis.success_rate <= MIN_SUCCESS_RATE:
        reasons.append(f"Low success rate: {full_analysis.success_rate * 100:.1f}%")

    return {
        "healthy": not reasons,
        "reasons": reasons or ["All systems operational"],
        "lastAnalysis": (
            full_analysis.last_recorded_at.isoformat()
            if full_analysis and full_analysis.last_recorded_at
            else None
        ),
        "avgAnalysisTime": (
            f"{full_analysis.avg_duration_ms}ms"
            if full_analysis and full_analysis.avg_duration_ms
            else None
        ),
    }


class AnalysisStatsReport:
    """Combines stored metadata counts with the in-process monitors."""

    def __init__(
        self,
        metadata_repository: StoryMetadataRepository,
        story_repository: StoryRepository,
        analysis_log: AnalysisLogBuffer,
        performance: PerformanceMonitor,
    ):
        self.metadata_repository = metadata_repository
        self.story_repository = story_repository
        self.analysis_log = analysis_log
        self.performance = performance

    async def build(self) -> Dict[str, Any]:
        performance_stats = self.performance.all_stats()
        error_logs = self.analysis_log.errors(RECENT_ERRORS)
        recent_logs = self.analysis_log.recent(RECENT_LOGS)
        monitors = {
            "performance": [s.to_dict() for s in performance_stats],
            "recentErrors": [e.to_dict() for e in error_logs],
            "recentLogs": [e.to_dict() for e in recent_logs],
        }

        try:
            total_metadata = await self.metadata_repository.count()
            by_status = await self.metadata_repository.count_by("analysis_status")
        except StoreError as e:
            if not e.schema_missing:
                raise
            LOGGER.warning("Analysis stats requested before the metadata table exists")
            return {
                "statusCounts": {"total": 0, "note": "story_metadata table does not exist"},
                **monitors,
                "summary": {"healthy": False, "reasons": ["Database table not found"]},
            }

        try:
            total_stories = await self.story_repository.count()
        except StoreError:
            LOGGER.warning("Could not count stories for analysis stats", exc_info=True)
            total_stories = None

        try:
            recent_metadata = [
                {
                    "story_id": row.story_id,
                    "created_at": row.created_at.isoformat() if row.created_at else None,
                    "emotional_tone": row.emotional_tone,
                    "life_domain": row.life_domain,
                    "analysis_status": row.analysis_status,
                }
                for row in await self.metadata_repository.list_recent(
                    RECENT_METADATA, order_column="created_at"
                )
            ]
        except StoreError:
            LOGGER.warning("Could not list recent metadata for analysis stats", exc_info=True)
            recent_metadata = None

        full_analysis = next(
            (s for s in performance_stats if s.operation == FULL_ANALYSIS_OPERATION), None
        )

        return {
            "statusCounts": {
                "totalMetadata": total_metadata,
                "totalStories": "unknown" if total_stories is None else total_stories,
                "coverageRate": (
                    f"{total_metadata / total_stories * 100:.1f}%" if total_stories else "N/A"
                ),
                "byStatus": by_status,
            },
            "recentMetadata": recent_metadata,
            **monitors,
            "logCounts": {"total": self.analysis_log.count(), "errors": len(error_logs)},
            "summary": health_summary(len(error_logs), full_analysis),
        }
