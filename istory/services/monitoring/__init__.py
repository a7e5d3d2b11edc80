"""In-process analysis monitoring.

Both buffers are bounded and per process; a multi-worker deployment sees
one partial view per worker.
"""

from istory.core.config import settings
from istory.services.monitoring.analysis_logger import AnalysisLogBuffer, AnalysisLogEntry
from istory.services.monitoring.performance_monitor import (
    OperationStats,
    OperationTimer,
    PerformanceMonitor,
)

_analysis_log = AnalysisLogBuffer(max_entries=settings.monitoring.log_buffer_size)
_performance_monitor = PerformanceMonitor(
    max_records=settings.monitoring.performance_records_per_operation
)


def get_analysis_log() -> AnalysisLogBuffer:
    """Process-wide analysis log buffer."""
    return _analysis_log


def get_performance_monitor() -> PerformanceMonitor:
    """Process-wide performance monitor."""
    return _performance_monitor


__all__ = [
    "AnalysisLogBuffer",
    "AnalysisLogEntry",
    "OperationStats",
    "OperationTimer",
    "PerformanceMonitor",
    "get_analysis_log",
    "get_performance_monitor",
]
