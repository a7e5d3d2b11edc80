"""Per-operation latency and success tracking."""

import math
import threading
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Deque, Dict, List, Optional

DEFAULT_MAX_RECORDS_PER_OPERATION = 1000


@dataclass(frozen=True)
class PerformanceRecord:
    duration_ms: float
    success: bool
    recorded_at: datetime


@dataclass
class OperationStats:
    operation: str
    count: int
    success_count: int
    failure_count: int
    success_rate: float
    avg_duration_ms: int
    min_duration_ms: float
    max_duration_ms: float
    p50: float
    p95: float
    p99: float
    last_recorded_at: Optional[datetime]

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "count": self.count,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "success_rate": self.success_rate,
            "avg_duration_ms": self.avg_duration_ms,
            "min_duration_ms": self.min_duration_ms,
            "max_duration_ms": self.max_duration_ms,
            "p50": self.p50,
            "p95": self.p95,
            "p99": self.p99,
            "last_recorded_at": self.last_recorded_at.isoformat() if self.last_recorded_at else None,
        }


def percentile(sorted_values: List[float], p: float) -> float:
    """Nearest-rank percentile of an ascending list; 0 for an empty list."""
    if not sorted_values:
        return 0
    index = math.ceil((p / 100) * len(sorted_values)) - 1
    return sorted_values[max(0, index)]


class PerformanceMonitor:
    """Keeps the last ``max_records`` timings of every operation."""

    def __init__(self, max_records: int = DEFAULT_MAX_RECORDS_PER_OPERATION):
        self.max_records = max_records
        self._records: Dict[str, Deque[PerformanceRecord]] = {}
        self._lock = threading.Lock()

    def record(self, operation: str, duration_ms: float, success: bool) -> None:
        entry = PerformanceRecord(
            duration_ms=duration_ms,
            success=success,
            recorded_at=datetime.now(timezone.utc),
        )
        with self._lock:
            records = self._records.get(operation)
            if records is None:
                records = deque(maxlen=self.max_records)
                self._records[operation] = records
            records.append(entry)

    def stats(self, operation: str) -> Optional[OperationStats]:
        with self._lock:
            records = list(self._records.get(operation) or [])
        if not records:
            return None

        durations = sorted(r.duration_ms for r in records)
        success_count = sum(1 for r in records if r.success)
        return OperationStats(
            operation=operation,
            count=len(records),
            success_count=success_count,
            failure_count=len(records) - success_count,
            success_rate=success_count / len(records),
            avg_duration_ms=round(sum(durations) / len(durations)),
            min_duration_ms=durations[0],
            max_duration_ms=durations[-1],
            p50=percentile(durations, 50),
            p95=percentile(durations, 95),
            p99=percentile(durations, 99),
            last_recorded_at=records[-1].recorded_at,
        )

    def all_stats(self) -> List[OperationStats]:
        return [s for s in (self.stats(op) for op in self.operations()) if s is not None]

    def operations(self) -> List[str]:
        with self._lock:
            return list(self._records.keys())

    def records(self, operation: str, count: Optional[int] = None) -> List[PerformanceRecord]:
        with self._lock:
            records = list(self._records.get(operation) or [])
        return records[-count:] if count else records

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def clear_operation(self, operation: str) -> None:
        with self._lock:
            self._records.pop(operation, None)

    def timer(self, operation: str) -> "OperationTimer":
        return OperationTimer(self, operation)


class OperationTimer:
    """Measures one run of an operation and records it once.

    Usable directly (``stop(success)``) or as a context manager, which
    records a failure when the block raises.
    """

    def __init__(self, monitor: PerformanceMonitor, operation: str):
        self.monitor = monitor
        self.operation = operation
        self._start = time.perf_counter()
        self._stopped = False

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._start) * 1000

    def stop(self, success: bool) -> float:
        if self._stopped:
            raise RuntimeError("Timer already stopped")
        self._stopped = True
        duration = self.elapsed_ms()
        self.monitor.record(self.operation, duration, success)
        return duration

    @property
    def stopped(self) -> bool:
        return self._stopped

    def __enter__(self) -> "OperationTimer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self._stopped:
            self.stop(exc_type is None)
