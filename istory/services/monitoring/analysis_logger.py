"""Structured log of story analysis events.

Entries are kept in a bounded ring buffer for the admin stats endpoint and
mirrored to the module logger.
"""

import threading
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

from istory.utils.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_MAX_ENTRIES = 1000


@dataclass
class AnalysisLogEntry:
    timestamp: datetime
    level: str  # info | warn | error
    story_id: str
    action: str
    duration_ms: Optional[float] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return {key: value for key, value in data.items() if value not in (None, {})}


class AnalysisLogBuffer:
    """Keeps the most recent ``max_entries`` analysis log entries."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        self._entries: Deque[AnalysisLogEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    @property
    def max_entries(self) -> int:
        return self._entries.maxlen

    def _add(
        self,
        level: str,
        story_id: str,
        action: str,
        duration_ms: Optional[float] = None,
        error: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AnalysisLogEntry:
        entry = AnalysisLogEntry(
            timestamp=datetime.now(timezone.utc),
            level=level,
            story_id=story_id,
            action=action,
            duration_ms=duration_ms,
            error=error,
            metadata=dict(metadata or {}),
        )
        with self._lock:
            self._entries.append(entry)

        message = f"[analysis] {story_id} {action}"
        if duration_ms is not None:
            message += f" {duration_ms:.0f}ms"
        if error:
            message += f" error={error}"
        extra = {"story_id": story_id, "action": action, **entry.metadata}

        if level == "error":
            LOGGER.error(message, extra={"analysis": extra})
        elif level == "warn":
            LOGGER.warning(message, extra={"analysis": extra})
        else:
            LOGGER.info(message, extra={"analysis": extra})
        return entry

    def info(self, story_id: str, action: str, metadata: Optional[Dict[str, Any]] = None) -> AnalysisLogEntry:
        return self._add("info", story_id, action, metadata=metadata)

    def warn(self, story_id: str, action: str, metadata: Optional[Dict[str, Any]] = None) -> AnalysisLogEntry:
        return self._add("warn", story_id, action, metadata=metadata)

    def error(
        self,
        story_id: str,
        action: str,
        error: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AnalysisLogEntry:
        return self._add("error", story_id, action, error=error, metadata=metadata)

    def timed(
        self,
        story_id: str,
        action: str,
        duration_ms: float,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AnalysisLogEntry:
        return self._add("info", story_id, action, duration_ms=duration_ms, metadata=metadata)

    def recent(self, count: int = 100) -> List[AnalysisLogEntry]:
        """The last ``count`` entries, oldest first."""
        with self._lock:
            entries = list(self._entries)
        return entries[-count:] if count > 0 else []

    def errors(self, count: int = 50) -> List[AnalysisLogEntry]:
        with self._lock:
            entries = [entry for entry in self._entries if entry.level == "error"]
        return entries[-count:] if count > 0 else []

    def for_story(self, story_id: str) -> List[AnalysisLogEntry]:
        with self._lock:
            return [entry for entry in self._entries if entry.story_id == story_id]

    def count(self) -> int:
        return len(self._entries)

    def counts_by_level(self) -> Dict[str, int]:
        counts = {"info": 0, "warn": 0, "error": 0}
        with self._lock:
            for entry in self._entries:
                counts[entry.level] = counts.get(entry.level, 0) + 1
        return counts

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
