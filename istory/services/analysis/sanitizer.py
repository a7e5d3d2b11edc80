"""Sanitization of untrusted story metadata produced by the LLM.

Everything the model returns is treated as untrusted input. ``sanitize``
accepts any decoded JSON value and always produces a complete, valid field
set: wrong types fall back to defaults, numbers are clamped, lists are
capped and enum values outside the closed sets are substituted. Running it
again on its own output changes nothing.
"""

import json
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from istory.schemas.metadata import EmotionalTone, LifeDomain, coerce_enum

MAX_THEMES = 5
MAX_INSIGHT_LENGTH = 500
DEFAULT_SCORE = 0.5


@dataclass(frozen=True)
class SanitizedMetadata:
    """Validated analysis fields, ready to be stored."""

    themes: List[str] = field(default_factory=list)
    emotional_tone: EmotionalTone = EmotionalTone.NEUTRAL
    life_domain: LifeDomain = LifeDomain.GENERAL
    intensity_score: float = DEFAULT_SCORE
    significance_score: float = DEFAULT_SCORE
    people_mentioned: List[str] = field(default_factory=list)
    places_mentioned: List[str] = field(default_factory=list)
    time_references: List[str] = field(default_factory=list)
    brief_insight: Optional[str] = None

    def as_record(self) -> Dict[str, Any]:
        """Plain column values for the metadata store."""
        record = asdict(self)
        record["emotional_tone"] = self.emotional_tone.value
        record["life_domain"] = self.life_domain.value
        return record


def to_display_string(value: Any) -> str:
    """Stringify a decoded JSON value the way the journaling client renders it.

    ``None`` becomes ``"null"``, booleans are lowercase, integral floats
    drop their fraction and arrays are comma-joined with null entries left
    empty. Objects are rendered as compact JSON.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, list):
        return ",".join("" if item is None else to_display_string(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return str(value)


def _is_real_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and not math.isnan(value)


def sanitize_score(value: Any) -> float:
    """Clamp a numeric score into [0, 1]; anything non-numeric becomes 0.5."""
    if not _is_real_number(value):
        return DEFAULT_SCORE
    return float(max(0.0, min(1.0, value)))


def sanitize_themes(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []

    themes = []
    for item in value:
        if item is None:
            continue
        theme = to_display_string(item).lower()
        if not theme:
            continue
        themes.append(theme)
        if len(themes) == MAX_THEMES:
            break
    return themes


def sanitize_string_list(value: Any) -> List[str]:
    """Stringify every entry of a list; no entries are dropped."""
    if not isinstance(value, list):
        return []
    return [to_display_string(item) for item in value]


def sanitize_insight(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value[:MAX_INSIGHT_LENGTH]


def sanitize(candidate: Any) -> SanitizedMetadata:
    """Turn an untrusted candidate into a valid metadata field set.

    Never raises. A candidate that is not a JSON object is treated as an
    empty object, so every field takes its default.
    """
    if not isinstance(candidate, dict):
        candidate = {}

    return SanitizedMetadata(
        themes=sanitize_themes(candidate.get("themes")),
        emotional_tone=coerce_enum(EmotionalTone, candidate.get("emotional_tone")),
        life_domain=coerce_enum(LifeDomain, candidate.get("life_domain")),
        intensity_score=sanitize_score(candidate.get("intensity_score")),
        significance_score=sanitize_score(candidate.get("significance_score")),
        people_mentioned=sanitize_string_list(candidate.get("people_mentioned")),
        places_mentioned=sanitize_string_list(candidate.get("places_mentioned")),
        time_references=sanitize_string_list(candidate.get("time_references")),
        brief_insight=sanitize_insight(candidate.get("brief_insight")),
    )
