"""Story metadata enums and API schemas."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from istory.core.exceptions import ValidationError

MAX_STORY_ID_LENGTH = 255


class EmotionalTone(str, Enum):
    REFLECTIVE = "reflective"
    JOYFUL = "joyful"
    ANXIOUS = "anxious"
    HOPEFUL = "hopeful"
    MELANCHOLIC = "melancholic"
    GRATEFUL = "grateful"
    FRUSTRATED = "frustrated"
    PEACEFUL = "peaceful"
    EXCITED = "excited"
    UNCERTAIN = "uncertain"
    NEUTRAL = "neutral"


class LifeDomain(str, Enum):
    WORK = "work"
    RELATIONSHIPS = "relationships"
    HEALTH = "health"
    IDENTITY = "identity"
    GROWTH = "growth"
    CREATIVITY = "creativity"
    SPIRITUALITY = "spirituality"
    FAMILY = "family"
    ADVENTURE = "adventure"
    LEARNING = "learning"
    GENERAL = "general"


class AnalysisStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# Value substituted when a candidate is outside the closed set.
ENUM_FALLBACKS: Dict[Type[Enum], Enum] = {
    EmotionalTone: EmotionalTone.NEUTRAL,
    LifeDomain: LifeDomain.GENERAL,
}

E = TypeVar("E", bound=Enum)


def coerce_enum(enum_cls: Type[E], value: Any) -> E:
    """Return the member whose value equals ``value``, else the fallback.

    Membership is exact: no case folding or trimming.
    """
    if isinstance(value, str):
        for member in enum_cls:
            if member.value == value:
                return member
    return ENUM_FALLBACKS[enum_cls]


def normalize_story_id(value: Any) -> str:
    """Return a story id with surrounding whitespace removed.

    Ids are opaque strings; only the ledger key encoding constrains their
    characters.

    Raises:
        ValidationError: If the value is not a non-empty string that fits the id column
    """
    if not isinstance(value, str):
        raise ValidationError("Invalid story ID")
    story_id = value.strip()
    if not story_id or len(story_id) > MAX_STORY_ID_LENGTH:
        raise ValidationError("Invalid story ID")
    return story_id


class AnalyzeRequest(BaseModel):
    """Body of the analysis endpoint.

    Fields are optional at the schema level so that missing fields are
    reported with the endpoint's own 400 message.
    """

    model_config = ConfigDict(populate_by_name=True)

    story_id: Optional[str] = Field(None, alias="storyId")
    story_text: Optional[str] = Field(None, alias="storyText")


class StoryMetadataResponse(BaseModel):
    """Stored metadata row as returned to clients."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    story_id: str
    themes: List[str]
    emotional_tone: EmotionalTone
    life_domain: LifeDomain
    intensity_score: float
    significance_score: float
    people_mentioned: List[str]
    places_mentioned: List[str]
    time_references: List[str]
    brief_insight: Optional[str] = None
    is_canonical: bool
    analysis_status: AnalysisStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AnalyzeResponse(BaseModel):
    success: bool = True
    metadata: StoryMetadataResponse
    insight: Optional[str] = None


class MetadataEnvelope(BaseModel):
    """Read response; ``warning`` is set when the store is not migrated."""

    metadata: Optional[StoryMetadataResponse] = None
    warning: Optional[str] = None


class CanonicalUpdateRequest(BaseModel):
    is_canonical: bool = Field(..., description="Whether the author marks this story as canonical")
