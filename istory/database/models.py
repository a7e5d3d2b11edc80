"""SQLAlchemy models for stories, analysis metadata and verification state."""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    false,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from istory.core.database import Base

# Story ids are opaque strings.
StoryId = String(255)
JSONList = JSON().with_variant(JSONB(), "postgresql")


class Story(Base):
    """Story written by a user in the journaling app.

    The table is owned by the journaling app; this service only reads it.
    """

    __tablename__ = "stories"

    id: Mapped[str] = mapped_column(StoryId, primary_key=True)
    title: Mapped[Optional[str]] = mapped_column(Text)
    content: Mapped[Optional[str]] = mapped_column(Text)
    author_id: Mapped[Optional[str]] = mapped_column(StoryId)
    author_wallet: Mapped[Optional[str]] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class StoryMetadata(Base):
    """Structured analysis of a story, one row per story."""

    __tablename__ = "story_metadata"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    story_id: Mapped[str] = mapped_column(StoryId, nullable=False, unique=True, index=True)

    themes: Mapped[List[str]] = mapped_column(JSONList, nullable=False, default=list)
    emotional_tone: Mapped[str] = mapped_column(String(32), nullable=False, default="neutral")
    life_domain: Mapped[str] = mapped_column(String(32), nullable=False, default="general")
    intensity_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)
    significance_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)
    people_mentioned: Mapped[List[str]] = mapped_column(JSONList, nullable=False, default=list)
    places_mentioned: Mapped[List[str]] = mapped_column(JSONList, nullable=False, default=list)
    time_references: Mapped[List[str]] = mapped_column(JSONList, nullable=False, default=list)
    brief_insight: Mapped[Optional[str]] = mapped_column(Text)

    is_canonical: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    analysis_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="pending", server_default="pending", index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class VerificationLog(Base):
    """One verification dispatch towards the consensus compute network."""

    __tablename__ = "verification_logs"
    __table_args__ = (
        # At most one pending dispatch per story; the losing insert of a race fails here.
        Index(
            "uq_verification_logs_pending_story",
            "story_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    story_id: Mapped[str] = mapped_column(StoryId, nullable=False, index=True)
    workflow_run_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")

    dispatch_status: Mapped[str] = mapped_column(String(16), nullable=False, default="queued")
    dispatch_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    dispatch_error: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class VerifiedMetrics(Base):
    """Cached copy of the on-chain verified metrics of a story."""

    __tablename__ = "verified_metrics"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    story_id: Mapped[str] = mapped_column(StoryId, nullable=False, unique=True, index=True)

    significance_score: Mapped[int] = mapped_column(Integer, nullable=False)
    emotional_depth: Mapped[int] = mapped_column(Integer, nullable=False)
    quality_score: Mapped[int] = mapped_column(Integer, nullable=False)
    word_count: Mapped[int] = mapped_column(Integer, nullable=False)
    verified_themes: Mapped[List[str]] = mapped_column(JSONList, nullable=False, default=list)
    cre_attestation_id: Mapped[Optional[str]] = mapped_column(String(66))
    # Unix seconds as reported by the contract.
    on_chain_verified_at: Mapped[Optional[int]] = mapped_column(BigInteger)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
