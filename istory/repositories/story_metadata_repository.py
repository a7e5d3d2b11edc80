"""Repository for story analysis metadata."""

from typing import Any, Dict

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from istory.database.models import StoryMetadata
from istory.repositories.base_repository import BaseRepository, utcnow
from istory.schemas.metadata import AnalysisStatus

# Columns a caller may write; identity and timestamps are managed here.
WRITABLE_COLUMNS = frozenset({
    "themes",
    "emotional_tone",
    "life_domain",
    "intensity_score",
    "significance_score",
    "people_mentioned",
    "places_mentioned",
    "time_references",
    "brief_insight",
    "is_canonical",
    "analysis_status",
})


class StoryMetadataRepository(BaseRepository[StoryMetadata]):
    """Keyed store of one metadata row per story."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, StoryMetadata)

    async def upsert(self, story_id: str, fields: Dict[str, Any]) -> StoryMetadata:
        """Insert or update the row for ``story_id`` in one statement.

        Only the supplied fields are overwritten on conflict; everything else,
        such as ``is_canonical``, keeps its stored value. ``updated_at`` is
        refreshed on every call.

        Returns:
            The full stored row after the write

        Raises:
            StoreError: SCHEMA_MISSING if the table is absent, UNAVAILABLE otherwise
        """
        unknown = set(fields) - WRITABLE_COLUMNS
        if unknown:
            raise ValueError(f"Unknown metadata fields: {sorted(unknown)}")

        now = utcnow()
        changes = {**fields, "updated_at": now}

        stmt = self.insert().values(story_id=story_id, created_at=now, **changes)
        stmt = stmt.on_conflict_do_update(
            index_elements=[StoryMetadata.story_id],
            set_=changes,
        ).returning(StoryMetadata)

        try:
            result = await self.session.scalars(
                stmt, execution_options={"populate_existing": True}
            )
            record = result.one()
            await self.session.commit()
        except SQLAlchemyError as e:
            await self._raise_store_error(e, "save", "Failed to save metadata to database")

        self.logger.debug(
            "Upserted story metadata",
            extra={"story_id": story_id, "fields": sorted(fields)},
        )
        return record

    async def set_status(self, story_id: str, status: AnalysisStatus) -> bool:
        """Move an existing row to ``status``; returns False if there is no row."""
        stmt = (
            update(StoryMetadata)
            .where(StoryMetadata.story_id == story_id)
            .values(analysis_status=status.value, updated_at=utcnow())
        )
        try:
            result = await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self._raise_store_error(e, "update")
        return result.rowcount > 0

    async def set_canonical(self, story_id: str, is_canonical: bool) -> StoryMetadata:
        """Toggle the canonical flag, creating a pending row if none exists."""
        return await self.upsert(story_id, {"is_canonical": is_canonical})
