"""Read-only access to journaling stories."""

from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from istory.database.models import Story, StoryMetadata
from istory.repositories.base_repository import BaseRepository


class StoryRepository(BaseRepository[Story]):

    def __init__(self, session: AsyncSession):
        super().__init__(session, Story)

    async def get_by_id(self, story_id: str) -> Optional[Story]:
        try:
            return await self.session.get(Story, story_id)
        except SQLAlchemyError as e:
            await self._raise_store_error(e, "read")

    async def list_missing_metadata(self, min_content_length: int, limit: int) -> List[Story]:
        """Newest stories with enough content that have no metadata row yet."""
        query = (
            select(Story)
            .outerjoin(StoryMetadata, StoryMetadata.story_id == Story.id)
            .where(StoryMetadata.id.is_(None))
            .where(func.length(Story.content) > min_content_length)
            .order_by(Story.created_at.desc())
            .limit(limit)
        )
        try:
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            await self._raise_store_error(e, "list")
