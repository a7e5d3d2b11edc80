"""Repository for cached on-chain verified metrics."""

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from istory.database.models import VerifiedMetrics
from istory.repositories.base_repository import BaseRepository, utcnow
from istory.schemas.verification import VerifiedMetricsPayload


class VerifiedMetricsRepository(BaseRepository[VerifiedMetrics]):

    def __init__(self, session: AsyncSession):
        super().__init__(session, VerifiedMetrics)

    async def upsert(self, story_id: str, metrics: VerifiedMetricsPayload) -> VerifiedMetrics:
        """Write the cache row for a story; repeated writes of the same metrics are no-ops."""
        changes = {**metrics.model_dump(), "updated_at": utcnow()}

        stmt = self.insert().values(story_id=story_id, **changes)
        stmt = stmt.on_conflict_do_update(
            index_elements=[VerifiedMetrics.story_id],
            set_=changes,
        ).returning(VerifiedMetrics)

        try:
            result = await self.session.scalars(
                stmt, execution_options={"populate_existing": True}
            )
            record = result.one()
            await self.session.commit()
        except SQLAlchemyError as e:
            await self._raise_store_error(e, "cache")
        return record
