"""Repository for verification dispatch logs."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from istory.core.exceptions import DispatchRejectedError, DispatchRejection
from istory.database.models import VerificationLog
from istory.repositories.base_repository import BaseRepository, utcnow
from istory.schemas.verification import DispatchOutcome, DispatchStatus, VerificationStatus


class VerificationLogRepository(BaseRepository[VerificationLog]):
    """Verification logs, with at most one pending row per story."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, VerificationLog)

    async def get_pending(self, story_id: str) -> Optional[VerificationLog]:
        query = (
            select(VerificationLog)
            .where(VerificationLog.story_id == story_id)
            .where(VerificationLog.status == VerificationStatus.PENDING.value)
        )
        try:
            result = await self.session.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            await self._raise_store_error(e, "read")

    async def list_pending(self, limit: int = 500) -> List[VerificationLog]:
        query = (
            select(VerificationLog)
            .where(VerificationLog.status == VerificationStatus.PENDING.value)
            .order_by(VerificationLog.created_at)
            .limit(limit)
        )
        try:
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            await self._raise_store_error(e, "list")

    async def create_pending(self, story_id: str, workflow_run_id: str) -> VerificationLog:
        """Insert the pending log for a new dispatch.

        The partial unique index on pending rows makes this the atomic guard
        against concurrent dispatches of the same story.

        Raises:
            DispatchRejectedError: DISPATCH_IN_PROGRESS if another pending row won
            StoreError: On any other database failure
        """
        now = utcnow()
        log = VerificationLog(
            story_id=story_id,
            workflow_run_id=workflow_run_id,
            status=VerificationStatus.PENDING.value,
            dispatch_status=DispatchStatus.QUEUED.value,
            dispatch_attempts=0,
            created_at=now,
            updated_at=now,
        )
        self.session.add(log)
        try:
            await self.session.flush()
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            self.logger.info(
                "Concurrent dispatch lost the pending-log race",
                extra={"story_id": story_id, "workflow_run_id": workflow_run_id},
            )
            raise DispatchRejectedError(
                "Verification already in progress",
                kind=DispatchRejection.DISPATCH_IN_PROGRESS,
            ) from e
        except SQLAlchemyError as e:
            await self._raise_store_error(e, "start verification in")
        return log

    async def expire_stale(self, cutoff: datetime, story_id: Optional[str] = None) -> int:
        """Mark pending logs created before ``cutoff`` as expired."""
        stmt = (
            update(VerificationLog)
            .where(VerificationLog.status == VerificationStatus.PENDING.value)
            .where(VerificationLog.created_at < cutoff)
            .values(status=VerificationStatus.EXPIRED.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if story_id is not None:
            stmt = stmt.where(VerificationLog.story_id == story_id)
        try:
            result = await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self._raise_store_error(e, "expire")

        if result.rowcount:
            self.logger.info(
                f"Expired {result.rowcount} stale pending verification log(s)",
                extra={"story_id": story_id, "cutoff": cutoff.isoformat()},
            )
        return result.rowcount

    async def mark_completed(self, story_id: str) -> int:
        stmt = (
            update(VerificationLog)
            .where(VerificationLog.story_id == story_id)
            .where(VerificationLog.status == VerificationStatus.PENDING.value)
            .values(status=VerificationStatus.COMPLETED.value, updated_at=utcnow())
        )
        try:
            result = await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self._raise_store_error(e, "complete")
        return result.rowcount

    async def record_dispatch_outcome(self, workflow_run_id: str, outcome: DispatchOutcome) -> bool:
        stmt = (
            update(VerificationLog)
            .where(VerificationLog.workflow_run_id == workflow_run_id)
            .values(
                dispatch_status=outcome.status.value,
                dispatch_attempts=outcome.attempts,
                dispatch_error=outcome.error,
                updated_at=utcnow(),
            )
        )
        try:
            result = await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self._raise_store_error(e, "record dispatch outcome in")
        return result.rowcount > 0
