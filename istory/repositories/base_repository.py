from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from istory.core.exceptions import StoreError, StoreErrorKind
from istory.utils.logging import get_logger

ModelType = TypeVar("ModelType")

LOGGER = get_logger(__name__)

_MISSING_TABLE_MARKERS = ("does not exist", "no such table", "undefinedtable", "42p01")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_missing_table_error(error: Exception) -> bool:
    """Whether a driver error means the table has not been created."""
    orig = getattr(error, "orig", None)
    parts = [str(error), type(orig).__name__ if orig is not None else ""]
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate:
        parts.append(str(sqlstate))
    text = " ".join(parts).lower()
    return any(marker in text for marker in _MISSING_TABLE_MARKERS)


class BaseRepository(Generic[ModelType]):
    """Base repository implementing common operations.

    Driver failures are logged and re-raised as ``StoreError`` after the
    session is rolled back, so the session stays usable for the caller.
    """

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        self.session = session
        self.model = model
        self.logger = LOGGER

    @property
    def table_name(self) -> str:
        return self.model.__tablename__

    def insert(self):
        """Dialect-specific INSERT supporting ON CONFLICT for this model."""
        dialect = self.session.bind.dialect.name if self.session.bind is not None else "postgresql"
        if dialect == "sqlite":
            return sqlite.insert(self.model)
        return postgresql.insert(self.model)

    async def _raise_store_error(
        self, error: SQLAlchemyError, action: str, message: Optional[str] = None
    ) -> None:
        await self.session.rollback()

        if is_missing_table_error(error):
            self.logger.warning(
                f"Table '{self.table_name}' is missing while trying to {action}",
                extra={"table": self.table_name},
            )
            raise StoreError(
                f"Database table '{self.table_name}' not found. Please run the migration.",
                kind=StoreErrorKind.SCHEMA_MISSING,
                table=self.table_name,
                original_error=error,
            ) from error

        self.logger.error(
            f"Error trying to {action} {self.model.__name__}: {str(error)}",
            exc_info=True
        )
        raise StoreError(
            message or f"Failed to {action} {self.table_name}",
            kind=StoreErrorKind.UNAVAILABLE,
            table=self.table_name,
            original_error=error,
        ) from error

    async def get_by_story_id(self, story_id: str) -> Optional[ModelType]:
        try:
            query = select(self.model).where(self.model.story_id == story_id)
            result = await self.session.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            await self._raise_store_error(e, "read")

    async def list_recent(self, limit: int = 10, order_column: str = "updated_at") -> List[ModelType]:
        """Most recently touched rows first."""
        try:
            query = (
                select(self.model)
                .order_by(getattr(self.model, order_column).desc())
                .limit(limit)
            )
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            await self._raise_store_error(e, "list")

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        try:
            query = select(func.count()).select_from(self.model)
            if filters:
                for field, value in filters.items():
                    if hasattr(self.model, field):
                        query = query.where(getattr(self.model, field) == value)

            result = await self.session.execute(query)
            return result.scalar_one()
        except SQLAlchemyError as e:
            await self._raise_store_error(e, "count")

    async def count_by(self, column_name: str) -> Dict[str, int]:
        """Row counts grouped by the values of one column."""
        column = getattr(self.model, column_name)
        try:
            query = select(column, func.count()).group_by(column)
            result = await self.session.execute(query)
            return {str(value): total for value, total in result.all()}
        except SQLAlchemyError as e:
            await self._raise_store_error(e, "count")
