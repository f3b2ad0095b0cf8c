"""Base repository with session and transaction handling.

Repositories share one ``AsyncSession``. Writes are flushed immediately
and committed right away unless they run inside ``transaction()``, in
which case the outermost block commits or rolls back.

Usage:
    class WidgetRepository(BaseRepository):
        async def save(self, row: Widget) -> None:
            self.db.add(row)
            await self.persist()

    repo = WidgetRepository(db_session)
    async with repo.transaction():
        await repo.save(first)
        await repo.save(second)
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from riskledger.core.logging import get_logger
from riskledger.db.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)

logger = get_logger(__name__)


class BaseRepository:
    """Shared plumbing for SQLAlchemy repositories.

    Attributes:
        db: The database session
    """

    def __init__(self, db: AsyncSession):
        """Initialize repository with database session.

        Args:
            db: Async SQLAlchemy session
        """
        self.db = db
        self._transaction_depth = 0

    @property
    def in_transaction(self) -> bool:
        return self._transaction_depth > 0

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Group writes into a single commit.

        Nested blocks join the outermost one. Any exception rolls back
        everything written inside the block.
        """
        if self._transaction_depth:
            self._transaction_depth += 1
            try:
                yield
            finally:
                self._transaction_depth -= 1
            return

        self._transaction_depth = 1
        try:
            yield
            await self.db.commit()
        except BaseException:
            await self.db.rollback()
            logger.debug("transaction_rolled_back")
            raise
        finally:
            self._transaction_depth = 0

    async def persist(self) -> None:
        """Flush pending changes, committing unless inside ``transaction()``."""
        if self.in_transaction:
            await self.db.flush()
            return
        try:
            await self.db.flush()
            await self.db.commit()
        except BaseException:
            await self.db.rollback()
            raise

    async def fetch_one(self, model: type[ModelType], pk: Any) -> ModelType | None:
        """Load a row by primary key, bypassing stale identity-map state."""
        stmt = (
            select(model)
            .where(model.__mapper__.primary_key[0] == pk)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def fetch_all(self, stmt: Select) -> list[Any]:
        result = await self.db.execute(stmt.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def count_where(self, model: type[ModelType], *conditions: Any) -> int:
        stmt = select(func.count()).select_from(model).where(*conditions)
        result = await self.db.execute(stmt)
        return result.scalar() or 0
