"""Base repository for single-table lookups by primary key."""

from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stepup_api.models.orm.base import Base

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """Repository bound to one ORM model. Writes flush; callers commit."""

    model: type[T]

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _by_id(self, id: UUID, lock: bool) -> T | None:
        query = select(self.model).where(self.model.id == id)
        if lock:
            # Re-read locked rows even if the identity map already holds them
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_id(self, id: UUID) -> T | None:
        """Plain read, no lock."""
        return await self._by_id(id, lock=False)

    async def get_for_update(self, id: UUID) -> T | None:
        """Read and lock the row (``SELECT ... FOR UPDATE``) until the transaction ends.

        Args:
            id: Record UUID

        Returns:
            Record or None if not found
        """
        return await self._by_id(id, lock=True)

    async def create(self, **kwargs: Any) -> T:
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance
