"""Base repository for rows keyed by a single string id."""

from typing import Any, ClassVar, Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from designcoach.db.base import Base

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """Async access to one table. Subclasses set ``model_class`` and ``pk_field``."""

    model_class: ClassVar[type[Base]]
    pk_field: ClassVar[str]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, pk_value: str, fresh: bool = False) -> T | None:
        """Get a single row by id.

        ``fresh`` re-reads the row even when the session already holds it, so
        conditional UPDATEs issued through this session are visible.
        """
        stmt = select(self.model_class).where(getattr(self.model_class, self.pk_field) == pk_value)
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, **kwargs: Any) -> T:
        row = self.model_class(**kwargs)
        self.session.add(row)
        await self.session.flush()
        return row

    async def list_by_field(self, field: str, value: Any, order_by: str | None = None) -> list[T]:
        stmt = select(self.model_class).where(getattr(self.model_class, field) == value)
        if order_by:
            stmt = stmt.order_by(getattr(self.model_class, order_by))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_by_field(self, field: str, value: Any) -> int:
        stmt = select(func.count()).select_from(self.model_class).where(
            getattr(self.model_class, field) == value
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one())
