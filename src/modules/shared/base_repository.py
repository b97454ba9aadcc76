"""
Base Repository Pattern

Purpose
-------
Type-safe, generic repository over SQLAlchemy 2.0 async sessions. Gives
every service the same primary-key lookups, row locks and filtered
queries without repeating boilerplate.

LES 2025 Compliance
-------------------
- No transaction management (callers pass the session)
- Pessimistic locking via `get_for_update` / `for_update=True`
- Structured debug logging for every query
- No business logic

Usage
-----
    class PlayerUnitRepository(BaseRepository[PlayerUnit]):
        async def count_party(self, session, user_id: int) -> int:
            return await self.count(
                session, PlayerUnit.user_id == user_id, PlayerUnit.is_in_party.is_(True)
            )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy import func, inspect, select

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Generic base repository.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger
        self._pk = inspect(model_class).primary_key[0]

    async def get(self, session: AsyncSession, id_value: Any) -> Optional[T]:
        """Single record by primary key (no lock)."""
        instance = await session.get(self.model_class, id_value)
        self.log.debug(
            f"Repository.get: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__, "id": id_value, "found": instance is not None},
        )
        return instance

    async def get_for_update(self, session: AsyncSession, id_value: Any) -> Optional[T]:
        """Single record by primary key with SELECT ... FOR UPDATE."""
        stmt = select(self.model_class).where(self._pk == id_value).with_for_update()
        instance = (await session.execute(stmt)).scalar_one_or_none()
        self.log.debug(
            f"Repository.get_for_update: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "id": id_value,
                "found": instance is not None,
                "locked": True,
            },
        )
        return instance

    async def get_many(self, session: AsyncSession, id_values: List[Any]) -> List[T]:
        if not id_values:
            return []
        stmt = select(self.model_class).where(self._pk.in_(id_values))
        instances = list((await session.execute(stmt)).scalars().all())
        self.log.debug(
            f"Repository.get_many: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "requested_count": len(id_values),
                "found_count": len(instances),
            },
        )
        return instances

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        for_update: bool = False,
    ) -> Optional[T]:
        stmt = select(self.model_class).where(*conditions)
        if for_update:
            stmt = stmt.with_for_update()
        instance = (await session.execute(stmt)).scalar_one_or_none()
        self.log.debug(
            f"Repository.find_one_where: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__, "found": instance is not None, "locked": for_update},
        )
        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[List[Any]] = None,
        for_update: bool = False,
        limit: Optional[int] = None,
    ) -> List[T]:
        stmt = select(self.model_class).where(*conditions)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if for_update:
            stmt = stmt.with_for_update()
        if limit is not None:
            stmt = stmt.limit(limit)
        instances = list((await session.execute(stmt)).scalars().all())
        self.log.debug(
            f"Repository.find_many_where: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "found_count": len(instances),
                "locked": for_update,
                "limit": limit,
            },
        )
        return instances

    async def exists(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> bool:
        return await self.count(session, *conditions) > 0

    async def count(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        count = (await session.execute(stmt)).scalar_one()
        self.log.debug(
            f"Repository.count: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__, "count": count},
        )
        return int(count)

    def add(self, session: AsyncSession, instance: T) -> T:
        session.add(instance)
        return instance

    async def delete(self, session: AsyncSession, instance: T) -> None:
        await session.delete(instance)

    async def flush(self, session: AsyncSession) -> None:
        await session.flush()
