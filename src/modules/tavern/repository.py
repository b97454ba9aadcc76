"""
Tavern repositories: fame rows and per-user rotations.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert

from src.database.models import TavernFame, TavernUserRotation
from src.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


def rerolls_used_on(row: Optional[TavernFame], today: date) -> int:
    """Rerolls spent today; a stale `last_reroll` counts as zero."""
    if row is None or row.last_reroll != today:
        return 0
    return row.daily_rerolls


class TavernFameRepository(BaseRepository[TavernFame]):
    async def ensure(self, session: AsyncSession, user_id: int) -> None:
        await session.execute(
            pg_insert(TavernFame).values(user_id=user_id).on_conflict_do_nothing(index_elements=[TavernFame.user_id])
        )

    async def get_or_create(self, session: AsyncSession, user_id: int, *, for_update: bool = False) -> TavernFame:
        await self.ensure(session, user_id)
        stmt = select(TavernFame).where(TavernFame.user_id == user_id).execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()
        return (await session.execute(stmt)).scalar_one()

    async def add_fame(self, session: AsyncSession, user_id: int, amount: int) -> int:
        stmt = (
            pg_insert(TavernFame)
            .values(user_id=user_id, fame=amount)
            .on_conflict_do_update(
                index_elements=[TavernFame.user_id],
                set_={"fame": TavernFame.fame + amount},
            )
            .returning(TavernFame.fame)
        )
        return int((await session.execute(stmt)).scalar_one())


class TavernRotationRepository(BaseRepository[TavernUserRotation]):
    async def get_for_day(self, session: AsyncSession, user_id: int, day: date) -> Optional[List[int]]:
        row = await self.get(session, user_id)
        if row is None or row.day != day:
            return None
        return list(row.rotation)

    async def upsert(self, session: AsyncSession, user_id: int, rotation: Sequence[int], day: date) -> None:
        values = list(rotation)
        stmt = pg_insert(TavernUserRotation).values(user_id=user_id, rotation=values, day=day)
        stmt = stmt.on_conflict_do_update(
            index_elements=[TavernUserRotation.user_id],
            set_={"rotation": values, "day": day, "generated_at": func.now()},
        )
        await session.execute(stmt)
