"""
Human contract repositories: defeat encounters and drafted contracts.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert

from src.database.models import DraftedHumanContract, HumanEncounter
from src.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class HumanEncounterRepository(BaseRepository[HumanEncounter]):
    async def record_defeat(self, session: AsyncSession, user_id: int, unit_id: int) -> int:
        """Add one defeat; returns the new total."""
        stmt = pg_insert(HumanEncounter).values(user_id=user_id, unit_id=unit_id, defeats=1)
        stmt = stmt.on_conflict_do_update(
            index_elements=[HumanEncounter.user_id, HumanEncounter.unit_id],
            set_={"defeats": HumanEncounter.defeats + 1, "last_defeated_at": func.now()},
        ).returning(HumanEncounter.defeats)
        return int((await session.execute(stmt)).scalar_one())

    async def get_defeats(self, session: AsyncSession, user_id: int, unit_id: int) -> int:
        defeats = await session.scalar(
            select(HumanEncounter.defeats).where(
                HumanEncounter.user_id == user_id, HumanEncounter.unit_id == unit_id
            )
        )
        return int(defeats or 0)


class DraftedContractRepository(BaseRepository[DraftedHumanContract]):
    async def get_open(
        self, session: AsyncSession, user_id: int, unit_id: int, *, for_update: bool = False
    ) -> Optional[DraftedHumanContract]:
        return await self.find_one_where(
            session,
            DraftedHumanContract.user_id == user_id,
            DraftedHumanContract.unit_id == unit_id,
            DraftedHumanContract.consumed.is_(False),
            for_update=for_update,
        )

    async def list_open(self, session: AsyncSession, user_id: int) -> List[DraftedHumanContract]:
        """Non-consumed drafts, newest first."""
        return await self.find_many_where(
            session,
            DraftedHumanContract.user_id == user_id,
            DraftedHumanContract.consumed.is_(False),
            order_by=[DraftedHumanContract.drafted_at.desc()],
        )
