"""
Saga profile repository.

Session-level conditional spends and story updates. Units (training),
battle (AP) and tavern (consumables) call these inside their own
transactions; zero affected rows always means "insufficient" and leaves
the row unchanged.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert

from src.database.models import SagaProfile
from src.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class SagaProfileRepository(BaseRepository[SagaProfile]):
    async def upsert_and_lock(self, session: AsyncSession, user_id: int) -> SagaProfile:
        """Create the default profile if missing, then lock it `FOR UPDATE`."""
        await session.execute(
            pg_insert(SagaProfile)
            .values(user_id=user_id)
            .on_conflict_do_nothing(index_elements=[SagaProfile.user_id])
        )
        stmt = (
            select(SagaProfile)
            .where(SagaProfile.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return (await session.execute(stmt)).scalar_one()

    async def spend_action_points(self, session: AsyncSession, user_id: int, amount: int) -> bool:
        result = await session.execute(
            update(SagaProfile)
            .where(SagaProfile.user_id == user_id, SagaProfile.current_ap >= amount)
            .values(current_ap=SagaProfile.current_ap - amount)
        )
        return result.rowcount > 0

    async def spend_training_points(self, session: AsyncSession, user_id: int, amount: int) -> bool:
        result = await session.execute(
            update(SagaProfile)
            .where(SagaProfile.user_id == user_id, SagaProfile.current_tp >= amount)
            .values(current_tp=SagaProfile.current_tp - amount)
        )
        return result.rowcount > 0

    async def advance_story_progress(self, session: AsyncSession, user_id: int, new_progress: int) -> bool:
        """Raise story progress to `new_progress`; never lowers it."""
        result = await session.execute(
            update(SagaProfile)
            .where(SagaProfile.user_id == user_id, SagaProfile.story_progress < new_progress)
            .values(story_progress=new_progress)
        )
        if result.rowcount:
            self.log.info(
                "Story progress advanced",
                extra={"user_id": user_id, "story_progress": new_progress},
            )
        return result.rowcount > 0
