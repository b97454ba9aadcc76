"""
Task and quest repositories.

Period boundaries use the database clock (`date_trunc('day'|'week',
now())`) so assignment agrees across processes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

from sqlalchemy import func, select, update

from src.database.models import PlayerQuest, PlayerTask, Quest, QuestReward, Task
from src.database.models.enums import PlayerQuestStatus, TaskType
from src.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

_PERIOD_UNIT = {TaskType.DAILY: "day", TaskType.WEEKLY: "week"}


def period_start(task_type: TaskType):
    """SQL expression for the start of the current day / ISO week."""
    return func.date_trunc(_PERIOD_UNIT[task_type], func.now())


class PlayerTaskRepository(BaseRepository[PlayerTask]):
    async def count_assigned_this_period(self, session: AsyncSession, user_id: int, task_type: TaskType) -> int:
        stmt = (
            select(func.count())
            .select_from(PlayerTask)
            .join(Task, Task.task_id == PlayerTask.task_id)
            .where(
                PlayerTask.user_id == user_id,
                Task.task_type == task_type,
                PlayerTask.assigned_at >= period_start(task_type),
            )
        )
        return int((await session.execute(stmt)).scalar_one())

    async def assign_random(self, session: AsyncSession, user_id: int, task_type: TaskType, count: int) -> int:
        """Assign `count` distinct random templates of a type; returns rows added."""
        template_ids = (
            await session.scalars(
                select(Task.task_id).where(Task.task_type == task_type).order_by(func.random()).limit(count)
            )
        ).all()
        for task_id in template_ids:
            session.add(PlayerTask(user_id=user_id, task_id=task_id, progress=0, is_completed=False))
        await session.flush()
        return len(template_ids)

    async def list_current(self, session: AsyncSession, user_id: int) -> List[Tuple[PlayerTask, Task]]:
        """Unclaimed tasks assigned in the current period of their type."""
        in_period = (
            ((Task.task_type == TaskType.DAILY) & (PlayerTask.assigned_at >= period_start(TaskType.DAILY)))
            | ((Task.task_type == TaskType.WEEKLY) & (PlayerTask.assigned_at >= period_start(TaskType.WEEKLY)))
        )
        stmt = (
            select(PlayerTask, Task)
            .join(Task, Task.task_id == PlayerTask.task_id)
            .where(PlayerTask.user_id == user_id, PlayerTask.claimed_at.is_(None), in_period)
            .order_by(Task.task_type, Task.title)
        )
        return [(row[0], row[1]) for row in (await session.execute(stmt)).all()]

    async def increment_progress(
        self, session: AsyncSession, user_id: int, objective_key: str, increment: int
    ) -> List[int]:
        """Raise progress on matching incomplete tasks (clamped at goal); returns touched ids."""
        stmt = (
            update(PlayerTask)
            .where(
                PlayerTask.task_id == Task.task_id,
                Task.objective_key == objective_key,
                PlayerTask.user_id == user_id,
                PlayerTask.is_completed.is_(False),
            )
            .values(progress=func.least(Task.objective_goal, PlayerTask.progress + increment))
            .returning(PlayerTask.player_task_id)
            .execution_options(synchronize_session=False)
        )
        return list((await session.scalars(stmt)).all())

    async def mark_reached_completed(self, session: AsyncSession, player_task_ids: Sequence[int]) -> int:
        """Complete the given tasks whose progress reached the goal."""
        if not player_task_ids:
            return 0
        stmt = (
            update(PlayerTask)
            .where(
                PlayerTask.task_id == Task.task_id,
                PlayerTask.player_task_id.in_(list(player_task_ids)),
                PlayerTask.is_completed.is_(False),
                PlayerTask.progress >= Task.objective_goal,
            )
            .values(is_completed=True, completed_at=func.now())
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return int(result.rowcount or 0)

    async def lock_claimable(
        self, session: AsyncSession, user_id: int, player_task_id: int
    ) -> Optional[Tuple[PlayerTask, Task]]:
        stmt = (
            select(PlayerTask, Task)
            .join(Task, Task.task_id == PlayerTask.task_id)
            .where(
                PlayerTask.player_task_id == player_task_id,
                PlayerTask.user_id == user_id,
                PlayerTask.is_completed.is_(True),
                PlayerTask.claimed_at.is_(None),
            )
            .with_for_update(of=PlayerTask)
        )
        row = (await session.execute(stmt)).first()
        return (row[0], row[1]) if row is not None else None


class PlayerQuestRepository(BaseRepository[PlayerQuest]):
    async def count_offered(self, session: AsyncSession, user_id: int) -> int:
        return await self.count(
            session, PlayerQuest.user_id == user_id, PlayerQuest.status == PlayerQuestStatus.OFFERED
        )

    async def offer_new(self, session: AsyncSession, user_id: int, limit: int) -> int:
        """Offer up to `limit` random quests this user has never seen."""
        seen = select(PlayerQuest.quest_id).where(PlayerQuest.user_id == user_id)
        quest_ids = (
            await session.scalars(
                select(Quest.quest_id).where(Quest.quest_id.not_in(seen)).order_by(func.random()).limit(limit)
            )
        ).all()
        for quest_id in quest_ids:
            session.add(PlayerQuest(user_id=user_id, quest_id=quest_id, status=PlayerQuestStatus.OFFERED))
        await session.flush()
        return len(quest_ids)

    async def list_with_quest(
        self, session: AsyncSession, user_id: int, status: PlayerQuestStatus
    ) -> List[Tuple[PlayerQuest, Quest]]:
        stmt = (
            select(PlayerQuest, Quest)
            .join(Quest, Quest.quest_id == PlayerQuest.quest_id)
            .where(PlayerQuest.user_id == user_id, PlayerQuest.status == status)
            .order_by(PlayerQuest.player_quest_id)
        )
        return [(row[0], row[1]) for row in (await session.execute(stmt)).all()]

    async def lock_owned_with_status(
        self, session: AsyncSession, user_id: int, player_quest_id: int, status: PlayerQuestStatus
    ) -> Optional[Tuple[PlayerQuest, Quest]]:
        stmt = (
            select(PlayerQuest, Quest)
            .join(Quest, Quest.quest_id == PlayerQuest.quest_id)
            .where(
                PlayerQuest.player_quest_id == player_quest_id,
                PlayerQuest.user_id == user_id,
                PlayerQuest.status == status,
            )
            .with_for_update(of=PlayerQuest)
        )
        row = (await session.execute(stmt)).first()
        return (row[0], row[1]) if row is not None else None


class QuestRewardRepository(BaseRepository[QuestReward]):
    async def for_quests(self, session: AsyncSession, quest_ids: Sequence[int]) -> List[QuestReward]:
        if not quest_ids:
            return []
        return await self.find_many_where(
            session,
            QuestReward.quest_id.in_(list(quest_ids)),
            order_by=[QuestReward.quest_reward_id],
        )
