"""
Task Service
============

Purpose
-------
Daily and weekly tasks: assignment per period, objective progress fed by
`task.progress` events, and reward claiming.

Domain
------
- Daily tasks reset at the start of the UTC day, weekly tasks at the
  start of the ISO week (database clock)
- A period with zero assigned tasks of a type gets Daily 2 / Weekly 1
  distinct random templates on the next listing
- Progress is clamped at the goal; reaching it completes the task and
  completion never reverts
- A completed task pays out exactly once

LES 2025 Compliance
-------------------
✓ Transaction-safe - assignment and claiming are single transactions
✓ Row locks - the claimed task row is locked before payout
✓ Event-driven - progress arrives through the EventBus
✓ Observable - structured logging on assignment, completion and claims
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

from src.core.database.base import utc_now
from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger
from src.database.models import Inventory, PlayerTask, Profile, Task
from src.database.models.enums import TaskType
from src.domain.models.items import ItemId, item_from_id
from src.modules.economy.repository import InventoryRepository, ProfileRepository
from src.modules.progression.repository import PlayerTaskRepository
from src.modules.shared import constants
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import NotFoundError

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus

CLAIM_UNAVAILABLE_MESSAGE = "Task is not available to be claimed, or it has already been claimed."


@dataclass(frozen=True)
class RewardBundle:
    """Coins and/or one item stack granted by a task or quest."""

    coins: int = 0
    item: Optional[ItemId] = None
    item_quantity: int = 0

    @property
    def is_empty(self) -> bool:
        return self.coins <= 0 and (self.item is None or self.item_quantity <= 0)

    @classmethod
    def from_columns(
        cls, coins: Optional[int], item_id: Optional[int], quantity: Optional[int]
    ) -> RewardBundle:
        item = item_from_id(item_id) if item_id is not None else None
        return cls(coins=max(coins or 0, 0), item=item, item_quantity=max(quantity or 0, 0) if item else 0)


@dataclass(frozen=True)
class PlayerTaskView:
    player_task_id: int
    task_type: TaskType
    title: str
    description: str
    objective_key: str
    progress: int
    goal: int
    is_completed: bool
    reward: RewardBundle

    @property
    def progress_label(self) -> str:
        return f"{self.progress}/{self.goal}"

    @classmethod
    def from_rows(cls, player_task: PlayerTask, task: Task) -> PlayerTaskView:
        return cls(
            player_task_id=player_task.player_task_id,
            task_type=task.task_type,
            title=task.title,
            description=task.description,
            objective_key=task.objective_key,
            progress=player_task.progress,
            goal=task.objective_goal,
            is_completed=player_task.is_completed,
            reward=RewardBundle.from_columns(task.reward_coins, task.reward_item_id, task.reward_item_quantity),
        )


async def credit_reward(
    session: AsyncSession,
    user_id: int,
    reward: RewardBundle,
    profiles: ProfileRepository,
    inventory: InventoryRepository,
) -> None:
    """Apply a reward inside the caller's transaction."""
    if reward.coins > 0:
        await profiles.ensure(session, user_id)
        await profiles.add_balance(session, user_id, reward.coins)
    if reward.item is not None and reward.item_quantity > 0:
        await inventory.add_item(session, user_id, int(reward.item), reward.item_quantity)


class TaskService(BaseService):
    """
    Daily/weekly task lifecycle.

    Public Methods
    --------------
    - get_or_assign_player_tasks() -> current unclaimed tasks
    - update_task_progress() -> apply an objective increment
    - claim_task_reward() -> pay out a completed task
    - on_task_progress() -> EventBus listener for `task.progress`
    """

    def __init__(self, config_manager: ConfigManager, event_bus: EventBus, logger: Logger) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._tasks = PlayerTaskRepository(PlayerTask, get_logger(f"{__name__}.PlayerTaskRepository"))
        self._profiles = ProfileRepository(Profile, get_logger(f"{__name__}.ProfileRepository"))
        self._inventory = InventoryRepository(Inventory, get_logger(f"{__name__}.InventoryRepository"))

    def _quota(self, task_type: TaskType) -> int:
        if task_type == TaskType.DAILY:
            return int(self.get_config("progression.daily_task_count", constants.DAILY_TASK_COUNT))
        return int(self.get_config("progression.weekly_task_count", constants.WEEKLY_TASK_COUNT))

    # ========================================================================
    # ASSIGNMENT
    # ========================================================================

    async def get_or_assign_player_tasks(self, user_id: int) -> List[PlayerTaskView]:
        """Assign this period's tasks if none exist yet, then list the unclaimed ones."""
        assigned = {}
        async with self.persistence_guard("get_or_assign_player_tasks", user_id=user_id):
            async with DatabaseService.get_transaction() as session:
                await DatabaseService.acquire_user_lock(session, user_id)
                for task_type in (TaskType.DAILY, TaskType.WEEKLY):
                    if await self._tasks.count_assigned_this_period(session, user_id, task_type) == 0:
                        assigned[task_type.value] = await self._tasks.assign_random(
                            session, user_id, task_type, self._quota(task_type)
                        )
                rows = await self._tasks.list_current(session, user_id)
                tasks = [PlayerTaskView.from_rows(pt, t) for pt, t in rows]

        if assigned:
            self.log_operation("assign_tasks", user_id=user_id, **assigned)
        return tasks

    # ========================================================================
    # PROGRESS
    # ========================================================================

    async def update_task_progress(self, user_id: int, objective_key: str, increment: int = 1) -> int:
        """
        Advance every incomplete task with this objective; returns how many
        tasks became completed.
        """
        self.validate_positive_int(increment, "increment")
        async with self.persistence_guard("update_task_progress", user_id=user_id, objective_key=objective_key):
            async with DatabaseService.get_transaction() as session:
                touched = await self._tasks.increment_progress(session, user_id, objective_key, increment)
                completed = await self._tasks.mark_reached_completed(session, touched)

        if touched:
            self.log.debug(
                "Task progress applied",
                extra={
                    "user_id": user_id,
                    "objective_key": objective_key,
                    "increment": increment,
                    "touched": len(touched),
                    "completed": completed,
                },
            )
        if completed:
            self.log_operation("tasks_completed", user_id=user_id, objective_key=objective_key, count=completed)
        return completed

    async def on_task_progress(self, payload: dict) -> None:
        """EventBus listener: `{"user_id", "objective_key", "increment"}`."""
        user_id = payload.get("user_id")
        objective_key = payload.get("objective_key")
        if user_id is None or not objective_key:
            self.log.warning("Malformed task.progress payload", extra={"payload_keys": sorted(payload)})
            return
        await self.update_task_progress(int(user_id), str(objective_key), int(payload.get("increment", 1)))

    # ========================================================================
    # CLAIMING
    # ========================================================================

    async def claim_task_reward(self, user_id: int, player_task_id: int) -> RewardBundle:
        """
        Pay out a completed, unclaimed task.

        Raises:
            NotFoundError: Not owned, not completed, or already claimed
        """
        async with self.persistence_guard("claim_task_reward", user_id=user_id, player_task_id=player_task_id):
            async with DatabaseService.get_transaction() as session:
                row = await self._tasks.lock_claimable(session, user_id, player_task_id)
                if row is None:
                    raise NotFoundError(
                        CLAIM_UNAVAILABLE_MESSAGE, resource_type="PlayerTask", identifier=player_task_id
                    )
                player_task, task = row
                reward = RewardBundle.from_columns(task.reward_coins, task.reward_item_id, task.reward_item_quantity)
                await credit_reward(session, user_id, reward, self._profiles, self._inventory)
                player_task.claimed_at = utc_now()

        self.log_operation(
            "claim_task_reward",
            user_id=user_id,
            player_task_id=player_task_id,
            coins=reward.coins,
            item_id=int(reward.item) if reward.item is not None else None,
            item_quantity=reward.item_quantity,
        )
        return reward
