"""
Quest Service
=============

Purpose
-------
The quest board and quest log: offering quests, accepting, completing
with the full reward bundle, and failing.

Domain
------
- Status flow: Offered -> Accepted -> Completed | Failed
- An empty board (no Offered rows) is refilled with up to 3 random quests
  the player has never been offered
- Battle quests carry their enemy unit ids in `objective_key`
  ("3,7,7")
- Completion pays every reward row of the quest in one transaction

LES 2025 Compliance
-------------------
✓ Transaction-safe - status change and payout commit together
✓ Row locks - the player quest row is locked before transitions
✓ Event-driven - `quest.completed` after commit
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Tuple

from src.core.database.base import utc_now
from src.core.database.service import DatabaseService
from src.core.event.types import SagaEvents
from src.core.logging.logger import get_logger
from src.database.models import Inventory, PlayerQuest, Profile, Quest, QuestReward
from src.database.models.enums import PlayerQuestStatus, QuestType
from src.modules.economy.repository import InventoryRepository, ProfileRepository
from src.modules.progression.repository import PlayerQuestRepository, QuestRewardRepository
from src.modules.progression.task_service import RewardBundle, credit_reward
from src.modules.shared import constants
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import NotFoundError

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus

ACCEPT_FAILED_MESSAGE = "Could not accept this quest. It may be expired or was not offered to you."
COMPLETE_FAILED_MESSAGE = "This quest cannot be completed. It may not be active or belong to you."


def parse_enemy_ids(objective_key: str) -> List[int]:
    """
    Enemy unit ids of a battle quest; unparsable parts are skipped.

    >>> parse_enemy_ids("3, 7,x,7")
    [3, 7, 7]
    """
    ids = []
    for part in objective_key.split(","):
        part = part.strip()
        if part.isdigit():
            ids.append(int(part))
    return ids


@dataclass(frozen=True)
class QuestEntry:
    player_quest_id: int
    quest_id: int
    title: str
    description: str
    giver_name: str
    difficulty: str
    quest_type: QuestType
    status: PlayerQuestStatus
    rewards: Tuple[RewardBundle, ...]


@dataclass(frozen=True)
class AcceptedQuest:
    player_quest_id: int
    quest_type: QuestType
    objective_key: str

    @property
    def enemy_unit_ids(self) -> List[int]:
        return parse_enemy_ids(self.objective_key) if self.quest_type == QuestType.BATTLE else []


class QuestService(BaseService):
    """
    Quest board and quest log.

    Public Methods
    --------------
    - get_or_refresh_quest_board() -> Offered quests (refilled when empty)
    - get_player_quests() -> quests in a given status
    - accept_quest() / complete_quest() / fail_quest()
    """

    def __init__(self, config_manager: ConfigManager, event_bus: EventBus, logger: Logger) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._player_quests = PlayerQuestRepository(PlayerQuest, get_logger(f"{__name__}.PlayerQuestRepository"))
        self._rewards = QuestRewardRepository(QuestReward, get_logger(f"{__name__}.QuestRewardRepository"))
        self._profiles = ProfileRepository(Profile, get_logger(f"{__name__}.ProfileRepository"))
        self._inventory = InventoryRepository(Inventory, get_logger(f"{__name__}.InventoryRepository"))

    async def _entries(self, session, rows: List[Tuple[PlayerQuest, Quest]]) -> List[QuestEntry]:
        rewards: Dict[int, List[RewardBundle]] = {}
        for reward in await self._rewards.for_quests(session, [q.quest_id for _, q in rows]):
            rewards.setdefault(reward.quest_id, []).append(
                RewardBundle.from_columns(reward.reward_coins, reward.reward_item_id, reward.reward_item_quantity)
            )
        return [
            QuestEntry(
                player_quest_id=pq.player_quest_id,
                quest_id=q.quest_id,
                title=q.title,
                description=q.description,
                giver_name=q.giver_name,
                difficulty=q.difficulty,
                quest_type=q.quest_type,
                status=pq.status,
                rewards=tuple(rewards.get(q.quest_id, ())),
            )
            for pq, q in rows
        ]

    # ========================================================================
    # BOARD & LOG
    # ========================================================================

    async def get_or_refresh_quest_board(self, user_id: int) -> List[QuestEntry]:
        """Offered quests with rewards; refills the board when it is empty."""
        offered_new = 0
        async with self.persistence_guard("get_or_refresh_quest_board", user_id=user_id):
            async with DatabaseService.get_transaction() as session:
                await DatabaseService.acquire_user_lock(session, user_id)
                if await self._player_quests.count_offered(session, user_id) == 0:
                    board_size = int(self.get_config("progression.quest_board_size", constants.QUEST_BOARD_SIZE))
                    offered_new = await self._player_quests.offer_new(session, user_id, board_size)
                rows = await self._player_quests.list_with_quest(session, user_id, PlayerQuestStatus.OFFERED)
                board = await self._entries(session, rows)

        if offered_new:
            self.log_operation("refresh_quest_board", user_id=user_id, offered=offered_new)
        return board

    async def get_player_quests(
        self, user_id: int, status: PlayerQuestStatus = PlayerQuestStatus.ACCEPTED
    ) -> List[QuestEntry]:
        async with self.persistence_guard("get_player_quests", user_id=user_id, status=status.value):
            async with DatabaseService.get_session() as session:
                rows = await self._player_quests.list_with_quest(session, user_id, status)
                return await self._entries(session, rows)

    # ========================================================================
    # TRANSITIONS
    # ========================================================================

    async def accept_quest(self, user_id: int, player_quest_id: int) -> AcceptedQuest:
        """
        Offered -> Accepted.

        Raises:
            NotFoundError: Not offered to this user (or no longer Offered)
        """
        async with self.persistence_guard("accept_quest", user_id=user_id, player_quest_id=player_quest_id):
            async with DatabaseService.get_transaction() as session:
                row = await self._player_quests.lock_owned_with_status(
                    session, user_id, player_quest_id, PlayerQuestStatus.OFFERED
                )
                if row is None:
                    raise NotFoundError(ACCEPT_FAILED_MESSAGE, resource_type="PlayerQuest", identifier=player_quest_id)
                player_quest, quest = row
                player_quest.status = PlayerQuestStatus.ACCEPTED
                player_quest.accepted_at = utc_now()
                accepted = AcceptedQuest(
                    player_quest_id=player_quest.player_quest_id,
                    quest_type=quest.quest_type,
                    objective_key=quest.objective_key,
                )

        self.log_operation(
            "accept_quest", user_id=user_id, player_quest_id=player_quest_id, quest_type=accepted.quest_type.value
        )
        return accepted

    async def complete_quest(self, user_id: int, player_quest_id: int) -> List[RewardBundle]:
        """
        Accepted -> Completed, paying every reward row of the quest.

        Raises:
            NotFoundError: Not an active quest of this user
        """
        async with self.persistence_guard("complete_quest", user_id=user_id, player_quest_id=player_quest_id):
            async with DatabaseService.get_transaction() as session:
                row = await self._player_quests.lock_owned_with_status(
                    session, user_id, player_quest_id, PlayerQuestStatus.ACCEPTED
                )
                if row is None:
                    raise NotFoundError(
                        COMPLETE_FAILED_MESSAGE, resource_type="PlayerQuest", identifier=player_quest_id
                    )
                player_quest, quest = row
                rewards = [
                    RewardBundle.from_columns(r.reward_coins, r.reward_item_id, r.reward_item_quantity)
                    for r in await self._rewards.for_quests(session, [quest.quest_id])
                ]
                for reward in rewards:
                    await credit_reward(session, user_id, reward, self._profiles, self._inventory)
                player_quest.status = PlayerQuestStatus.COMPLETED
                player_quest.completed_at = utc_now()
                quest_id = quest.quest_id

        self.log_operation(
            "complete_quest",
            user_id=user_id,
            player_quest_id=player_quest_id,
            coins=sum(r.coins for r in rewards),
            reward_rows=len(rewards),
        )
        await self.emit_event(
            SagaEvents.QUEST_COMPLETED,
            {"user_id": user_id, "player_quest_id": player_quest_id, "quest_id": quest_id},
        )
        return rewards

    async def fail_quest(self, user_id: int, player_quest_id: int) -> None:
        """Accepted -> Failed (abandoned or lost battle quest)."""
        async with self.persistence_guard("fail_quest", user_id=user_id, player_quest_id=player_quest_id):
            async with DatabaseService.get_transaction() as session:
                row = await self._player_quests.lock_owned_with_status(
                    session, user_id, player_quest_id, PlayerQuestStatus.ACCEPTED
                )
                if row is None:
                    raise NotFoundError(
                        COMPLETE_FAILED_MESSAGE, resource_type="PlayerQuest", identifier=player_quest_id
                    )
                player_quest, _ = row
                player_quest.status = PlayerQuestStatus.FAILED

        self.log_operation("fail_quest", user_id=user_id, player_quest_id=player_quest_id)
