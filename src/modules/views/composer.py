"""
View composer: reads services and returns view models.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from src.database.models.enums import PlayerQuestStatus
from src.modules.views.models import (
    BattleView,
    ContractsView,
    PartyView,
    QuestBoardView,
    SagaOverviewView,
    TasksView,
    TavernView,
)

if TYPE_CHECKING:
    from src.modules.battle.registry import BattleGame
    from src.modules.contracts.service import HumanContractService
    from src.modules.progression.quest_service import QuestService
    from src.modules.progression.task_service import TaskService
    from src.modules.saga.service import SagaService
    from src.modules.tavern.service import TavernService
    from src.modules.units.service import UnitService


class ViewComposer:
    """Builds one view model per screen."""

    def __init__(
        self,
        *,
        saga_service: SagaService,
        unit_service: UnitService,
        tavern_service: TavernService,
        contract_service: HumanContractService,
        task_service: TaskService,
        quest_service: QuestService,
    ) -> None:
        self._saga = saga_service
        self._units = unit_service
        self._tavern = tavern_service
        self._contracts = contract_service
        self._tasks = task_service
        self._quests = quest_service

    async def saga_overview(self, user_id: int) -> SagaOverviewView:
        snapshot, units = await self._saga.get_profile_and_units(user_id)
        return SagaOverviewView.build(snapshot, units)

    async def party(self, user_id: int) -> PartyView:
        return PartyView.build(await self._units.get_player_units(user_id))

    async def tavern(self, user_id: int) -> TavernView:
        return TavernView.build(await self._tavern.build_tavern_state_cached(user_id))

    @staticmethod
    def battle(game: BattleGame) -> BattleView:
        return BattleView.build(game)

    async def contracts(self, user_id: int) -> ContractsView:
        statuses = await self._contracts.list_contract_status(user_id)
        drafted = await self._contracts.list_drafted_contracts(user_id)
        return ContractsView.build(statuses, drafted)

    async def tasks(self, user_id: int) -> TasksView:
        return TasksView(tasks=tuple(await self._tasks.get_or_assign_player_tasks(user_id)))

    async def quest_board(self, user_id: int) -> QuestBoardView:
        offered = await self._quests.get_or_refresh_quest_board(user_id)
        accepted = await self._quests.get_player_quests(user_id, PlayerQuestStatus.ACCEPTED)
        return QuestBoardView(offered=tuple(offered), accepted=tuple(accepted))
