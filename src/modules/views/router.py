"""
Component Router
================

Purpose
-------
Thin adapter between a chat frontend and the saga services. A component
id (button or select value) maps to one service call; the result comes
back as a view model plus an optional notice line.

Domain
------
- Exact ids (`battle_attack`, `saga_tavern_reroll_confirm`, ...) and
  prefixed ids carrying a numeric argument (`saga_hire_<unit_id>`,
  `contract_draft_<unit_id>`, `task_claim_<player_task_id>`, ...)
- Battle ids act on the battle given by `game_id`
- Player-facing domain errors become error notices; the current screen
  is re-rendered where one applies

LES 2025 Compliance
-------------------
✓ No business logic - every rule lives in a service
✓ Error translation - `SagaDomainException.user_message` verbatim,
  logged at the exception's severity
✓ Observable - unknown ids logged as warnings
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from src.core.logging.logger import get_logger
from src.domain.models.battle import BattlePhase
from src.domain.models.items import ItemId, item_from_id, properties
from src.modules.shared.exceptions import ErrorSeverity, SagaDomainException, ValidationError
from src.modules.views.models import (
    BattleView,
    ContractsView,
    Notice,
    PartyView,
    QuestBoardView,
    SagaOverviewView,
    TasksView,
    TavernView,
)

if TYPE_CHECKING:
    from src.modules.battle.service import BattleService
    from src.modules.contracts.service import HumanContractService
    from src.modules.progression.quest_service import QuestService
    from src.modules.progression.task_service import TaskService
    from src.modules.tavern.service import TavernService
    from src.modules.units.service import UnitService
    from src.modules.views.composer import ViewComposer

logger = get_logger(__name__)

ViewModel = Union[
    SagaOverviewView, PartyView, TavernView, BattleView, ContractsView, TasksView, QuestBoardView
]

UNKNOWN_ACTION_MESSAGE = "That action is no longer available."
QUEST_BATTLE_PREFIX = "📜 Quest Accepted! A battle begins!"


@dataclass(frozen=True)
class RouteResult:
    view: Optional[ViewModel] = None
    notice: Optional[Notice] = None


Handler = Callable[[int, str, Optional[str]], Awaitable[RouteResult]]

_LOG_LEVELS = {
    ErrorSeverity.DEBUG: "debug",
    ErrorSeverity.INFO: "info",
    ErrorSeverity.WARNING: "warning",
    ErrorSeverity.ERROR: "error",
    ErrorSeverity.CRITICAL: "critical",
}


def notice_for_error(error: SagaDomainException) -> Notice:
    return Notice(text=error.user_message, is_error=True)


def parse_numeric_argument(argument: str) -> int:
    """
    >>> parse_numeric_argument("42")
    42
    """
    if not argument.isdigit():
        raise ValidationError(UNKNOWN_ACTION_MESSAGE, field="custom_id")
    return int(argument)


class ComponentRouter:
    """
    Maps component ids to service calls.

    Public Methods
    --------------
    - resolve() -> (handler, argument) or None
    - dispatch() -> RouteResult
    """

    def __init__(
        self,
        composer: ViewComposer,
        *,
        tavern_service: TavernService,
        unit_service: UnitService,
        contract_service: HumanContractService,
        task_service: TaskService,
        quest_service: QuestService,
        battle_service: BattleService,
    ) -> None:
        self._views = composer
        self._tavern = tavern_service
        self._units = unit_service
        self._contracts = contract_service
        self._tasks = task_service
        self._quests = quest_service
        self._battles = battle_service

        self._exact: Dict[str, Handler] = {
            "nav_saga": self._show_saga,
            "saga_back": self._show_saga,
            "saga_refresh": self._show_saga,
            "nav_party": self._show_party,
            "saga_tavern": self._show_tavern,
            "saga_tavern_home": self._show_tavern,
            "saga_tavern_reroll_confirm": self._tavern_reroll,
            "saga_tavern_quests": self._show_quests,
            "contracts_view": self._show_contracts,
            "tasks_view": self._show_tasks,
            "battle_attack": self._battle_attack,
            "battle_item": self._battle_item_menu,
            "battle_item_back": self._battle_item_back,
            "battle_tame": self._battle_recruit,
            "battle_recruit": self._battle_recruit,
            "battle_contract": self._battle_contract,
            "battle_flee": self._battle_flee,
            "battle_claim_rewards": self._battle_claim,
            "battle_close": self._battle_close,
        }
        # Longest prefix first so "saga_tavern_shop_buy_confirm_" wins over "saga_tavern_".
        prefixes: List[Tuple[str, Handler]] = [
            ("saga_hire_", self._hire),
            ("saga_node_", self._start_node_battle),
            ("saga_tavern_shop_buy_confirm_", self._tavern_buy),
            ("saga_tavern_use_", self._tavern_use),
            ("party_add_", self._party_add),
            ("party_remove_", self._party_remove),
            ("contract_draft_", self._contract_draft),
            ("contract_accept_", self._contract_accept),
            ("task_claim_", self._task_claim),
            ("quest_accept_", self._quest_accept),
            ("battle_item_use_", self._battle_use_item),
        ]
        self._prefixes = sorted(prefixes, key=lambda p: len(p[0]), reverse=True)

    # ========================================================================
    # DISPATCH
    # ========================================================================

    def resolve(self, custom_id: str) -> Optional[Tuple[Handler, str]]:
        handler = self._exact.get(custom_id)
        if handler is not None:
            return handler, ""
        for prefix, handler in self._prefixes:
            if custom_id.startswith(prefix):
                return handler, custom_id[len(prefix):]
        return None

    async def dispatch(self, user_id: int, custom_id: str, *, game_id: Optional[str] = None) -> RouteResult:
        route = self.resolve(custom_id)
        if route is None:
            logger.warning("Unknown component id", extra={"user_id": user_id, "custom_id": custom_id})
            return RouteResult(notice=Notice(UNKNOWN_ACTION_MESSAGE, is_error=True))

        handler, argument = route
        try:
            return await handler(user_id, argument, game_id)
        except SagaDomainException as exc:
            getattr(logger, _LOG_LEVELS[exc.severity])(
                f"Component action rejected: {exc.error_code}",
                extra={"user_id": user_id, "custom_id": custom_id, "details": exc.details},
            )
            return RouteResult(view=self._fallback_view(user_id, game_id), notice=notice_for_error(exc))

    def _fallback_view(self, user_id: int, game_id: Optional[str]) -> Optional[ViewModel]:
        """Battle screen to re-render after a rejected battle action."""
        if game_id is None:
            return None
        game = self._battles.registry.get(game_id)
        if game is None or game.user_id != user_id:
            return None
        return self._views.battle(game)

    # ========================================================================
    # NAVIGATION
    # ========================================================================

    async def _show_saga(self, user_id: int, _arg: str, _game_id: Optional[str]) -> RouteResult:
        return RouteResult(view=await self._views.saga_overview(user_id))

    async def _show_party(self, user_id: int, _arg: str, _game_id: Optional[str]) -> RouteResult:
        return RouteResult(view=await self._views.party(user_id))

    async def _show_tavern(self, user_id: int, _arg: str, _game_id: Optional[str]) -> RouteResult:
        return RouteResult(view=await self._views.tavern(user_id))

    async def _show_quests(self, user_id: int, _arg: str, _game_id: Optional[str]) -> RouteResult:
        return RouteResult(view=await self._views.quest_board(user_id))

    async def _show_contracts(self, user_id: int, _arg: str, _game_id: Optional[str]) -> RouteResult:
        return RouteResult(view=await self._views.contracts(user_id))

    async def _show_tasks(self, user_id: int, _arg: str, _game_id: Optional[str]) -> RouteResult:
        return RouteResult(view=await self._views.tasks(user_id))

    # ========================================================================
    # TAVERN & PARTY
    # ========================================================================

    async def _hire(self, user_id: int, arg: str, _game_id: Optional[str]) -> RouteResult:
        message = await self._tavern.hire_from_tavern(user_id, parse_numeric_argument(arg))
        return RouteResult(view=await self._views.tavern(user_id), notice=Notice(message))

    async def _tavern_reroll(self, user_id: int, _arg: str, _game_id: Optional[str]) -> RouteResult:
        result = await self._tavern.reroll_tavern(user_id)
        return RouteResult(
            view=TavernView.build(result.state),
            notice=Notice(f"🎲 Rerolled the tavern for {result.cost} coins."),
        )

    def _item(self, arg: str) -> ItemId:
        item = item_from_id(parse_numeric_argument(arg))
        if item is None:
            raise ValidationError("Unknown item.", field="item")
        return item

    async def _tavern_buy(self, user_id: int, arg: str, _game_id: Optional[str]) -> RouteResult:
        purchase = await self._tavern.buy_tavern_item(user_id, self._item(arg))
        return RouteResult(
            view=await self._views.tavern(user_id),
            notice=Notice(f"Bought {purchase.quantity}x for {purchase.total_cost} coins."),
        )

    async def _tavern_use(self, user_id: int, arg: str, _game_id: Optional[str]) -> RouteResult:
        item = self._item(arg)
        if item == ItemId.FOCUS_TONIC:
            message = await self._tavern.use_focus_tonic(user_id)
        elif item == ItemId.STAMINA_DRAFT:
            message = await self._tavern.use_stamina_draft(user_id)
        else:
            raise ValidationError("That item can't be used here.", field="item")
        return RouteResult(view=await self._views.saga_overview(user_id), notice=Notice(message))

    async def _party_add(self, user_id: int, arg: str, _game_id: Optional[str]) -> RouteResult:
        await self._units.set_unit_party_status(user_id, parse_numeric_argument(arg), True)
        return RouteResult(view=await self._views.party(user_id))

    async def _party_remove(self, user_id: int, arg: str, _game_id: Optional[str]) -> RouteResult:
        await self._units.set_unit_party_status(user_id, parse_numeric_argument(arg), False)
        return RouteResult(view=await self._views.party(user_id))

    # ========================================================================
    # CONTRACTS, TASKS, QUESTS
    # ========================================================================

    async def _contract_draft(self, user_id: int, arg: str, _game_id: Optional[str]) -> RouteResult:
        name = await self._contracts.draft_contract(user_id, parse_numeric_argument(arg))
        return RouteResult(
            view=await self._views.contracts(user_id),
            notice=Notice(f"📜 Contract drafted for **{name}**!"),
        )

    async def _contract_accept(self, user_id: int, arg: str, _game_id: Optional[str]) -> RouteResult:
        message = await self._contracts.accept_drafted_contract(user_id, parse_numeric_argument(arg))
        return RouteResult(view=await self._views.contracts(user_id), notice=Notice(message))

    async def _task_claim(self, user_id: int, arg: str, _game_id: Optional[str]) -> RouteResult:
        reward = await self._tasks.claim_task_reward(user_id, parse_numeric_argument(arg))
        parts = []
        if reward.coins > 0:
            parts.append(f"{reward.coins} coins")
        if reward.item is not None and reward.item_quantity > 0:
            parts.append(f"{reward.item_quantity}x {properties(reward.item).display_name}")
        text = "Reward claimed!" if not parts else f"Reward claimed: {', '.join(parts)}."
        return RouteResult(view=await self._views.tasks(user_id), notice=Notice(text))

    async def _quest_accept(self, user_id: int, arg: str, _game_id: Optional[str]) -> RouteResult:
        accepted = await self._quests.accept_quest(user_id, parse_numeric_argument(arg))
        game = await self._battles.start_quest_battle(user_id, accepted)
        return RouteResult(view=self._views.battle(game), notice=Notice(QUEST_BATTLE_PREFIX))

    # ========================================================================
    # BATTLE
    # ========================================================================

    def _game_id(self, game_id: Optional[str]) -> str:
        if game_id is None:
            raise ValidationError("This battle is no longer active.", field="game_id")
        return game_id

    def _battle_view(self, user_id: int, game_id: str) -> BattleView:
        return self._views.battle(self._battles.get_game(user_id, game_id))

    async def _start_node_battle(self, user_id: int, arg: str, _game_id: Optional[str]) -> RouteResult:
        game = await self._battles.start_node_battle(user_id, parse_numeric_argument(arg))
        return RouteResult(view=self._views.battle(game))

    async def _battle_attack(self, user_id: int, _arg: str, game_id: Optional[str]) -> RouteResult:
        gid = self._game_id(game_id)
        await self._battles.attack(user_id, gid)
        return RouteResult(view=self._battle_view(user_id, gid))

    async def _battle_item_menu(self, user_id: int, _arg: str, game_id: Optional[str]) -> RouteResult:
        gid = self._game_id(game_id)
        self._battles.open_item_menu(user_id, gid)
        return RouteResult(view=self._battle_view(user_id, gid))

    async def _battle_item_back(self, user_id: int, _arg: str, game_id: Optional[str]) -> RouteResult:
        gid = self._game_id(game_id)
        self._battles.close_item_menu(user_id, gid)
        return RouteResult(view=self._battle_view(user_id, gid))

    async def _battle_use_item(self, user_id: int, arg: str, game_id: Optional[str]) -> RouteResult:
        gid = self._game_id(game_id)
        await self._battles.use_item(user_id, gid, self._item(arg))
        return RouteResult(view=self._battle_view(user_id, gid))

    async def _battle_contract(self, user_id: int, _arg: str, game_id: Optional[str]) -> RouteResult:
        gid = self._game_id(game_id)
        line = await self._battles.attempt_contract(user_id, gid)
        return RouteResult(view=self._battle_view(user_id, gid), notice=Notice(line))

    async def _battle_recruit(self, user_id: int, _arg: str, game_id: Optional[str]) -> RouteResult:
        gid = self._game_id(game_id)
        game = self._battles.get_game(user_id, gid)
        line = await self._battles.attempt_recruit(user_id, gid)
        # A successful tame removes the battle from the registry.
        return RouteResult(view=self._views.battle(game), notice=Notice(line))

    async def _battle_flee(self, user_id: int, _arg: str, game_id: Optional[str]) -> RouteResult:
        gid = self._game_id(game_id)
        game = self._battles.get_game(user_id, gid)
        message = await self._battles.flee(user_id, gid)
        return RouteResult(view=self._views.battle(game), notice=Notice(message))

    async def _battle_claim(self, user_id: int, _arg: str, game_id: Optional[str]) -> RouteResult:
        gid = self._game_id(game_id)
        lines = await self._battles.claim_victory(user_id, gid)
        return RouteResult(view=self._battle_view(user_id, gid), notice=Notice("\n".join(lines)))

    async def _battle_close(self, user_id: int, _arg: str, game_id: Optional[str]) -> RouteResult:
        gid = self._game_id(game_id)
        game = self._battles.get_game(user_id, gid)
        if game.session.phase == BattlePhase.VICTORY and not game.claimed:
            raise ValidationError("Claim your rewards before leaving.", field="battle")
        message = self._battles.close(user_id, gid)
        return RouteResult(view=self._views.battle(game), notice=Notice(message))
