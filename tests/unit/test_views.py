"""
Unit tests for the view models and the component router.

Services are mocked; the router is checked for id resolution, argument
parsing and the conversion of domain errors into player notices.
"""

import random
from datetime import datetime, timezone

import pytest

from src.database.models.enums import UnitKind, UnitRarity
from src.domain.models.battle import BattlePhase, BattleSession, BattleUnit
from src.domain.models.items import ItemId
from src.modules.battle.registry import BattleGame, BattleRegistry
from src.modules.contracts.service import ContractStatus, DraftedContract
from src.modules.progression.task_service import RewardBundle
from src.modules.shared.exceptions import InsufficientResourcesError, NotFoundError, ValidationError
from src.modules.views import (
    UNKNOWN_ACTION_MESSAGE,
    BattleView,
    ComponentRouter,
    ContractsView,
    Notice,
    battle_actions,
    parse_numeric_argument,
)


pytestmark = pytest.mark.unit


def unit(name, *, unit_id=1, hp=100, attack=10, defense=0, kind=UnitKind.PET):
    return BattleUnit(name, unit_id, hp, hp, attack, defense, kind=kind)


def make_game(enemies=None, *, player_quest_id=None, can_afford_recruit=False, user_id=1):
    session = BattleSession(
        [unit("Hero", attack=5)],
        enemies or [unit("Slime", unit_id=3, hp=1000)],
        rng=random.Random(1),
        session_id="game-1",
    )
    return BattleGame(
        session=session,
        user_id=user_id,
        party_members=[],
        node_id=1,
        node_name="Whispering Woods",
        player_quest_id=player_quest_id,
        can_afford_recruit=can_afford_recruit,
    )


# ============================================================================
# VIEW MODELS
# ============================================================================


@pytest.mark.unit
class TestBattleActions:
    def test_player_turn_basic(self):
        assert battle_actions(make_game()) == ("battle_attack", "battle_item", "battle_flee")

    def test_tame_and_contract_offered(self):
        game = make_game(
            [unit("Slime", unit_id=3), unit("Bandit", unit_id=20, kind=UnitKind.HUMAN)],
            can_afford_recruit=True,
        )

        assert battle_actions(game) == (
            "battle_attack",
            "battle_item",
            "battle_tame",
            "battle_contract",
            "battle_flee",
        )

    def test_no_contract_in_quest_battles(self):
        game = make_game([unit("Bandit", unit_id=20, kind=UnitKind.HUMAN)], player_quest_id=9)

        assert "battle_contract" not in battle_actions(game)

    def test_item_menu(self):
        game = make_game()
        game.session.open_item_menu()

        assert battle_actions(game) == ("battle_item_use_11", "battle_item_use_17", "battle_item_back")

    def test_victory_then_claimed(self):
        game = make_game([unit("Slime", unit_id=3, hp=1)])
        game.session.attack()

        assert battle_actions(game) == ("battle_claim_rewards",)
        game.claimed = True
        assert battle_actions(game) == ("battle_close",)

    def test_finished_battle_has_no_actions(self):
        game = make_game()
        game.ended_message = "You fled from the battle."

        assert battle_actions(game) == ()


@pytest.mark.unit
class TestBattleView:
    def test_build_keeps_log_tail(self):
        game = make_game()
        for _ in range(3):
            game.session.attack()

        view = BattleView.build(game)

        assert view.game_id == "game-1"
        assert len(view.log) == 5
        assert view.log[-1] == game.session.log[-1]
        assert view.players[0].hp_label == f"{game.session.player_party[0].current_hp}/100"
        assert view.phase == BattlePhase.PLAYER_TURN


@pytest.mark.unit
class TestContractsView:
    def test_rows_and_actions(self):
        now = datetime(2025, 1, 1, tzinfo=timezone.utc)
        statuses = [
            ContractStatus(20, "Bandit", UnitRarity.COMMON, 3, 2, False, False, now),
            ContractStatus(21, "Scout", UnitRarity.EPIC, 4, 5, False, False, now),
            ContractStatus(22, "Knight", UnitRarity.RARE, 3, 3, False, False, now),
        ]
        drafted = [DraftedContract(contract_id=1, unit_id=22, drafted_at=now)]

        view = ContractsView.build(statuses, drafted)

        assert [r.progress for r in view.rows] == ["2/2", "4/5", "3/3"]
        assert [r.action_id for r in view.rows] == ["contract_draft_20", None, "contract_accept_22"]
        assert view.drafted_count == 1


# ============================================================================
# ROUTER
# ============================================================================


@pytest.fixture
def router_deps(mocker):
    deps = {
        "composer": mocker.MagicMock(),
        "tavern_service": mocker.MagicMock(),
        "unit_service": mocker.MagicMock(),
        "contract_service": mocker.MagicMock(),
        "task_service": mocker.MagicMock(),
        "quest_service": mocker.MagicMock(),
        "battle_service": mocker.MagicMock(),
    }
    deps["battle_service"].registry = BattleRegistry()
    return deps


@pytest.fixture
def router(router_deps):
    deps = dict(router_deps)
    return ComponentRouter(deps.pop("composer"), **deps)


@pytest.mark.unit
class TestRouterResolve:
    def test_exact_ids(self, router):
        handler, argument = router.resolve("battle_attack")

        assert handler.__name__ == "_battle_attack"
        assert argument == ""

    def test_longest_prefix_wins(self, router):
        handler, argument = router.resolve("saga_tavern_shop_buy_confirm_19")

        assert argument == "19"
        assert handler.__name__ == "_tavern_buy"

    def test_unknown(self, router):
        assert router.resolve("totally_unknown") is None

    def test_parse_numeric_argument(self):
        assert parse_numeric_argument("42") == 42
        with pytest.raises(ValidationError):
            parse_numeric_argument("4x")


@pytest.mark.unit
class TestRouterDispatch:
    async def test_unknown_id_returns_error_notice(self, router):
        result = await router.dispatch(1, "nope")

        assert result.view is None
        assert result.notice == Notice(UNKNOWN_ACTION_MESSAGE, is_error=True)

    async def test_hire(self, router, router_deps, mocker):
        router_deps["tavern_service"].hire_from_tavern = mocker.AsyncMock(return_value="You hired **Squire**!")
        router_deps["composer"].tavern = mocker.AsyncMock(return_value="tavern-view")

        result = await router.dispatch(1, "saga_hire_12")

        router_deps["tavern_service"].hire_from_tavern.assert_awaited_once_with(1, 12)
        assert result.view == "tavern-view"
        assert result.notice == Notice("You hired **Squire**!")

    async def test_domain_error_becomes_notice(self, router, router_deps, mocker):
        router_deps["tavern_service"].hire_from_tavern = mocker.AsyncMock(
            side_effect=InsufficientResourcesError(
                "You need 250 coins to hire this unit.", resource="coins", required=250, current=10
            )
        )

        result = await router.dispatch(1, "saga_hire_12")

        assert result.view is None
        assert result.notice == Notice("You need 250 coins to hire this unit.", is_error=True)

    async def test_bad_argument_becomes_notice(self, router):
        result = await router.dispatch(1, "party_add_abc")

        assert result.notice == Notice(UNKNOWN_ACTION_MESSAGE, is_error=True)

    async def test_battle_error_rerenders_battle(self, router, router_deps, mocker):
        game = make_game()
        router_deps["battle_service"].registry.register(game)
        router_deps["battle_service"].attack = mocker.AsyncMock(
            side_effect=ValidationError("The battle is already over.", field="battle")
        )
        router_deps["composer"].battle = mocker.MagicMock(return_value="battle-view")

        result = await router.dispatch(1, "battle_attack", game_id=game.game_id)

        assert result.view == "battle-view"
        assert result.notice == Notice("The battle is already over.", is_error=True)

    async def test_battle_action_without_game_id(self, router):
        result = await router.dispatch(1, "battle_attack")

        assert result.notice == Notice("This battle is no longer active.", is_error=True)

    async def test_close_requires_claim_after_victory(self, router, router_deps, mocker):
        game = make_game([unit("Slime", unit_id=3, hp=1)])
        game.session.attack()
        router_deps["battle_service"].get_game = mocker.MagicMock(return_value=game)
        router_deps["battle_service"].registry.register(game)

        result = await router.dispatch(1, "battle_close", game_id=game.game_id)

        assert result.notice == Notice("Claim your rewards before leaving.", is_error=True)
        router_deps["battle_service"].close.assert_not_called()

    async def test_task_claim_notice(self, router, router_deps, mocker):
        router_deps["task_service"].claim_task_reward = mocker.AsyncMock(
            return_value=RewardBundle(coins=150, item=ItemId.HEALTH_POTION, item_quantity=2)
        )
        router_deps["composer"].tasks = mocker.AsyncMock(return_value="tasks-view")

        result = await router.dispatch(1, "task_claim_5")

        assert result.notice == Notice("Reward claimed: 150 coins, 2x Health Potion.")

    async def test_quest_accept_starts_battle(self, router, router_deps, mocker):
        accepted = mocker.MagicMock()
        game = make_game(player_quest_id=4)
        router_deps["quest_service"].accept_quest = mocker.AsyncMock(return_value=accepted)
        router_deps["battle_service"].start_quest_battle = mocker.AsyncMock(return_value=game)
        router_deps["composer"].battle = mocker.MagicMock(return_value="battle-view")

        result = await router.dispatch(1, "quest_accept_4")

        router_deps["battle_service"].start_quest_battle.assert_awaited_once_with(1, accepted)
        assert result.view == "battle-view"
        assert result.notice.text == "📜 Quest Accepted! A battle begins!"

    async def test_tavern_use_rejects_other_items(self, router):
        result = await router.dispatch(1, f"saga_tavern_use_{int(ItemId.GEM)}")

        assert result.notice == Notice("That item can't be used here.", is_error=True)

    async def test_not_found_from_service(self, router, router_deps, mocker):
        router_deps["contract_service"].accept_drafted_contract = mocker.AsyncMock(
            side_effect=NotFoundError("No drafted contract for that unit.", resource_type="Contract", identifier=3)
        )

        result = await router.dispatch(1, "contract_accept_3")

        assert result.notice == Notice("No drafted contract for that unit.", is_error=True)
