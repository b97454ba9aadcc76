"""
Unit tests for BattleService flows that need no database: claiming,
fleeing, quest failure on defeat and contract gating.

Collaborating services are mocked; the battle registry is real.
"""

import random
from types import SimpleNamespace

import pytest

from src.core.event.types import SagaEvents
from src.core.logging.logger import get_logger
from src.database.models.enums import UnitKind
from src.domain.models.battle import BattleOutcome, BattleSession, BattleUnit
from src.domain.models.items import ItemId
from src.modules.battle.registry import BattleGame, BattleRegistry
from src.modules.battle.service import FLED_MESSAGE, BattleService
from src.modules.progression.task_service import RewardBundle
from src.modules.shared.exceptions import NotFoundError, ValidationError


pytestmark = pytest.mark.unit


def unit(name, *, unit_id=1, hp=100, attack=10, defense=0, kind=UnitKind.PET):
    return BattleUnit(name, unit_id, hp, hp, attack, defense, kind=kind)


@pytest.fixture
def collaborators(mocker):
    return {
        "unit_service": mocker.MagicMock(),
        "bond_service": mocker.MagicMock(),
        "saga_service": mocker.MagicMock(),
        "contract_service": mocker.MagicMock(),
        "world_service": mocker.MagicMock(),
        "tavern_service": mocker.MagicMock(),
        "quest_service": mocker.MagicMock(),
    }


@pytest.fixture
def service(mock_config_manager, mock_event_bus, collaborators):
    return BattleService(
        mock_config_manager,
        mock_event_bus,
        get_logger("tests.battle"),
        registry=BattleRegistry(),
        rng=random.Random(5),
        **collaborators,
    )


def register(service, enemies, *, player_quest_id=None, hero=None):
    session = BattleSession([hero or unit("Hero", attack=50)], enemies, rng=random.Random(2))
    game = BattleGame(
        session=session,
        user_id=1,
        party_members=[],
        node_id=1,
        node_name="Whispering Woods",
        player_quest_id=player_quest_id,
    )
    return service.registry.register(game)


@pytest.mark.unit
class TestGetGame:
    def test_other_users_cannot_act(self, service):
        game = register(service, [unit("Slime", hp=1000)])

        with pytest.raises(NotFoundError):
            service.get_game(2, game.game_id)


@pytest.mark.unit
class TestClaimVictory:
    async def test_node_rewards_are_paid_once(self, service, collaborators, mocker):
        # Arrange
        game = register(service, [unit("Slime", unit_id=3, hp=1)])
        await service.attack(1, game.game_id)
        collaborators["tavern_service"].is_focus_active = mocker.MagicMock(return_value=False)
        resolve = mocker.patch.object(
            service,
            "resolve_node_victory",
            mocker.AsyncMock(return_value=SimpleNamespace(lines=["🎉 **Victory at the Whispering Woods!**"])),
        )

        # Act
        first = await service.claim_victory(1, game.game_id)
        second = await service.claim_victory(1, game.game_id)

        # Assert
        assert first == second == ["🎉 **Victory at the Whispering Woods!**"]
        resolve.assert_awaited_once()
        assert resolve.await_args.kwargs["enemy_unit_ids"] == [3]
        assert game.claimed

    async def test_quest_completion_lines(self, service, collaborators, mocker):
        game = register(service, [unit("Bandit", unit_id=20, hp=1, kind=UnitKind.HUMAN)], player_quest_id=8)
        await service.attack(1, game.game_id)
        collaborators["quest_service"].complete_quest = mocker.AsyncMock(
            return_value=[RewardBundle(coins=100), RewardBundle(item=ItemId.GEM, item_quantity=2)]
        )

        lines = await service.claim_victory(1, game.game_id)

        collaborators["quest_service"].complete_quest.assert_awaited_once_with(1, 8)
        assert lines == [
            "📜 **Quest Complete!**",
            "💰 You earned **100** coins.",
            "🎁 You found: **`2` Gem**!",
        ]

    async def test_nothing_to_claim_mid_battle(self, service):
        game = register(service, [unit("Slime", hp=1000)], hero=unit("Hero", attack=1))

        with pytest.raises(ValidationError):
            await service.claim_victory(1, game.game_id)


@pytest.mark.unit
class TestBattleEvents:
    async def test_victory_event_published_with_context(self, service, mock_event_bus):
        game = register(service, [unit("Slime", unit_id=3, hp=1)])

        outcome = await service.attack(1, game.game_id)

        assert outcome == BattleOutcome.PLAYER_VICTORY
        event_name, payload = mock_event_bus.publish.await_args.args
        assert event_name == SagaEvents.BATTLE_VICTORY
        assert payload["user_id"] == 1
        assert payload["enemy_unit_ids"] == [3]

    async def test_quest_defeat_fails_quest(self, service, collaborators, mocker):
        collaborators["quest_service"].fail_quest = mocker.AsyncMock()
        game = register(
            service,
            [unit("Bear", hp=1000, attack=500, defense=100)],
            player_quest_id=6,
            hero=unit("Hero", hp=5, attack=1),
        )

        outcome = await service.attack(1, game.game_id)

        assert outcome == BattleOutcome.PLAYER_DEFEAT
        collaborators["quest_service"].fail_quest.assert_awaited_once_with(1, 6)

    async def test_attack_after_defeat_is_rejected(self, service, collaborators, mocker):
        game = register(
            service,
            [unit("Bear", hp=1000, attack=500, defense=100)],
            hero=unit("Hero", hp=5, attack=1),
        )
        await service.attack(1, game.game_id)

        with pytest.raises(ValidationError):
            await service.attack(1, game.game_id)


@pytest.mark.unit
class TestEndingBattles:
    async def test_flee_fails_open_quest_and_removes_battle(self, service, collaborators, mocker):
        collaborators["quest_service"].fail_quest = mocker.AsyncMock()
        game = register(service, [unit("Slime", hp=1000)], player_quest_id=3)

        message = await service.flee(1, game.game_id)

        assert message == FLED_MESSAGE
        collaborators["quest_service"].fail_quest.assert_awaited_once_with(1, 3)
        assert service.registry.get(game.game_id) is None

    async def test_contract_refused_in_quest_battle(self, service):
        game = register(service, [unit("Bandit", unit_id=20, kind=UnitKind.HUMAN)], player_quest_id=3)

        with pytest.raises(ValidationError, match="Contracts are unavailable during quest battles."):
            await service.attempt_contract(1, game.game_id)

    async def test_contract_without_humans(self, service):
        game = register(service, [unit("Slime", hp=1000)])

        line = await service.attempt_contract(1, game.game_id)

        assert line == "⚠️ Contract failed: No human enemy to recruit."
        assert game.session.log[-1] == line

    async def test_contract_failure_is_a_log_line(self, service, collaborators, mocker):
        collaborators["contract_service"].draft_contract = mocker.AsyncMock(
            side_effect=ValidationError("Need 5 defeats, you have 4.", field="unit")
        )
        game = register(service, [unit("Scout", unit_id=21, kind=UnitKind.HUMAN, hp=1000)])

        line = await service.attempt_contract(1, game.game_id)

        assert line == "⚠️ Contract failed: Need 5 defeats, you have 4."

    async def test_tame_failure_keeps_battle_running(self, service, collaborators, mocker):
        collaborators["unit_service"].attempt_recruit_unit = mocker.AsyncMock(
            side_effect=ValidationError("You need a Taming Lure.", field="item")
        )
        game = register(service, [unit("Slime", unit_id=3, hp=1000)])

        line = await service.attempt_recruit(1, game.game_id)

        assert line == "⚠️ Tame failed: You need a Taming Lure."
        assert service.registry.get(game.game_id) is game

    async def test_successful_tame_ends_battle(self, service, collaborators, mocker):
        collaborators["unit_service"].attempt_recruit_unit = mocker.AsyncMock(
            return_value=SimpleNamespace(unit_name="Slime")
        )
        game = register(service, [unit("Slime", unit_id=3, hp=1000)])

        message = await service.attempt_recruit(1, game.game_id)

        assert "successfully tamed the **Slime**" in message
        assert game.is_finished
        assert service.registry.get(game.game_id) is None

    async def test_item_outside_battle_list_is_rejected(self, service):
        game = register(service, [unit("Slime", hp=1000)])

        with pytest.raises(ValidationError):
            await service.use_item(1, game.game_id, ItemId.GEM)
