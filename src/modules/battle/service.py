"""
Battle Service
==============

Purpose
-------
Runs saga battles end to end: starting node and quest battles from the
player's party, driving turns, in-battle items, taming and contracts,
and resolving victories into committed rewards.

Domain
------
- A node battle needs a non-empty party and costs 1 AP, spent only
  after the node loaded; bond bonuses apply to the party snapshot
- Enemies scale with how far the player's story is past the node
- Item use: Health Potion (50 HP) and Greater Health Potion (150 HP) on
  the first living ally below max HP; no target means nothing is used;
  after a heal the enemies act
- Contracts target the first living human and never advance the turn;
  they are disabled in quest battles
- Recruit targets the first living enemy: humans go through the contract
  draft, pets through taming; a successful tame ends the battle
- Victory rewards are claimed once per battle; a repeated claim returns
  the same log

Victory resolution order
------------------------
1. node, loot table and enemy masters in one read
2. loot and research rolls (one synchronous block)
3. rarity-scaled coins and XP applied in one transaction
4. human defeats recorded
5. story progress advanced to the node
6. `WinBattle:<node_id>` and `WinBattle` task progress after commit

LES 2025 Compliance
-------------------
✓ Transaction-safe - item consumption and rewards are atomic
✓ RNG discipline - injected `random.Random`, never held across an await
✓ Domain exceptions - NotFoundError, ValidationError,
  InsufficientResourcesError
✓ Event-driven - battle.victory / battle.defeat and task progress after
  commit
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, List, Optional, Sequence

from src.core.database.service import DatabaseService
from src.core.event.types import SagaEvents
from src.core.logging.logger import get_logger
from src.database.models import Inventory
from src.database.models.enums import QuestType
from src.domain.models.battle import DEFEAT_EVENT, VICTORY_EVENT, BattleOutcome, BattlePhase, BattleSession
from src.domain.models.items import ItemId, properties
from src.modules.battle.factory import build_enemy_party, build_player_party, enemy_scaling
from src.modules.battle.registry import QUEST_BATTLE_NAME, BattleGame, BattleRegistry
from src.modules.battle.rewards import (
    VictoryLog,
    build_victory_lines,
    format_loot,
    roll_victory,
    scale_reward,
)
from src.modules.economy.repository import InventoryRepository
from src.modules.shared import constants
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import (
    InsufficientResourcesError,
    NotFoundError,
    PersistenceError,
    SagaDomainException,
    ValidationError,
)

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.contracts.service import HumanContractService
    from src.modules.progression.quest_service import AcceptedQuest, QuestService
    from src.modules.saga.service import SagaService
    from src.modules.tavern.service import TavernService
    from src.modules.units.bond_service import BondService
    from src.modules.units.repository import OwnedUnit
    from src.modules.units.service import UnitService
    from src.modules.world.service import WorldService

NO_PARTY_MESSAGE = "You cannot start a battle without an active party!"
NO_AP_MESSAGE = "Not Enough Action Points. You need more AP to start this battle. Come back after they recharge."
QUEST_NO_PARTY_MESSAGE = "You must have at least one unit in your party to accept a battle quest."
QUEST_NO_ENEMIES_MESSAGE = "Quest error: Could not determine enemies for this battle."
FLED_MESSAGE = "You fled from the battle."
CLOSED_MESSAGE = "Battle ended."

HEALING_ITEMS = (ItemId.HEALTH_POTION, ItemId.GREATER_HEALTH_POTION)

_SESSION_EVENTS = {VICTORY_EVENT: SagaEvents.BATTLE_VICTORY, DEFEAT_EVENT: SagaEvents.BATTLE_DEFEAT}


class BattleService(BaseService):
    """
    Battle lifecycle and victory resolution.

    Public Methods
    --------------
    - start_node_battle() / start_quest_battle() -> BattleGame
    - attack() / open_item_menu() / close_item_menu() / use_item()
    - attempt_contract() / attempt_recruit() / flee() / close()
    - claim_victory() -> victory lines (idempotent)
    - resolve_node_victory() -> VictoryLog
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        *,
        unit_service: UnitService,
        bond_service: BondService,
        saga_service: SagaService,
        contract_service: HumanContractService,
        world_service: WorldService,
        tavern_service: TavernService,
        quest_service: QuestService,
        registry: Optional[BattleRegistry] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._units = unit_service
        self._bonds = bond_service
        self._saga = saga_service
        self._contracts = contract_service
        self._world = world_service
        self._tavern = tavern_service
        self._quests = quest_service
        self.registry = registry or BattleRegistry()
        self._rng = rng or random.Random()
        self._inventory = InventoryRepository(Inventory, get_logger(f"{__name__}.InventoryRepository"))

    def _heal_amount(self, item: ItemId) -> int:
        if item == ItemId.GREATER_HEALTH_POTION:
            return int(self.get_config("battle.greater_health_potion_heal", constants.GREATER_HEALTH_POTION_HEAL))
        return int(self.get_config("battle.health_potion_heal", constants.HEALTH_POTION_HEAL))

    async def _can_afford_recruit(self, user_id: int) -> bool:
        async with self.persistence_guard("can_afford_recruit", user_id=user_id):
            async with DatabaseService.get_session() as session:
                lures = await self._inventory.get_quantity(session, user_id, ItemId.TAMING_LURE)
        return lures >= constants.TAMING_LURE_COST

    # ========================================================================
    # STARTING BATTLES
    # ========================================================================

    async def start_node_battle(self, user_id: int, node_id: int) -> BattleGame:
        """
        Start a battle on a map node.

        Raises:
            ValidationError: Empty party
            NotFoundError: Unknown node
            InsufficientResourcesError: Not enough AP
        """
        party = await self._units.get_user_party(user_id)
        if not party:
            raise ValidationError(NO_PARTY_MESSAGE, field="party")

        bundle = await self._world.load_node_bundle(node_id)

        profile = await self._saga.update_and_get_saga_profile(user_id)
        ap_cost = int(self.get_config("saga.battle_ap_cost", constants.BATTLE_AP_COST))
        if not await self._saga.spend_action_points(user_id, ap_cost):
            raise InsufficientResourcesError(
                NO_AP_MESSAGE, resource="action_points", required=ap_cost, current=profile.current_ap
            )

        bonuses = await self._bonds.get_equipment_bonuses(user_id)
        player_units, synergy = build_player_party(party, bonuses)
        scale = enemy_scaling(profile.story_progress, bundle.node.story_progress_required)
        session = BattleSession(player_units, build_enemy_party(bundle.enemies, scale), rng=self._rng)
        session.log.extend(synergy)

        game = self.registry.register(
            BattleGame(
                session=session,
                user_id=user_id,
                party_members=list(party),
                node_id=node_id,
                node_name=bundle.node.name,
                can_afford_recruit=await self._can_afford_recruit(user_id),
            )
        )
        self.log_operation(
            "start_node_battle",
            user_id=user_id,
            node_id=node_id,
            game_id=game.game_id,
            enemies=len(bundle.enemies),
            enemy_scale=scale,
        )
        return game

    async def start_quest_battle(self, user_id: int, accepted: AcceptedQuest) -> BattleGame:
        """
        Start the battle of an accepted Battle quest.

        Raises:
            ValidationError: Not a battle quest, empty party, no enemies
        """
        if accepted.quest_type != QuestType.BATTLE:
            raise ValidationError("Riddle quests are not yet implemented.", field="quest_type")

        party = await self._units.get_user_party(user_id)
        if not party:
            raise ValidationError(QUEST_NO_PARTY_MESSAGE, field="party")

        enemy_ids = accepted.enemy_unit_ids
        enemies = await self._world.load_enemy_templates(enemy_ids) if enemy_ids else []
        if not enemies:
            raise ValidationError(QUEST_NO_ENEMIES_MESSAGE, field="objective_key")

        bonuses = await self._bonds.get_equipment_bonuses(user_id)
        player_units, synergy = build_player_party(party, bonuses)
        session = BattleSession(player_units, build_enemy_party(enemies), rng=self._rng)
        session.log.extend(synergy)

        game = self.registry.register(
            BattleGame(
                session=session,
                user_id=user_id,
                party_members=list(party),
                node_id=0,
                node_name=QUEST_BATTLE_NAME,
                player_quest_id=accepted.player_quest_id,
            )
        )
        self.log_operation(
            "start_quest_battle",
            user_id=user_id,
            player_quest_id=accepted.player_quest_id,
            game_id=game.game_id,
            enemies=len(enemies),
        )
        return game

    # ========================================================================
    # TURNS
    # ========================================================================

    def get_game(self, user_id: int, game_id: str) -> BattleGame:
        """
        Raises:
            NotFoundError: No such battle, or it belongs to someone else
        """
        game = self.registry.get(game_id)
        if game is None or game.user_id != user_id:
            raise NotFoundError("This battle is no longer active.", resource_type="Battle", identifier=game_id)
        return game

    async def attack(self, user_id: int, game_id: str) -> BattleOutcome:
        game = self.get_game(user_id, game_id)
        async with game.lock:
            self._require_turn(game)
            outcome = game.session.attack()
            await self._after_turn(game, outcome)
        return outcome

    def open_item_menu(self, user_id: int, game_id: str) -> None:
        game = self.get_game(user_id, game_id)
        self._require_turn(game)
        game.session.open_item_menu()

    def close_item_menu(self, user_id: int, game_id: str) -> None:
        self.get_game(user_id, game_id).session.close_item_menu()

    async def use_item(self, user_id: int, game_id: str, item: ItemId) -> int:
        """
        Drink a healing potion; returns HP restored (0 when nobody needed it).

        Raises:
            ValidationError: Item not usable in battle
            InsufficientResourcesError: Item not owned
        """
        if item not in HEALING_ITEMS:
            raise ValidationError("That item can't be used in battle.", field="item")

        game = self.get_game(user_id, game_id)
        async with game.lock:
            session = game.session
            if session.is_over:
                raise ValidationError("The battle is already over.", field="battle")

            target = session.heal_target()
            display = properties(item).display_name
            if target is None:
                session.log.append("No one needs healing right now.")
                session.close_item_menu()
                return 0

            async with self.persistence_guard("battle_use_item", user_id=user_id, item_id=int(item)):
                async with DatabaseService.get_transaction() as db_session:
                    await self._inventory.consume(
                        db_session, user_id, item, 1, message=f"You don't have a {display}."
                    )

            healed = session.apply_heal(target, self._heal_amount(item), display)
            outcome = session.enemy_turn()
            await self._after_turn(game, outcome)

        self.log_operation("battle_use_item", user_id=user_id, item_id=int(item), healed=healed)
        return healed

    def _require_turn(self, game: BattleGame) -> None:
        if game.is_finished or game.session.is_over:
            raise ValidationError("The battle is already over.", field="battle")

    async def _after_turn(self, game: BattleGame, outcome: BattleOutcome) -> None:
        """Publish the session's terminal events; a lost quest battle fails the quest."""
        for event in game.session.clear_domain_events():
            await self.emit_event(
                _SESSION_EVENTS.get(event.event_name, event.event_name),
                {
                    **event.payload,
                    "user_id": game.user_id,
                    "node_id": game.node_id,
                    "player_quest_id": game.player_quest_id,
                },
            )
        if outcome == BattleOutcome.PLAYER_DEFEAT and game.is_quest_battle:
            await self._quests.fail_quest(game.user_id, game.player_quest_id)

    # ========================================================================
    # TAMING & CONTRACTS
    # ========================================================================

    async def attempt_contract(self, user_id: int, game_id: str) -> str:
        """Draft a contract for the first living human enemy; the turn does not advance."""
        game = self.get_game(user_id, game_id)
        if game.is_quest_battle:
            raise ValidationError("Contracts are unavailable during quest battles.", field="battle")

        async with game.lock:
            target = game.session.first_living_human_enemy()
            if target is None:
                line = "⚠️ Contract failed: No human enemy to recruit."
            else:
                line = await self._draft_line(user_id, target.unit_id)
            game.session.log.append(line)
        return line

    async def attempt_recruit(self, user_id: int, game_id: str) -> str:
        """
        Recruit the first living enemy: contract draft for humans, taming
        for pets. A successful tame ends the battle.
        """
        game = self.get_game(user_id, game_id)
        async with game.lock:
            self._require_turn(game)
            target = game.session.first_living_enemy()
            if target is None:
                line = "⚠️ Tame failed: No target found."
                game.session.log.append(line)
                return line

            if target.is_human:
                if game.is_quest_battle:
                    raise ValidationError("Contracts are unavailable during quest battles.", field="battle")
                line = await self._draft_line(user_id, target.unit_id)
                game.session.log.append(line)
                return line

            try:
                outcome = await self._units.attempt_recruit_unit(user_id, target.unit_id)
            except PersistenceError:
                raise
            except SagaDomainException as exc:
                line = f"⚠️ Tame failed: {exc.user_message}"
                game.session.log.append(line)
                return line

            message = f"🐾 **Success!** You spent your materials and successfully tamed the **{outcome.unit_name}**!"
            game.ended_message = message
        self.registry.remove(game_id)
        return message

    async def _draft_line(self, user_id: int, unit_id: int) -> str:
        try:
            name = await self._contracts.draft_contract(user_id, unit_id)
        except PersistenceError:
            raise
        except SagaDomainException as exc:
            return f"⚠️ Contract failed: {exc.user_message}"
        return f"📜 Contract drafted for **{name}**! Accept it from your contracts list."

    # ========================================================================
    # ENDING
    # ========================================================================

    async def flee(self, user_id: int, game_id: str) -> str:
        game = self.get_game(user_id, game_id)
        async with game.lock:
            game.ended_message = FLED_MESSAGE
            if game.is_quest_battle and not game.claimed:
                await self._quests.fail_quest(user_id, game.player_quest_id)
        self.registry.remove(game_id)
        self.log_operation("flee_battle", user_id=user_id, game_id=game_id, node_id=game.node_id)
        return FLED_MESSAGE

    def close(self, user_id: int, game_id: str) -> str:
        game = self.get_game(user_id, game_id)
        game.ended_message = game.ended_message or CLOSED_MESSAGE
        self.registry.remove(game_id)
        return CLOSED_MESSAGE

    async def claim_victory(self, user_id: int, game_id: str) -> List[str]:
        """
        Commit the rewards of a won battle once; later calls return the
        same lines.

        Raises:
            ValidationError: Battle not won (yet)
        """
        game = self.get_game(user_id, game_id)
        async with game.lock:
            if game.claimed and game.victory_lines is not None:
                return list(game.victory_lines)
            if game.session.phase != BattlePhase.VICTORY:
                raise ValidationError("There is nothing to claim yet.", field="battle")

            if game.is_quest_battle:
                rewards = await self._quests.complete_quest(user_id, game.player_quest_id)
                lines = ["📜 **Quest Complete!**"]
                coins = sum(r.coins for r in rewards)
                if coins > 0:
                    lines.append(f"💰 You earned **{coins}** coins.")
                loot = [(r.item, r.item_quantity) for r in rewards if r.item is not None and r.item_quantity > 0]
                if loot:
                    lines.append(f"🎁 You found: **{format_loot(loot)}**!")
            else:
                victory = await self.resolve_node_victory(
                    user_id=user_id,
                    node_id=game.node_id,
                    node_name=game.node_name,
                    party_snapshot=game.party_members,
                    vitality_mitigated=game.session.vitality_mitigated,
                    enemy_unit_ids=[u.unit_id for u in game.session.enemy_party],
                    focus_active=self._tavern.is_focus_active(user_id),
                )
                lines = victory.lines

            game.claimed = True
            game.victory_lines = lines
        return list(lines)

    # ========================================================================
    # VICTORY RESOLUTION
    # ========================================================================

    async def resolve_node_victory(
        self,
        *,
        user_id: int,
        node_id: int,
        node_name: str,
        party_snapshot: Sequence[OwnedUnit],
        vitality_mitigated: int,
        enemy_unit_ids: Sequence[int],
        focus_active: bool,
    ) -> VictoryLog:
        """
        Roll, apply and describe the rewards of a node victory.

        Raises:
            NotFoundError: Unknown node ("Node not found")
        """
        bundle = await self._world.load_victory_bundle(node_id, enemy_unit_ids)

        rolls = roll_victory(bundle.rewards, bundle.enemies, focus_active, self._rng)
        coins = scale_reward(bundle.node.reward_coins, rolls.multiplier)
        xp = scale_reward(bundle.node.reward_unit_xp, rolls.multiplier)

        results = await self._units.apply_battle_rewards(user_id, coins, rolls.loot, party_snapshot, xp)

        # Rewards are committed from here on; follow-up writes must not fail the claim.
        for human in rolls.humans:
            try:
                await self._contracts.record_human_defeat(user_id, human)
            except PersistenceError as exc:
                self.log_error("record_human_defeat", exc, user_id=user_id, unit_id=human.unit_id)
        try:
            await self._saga.advance_story_progress(user_id, node_id)
        except PersistenceError as exc:
            self.log_error("advance_story_progress", exc, user_id=user_id, node_id=node_id)

        await self.publish_task_progress(user_id, f"WinBattle:{node_id}")
        await self.publish_task_progress(user_id, "WinBattle")

        lines = build_victory_lines(
            node_name=node_name,
            base_coins=bundle.node.reward_coins,
            coins=coins,
            base_xp=bundle.node.reward_unit_xp,
            xp=xp,
            multiplier=rolls.multiplier,
            focus_active=focus_active,
            loot=rolls.loot,
            vitality_mitigated=vitality_mitigated,
            party=party_snapshot,
            results=results,
        )
        self.log_operation(
            "resolve_node_victory",
            user_id=user_id,
            node_id=node_id,
            coins=coins,
            xp_per_unit=xp,
            multiplier=round(rolls.multiplier, 4),
            loot=[(int(item), qty) for item, qty in rolls.loot],
            humans_defeated=len(rolls.humans),
        )
        return VictoryLog(lines=lines, coins=coins, xp_per_unit=xp, loot=rolls.loot, level_ups=list(results))
