"""
Turn-based battle state machine.

Purpose
-------
Pure, synchronous battle rules over snapshots of the player's party and
the enemy encounter. Services own persistence (item consumption, taming,
contracts, rewards); this module owns turn order, damage, healing and the
battle log.

Responsibilities
----------------
- `BattleUnit` combat snapshot (with vitality mitigation)
- `BattleSession` phases: PlayerTurn, PlayerSelectingItem, EnemyTurn,
  Victory, Defeat
- Domain events on terminal transitions (`battle.victory`,
  `battle.defeat`)

Design Notes
------------
- Randomness comes from an injected `random.Random`; every roll happens
  inside a synchronous method, so no RNG state is held across an await.
- Damage is ``max(1, attack - defense)``. A defender's vitality absorbs
  up to ``damage - 1`` of each enemy hit, so every hit still lands for 1.
"""

from __future__ import annotations

import random
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from src.database.models.enums import UnitKind
from src.domain.models.base import Entity

VICTORY_EVENT = "battle.victory"
DEFEAT_EVENT = "battle.defeat"


class BattlePhase(str, Enum):
    PLAYER_TURN = "PlayerTurn"
    PLAYER_SELECTING_ITEM = "PlayerSelectingItem"
    ENEMY_TURN = "EnemyTurn"
    VICTORY = "Victory"
    DEFEAT = "Defeat"


class BattleOutcome(str, Enum):
    ONGOING = "Ongoing"
    PLAYER_VICTORY = "PlayerVictory"
    PLAYER_DEFEAT = "PlayerDefeat"


@dataclass
class BattleUnit:
    """
    One combatant.

    `player_unit_id` is set for the player's own units and None for
    enemies, whose `unit_id` points at the unit master.
    """

    name: str
    unit_id: int
    current_hp: int
    max_hp: int
    attack: int
    defense: int
    is_recruitable: bool = False
    kind: UnitKind = UnitKind.PET
    vitality: int = 0
    player_unit_id: Optional[int] = None

    @property
    def is_alive(self) -> bool:
        return self.current_hp > 0

    @property
    def is_human(self) -> bool:
        return self.kind == UnitKind.HUMAN

    def take_damage(self, amount: int) -> None:
        self.current_hp = max(self.current_hp - amount, 0)

    def heal(self, amount: int) -> int:
        """Restore up to `amount` HP without exceeding max; returns HP gained."""
        before = self.current_hp
        self.current_hp = min(self.current_hp + amount, self.max_hp)
        return self.current_hp - before


def compute_damage(attacker: BattleUnit, defender: BattleUnit) -> int:
    return max(1, attacker.attack - defender.defense)


class BattleSession(Entity):
    """
    A single battle between the player's party and an enemy group.

    Examples
    --------
    >>> session = BattleSession(party, enemies, rng=random.Random(7))
    >>> session.attack()
    <BattleOutcome.ONGOING: 'Ongoing'>
    """

    def __init__(
        self,
        player_party: List[BattleUnit],
        enemy_party: List[BattleUnit],
        *,
        rng: Optional[random.Random] = None,
        session_id: Optional[str] = None,
    ) -> None:
        super().__init__(session_id or uuid.uuid4().hex)
        self.player_party = player_party
        self.enemy_party = enemy_party
        self.phase = BattlePhase.PLAYER_TURN
        self.vitality_mitigated = 0
        self.log: List[str] = [
            f"A battle begins between your party and {len(enemy_party)} enemies!"
        ]
        self._rng = rng or random.Random()

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #

    @property
    def is_over(self) -> bool:
        return self.phase in (BattlePhase.VICTORY, BattlePhase.DEFEAT)

    def living_players(self) -> List[BattleUnit]:
        return [u for u in self.player_party if u.is_alive]

    def living_enemies(self) -> List[BattleUnit]:
        return [u for u in self.enemy_party if u.is_alive]

    def first_living_enemy(self) -> Optional[BattleUnit]:
        return next((u for u in self.enemy_party if u.is_alive), None)

    def first_living_human_enemy(self) -> Optional[BattleUnit]:
        return next((u for u in self.enemy_party if u.is_alive and u.is_human), None)

    def heal_target(self) -> Optional[BattleUnit]:
        """First living ally below max HP, or None when nobody needs healing."""
        return next(
            (u for u in self.player_party if u.is_alive and u.current_hp < u.max_hp),
            None,
        )

    # ------------------------------------------------------------------ #
    # Turns
    # ------------------------------------------------------------------ #

    def process_player_turn(self) -> BattleOutcome:
        self.log.append("--- **Your Turn** ---")
        for attacker in self.player_party:
            if not attacker.is_alive:
                continue
            targets = self.living_enemies()
            if not targets:
                break
            defender = self._rng.choice(targets)
            damage = compute_damage(attacker, defender)
            defender.take_damage(damage)
            self.log.append(f"⚔️ **{attacker.name}** attacks **{defender.name}** for `{damage}` damage!")
            if not defender.is_alive:
                self.log.append(f"☠️ **{defender.name}** has been defeated!")

        if not self.living_enemies():
            return BattleOutcome.PLAYER_VICTORY
        self.phase = BattlePhase.ENEMY_TURN
        return BattleOutcome.ONGOING

    def process_enemy_turn(self) -> BattleOutcome:
        self.log.append("--- **Enemy's Turn** ---")
        for attacker in self.enemy_party:
            if not attacker.is_alive:
                continue
            targets = self.living_players()
            if not targets:
                break
            defender = self._rng.choice(targets)
            raw = compute_damage(attacker, defender)
            absorbed = min(defender.vitality, raw - 1) if defender.vitality > 0 else 0
            damage = raw - absorbed
            self.vitality_mitigated += absorbed
            defender.take_damage(damage)
            self.log.append(f"💥 **{attacker.name}** attacks **{defender.name}** for `{damage}` damage!")
            if not defender.is_alive:
                self.log.append(f"☠️ **{defender.name}** has been defeated!")

        if not self.living_players():
            return BattleOutcome.PLAYER_DEFEAT
        self.phase = BattlePhase.PLAYER_TURN
        return BattleOutcome.ONGOING

    def attack(self) -> BattleOutcome:
        """Full round: the party attacks, then the enemies answer."""
        if self.is_over:
            return self._terminal_outcome()
        if self.process_player_turn() == BattleOutcome.PLAYER_VICTORY:
            self._finish(BattlePhase.VICTORY)
            return BattleOutcome.PLAYER_VICTORY
        return self.enemy_turn()

    def enemy_turn(self) -> BattleOutcome:
        if self.process_enemy_turn() == BattleOutcome.PLAYER_DEFEAT:
            self._finish(BattlePhase.DEFEAT)
            return BattleOutcome.PLAYER_DEFEAT
        return BattleOutcome.ONGOING

    # ------------------------------------------------------------------ #
    # Items
    # ------------------------------------------------------------------ #

    def open_item_menu(self) -> None:
        self.phase = BattlePhase.PLAYER_SELECTING_ITEM
        self.log.append("You open your bag...")

    def close_item_menu(self) -> None:
        if self.phase == BattlePhase.PLAYER_SELECTING_ITEM:
            self.phase = BattlePhase.PLAYER_TURN

    def apply_heal(self, target: BattleUnit, amount: int, item_name: str) -> int:
        healed = target.heal(amount)
        self.log.append(f"🧪 **{target.name}** drinks a {item_name} and recovers `{healed}` HP.")
        self.phase = BattlePhase.PLAYER_TURN
        return healed

    # ------------------------------------------------------------------ #
    # Terminal transitions
    # ------------------------------------------------------------------ #

    def _finish(self, phase: BattlePhase) -> None:
        self.phase = phase
        self.log.append("---")
        if phase == BattlePhase.VICTORY:
            self.log.append("You have defeated all enemies!")
            self.add_domain_event(
                VICTORY_EVENT,
                {
                    "session_id": self.id,
                    "enemy_unit_ids": [u.unit_id for u in self.enemy_party],
                    "vitality_mitigated": self.vitality_mitigated,
                },
            )
        else:
            self.log.append("Your party has been defeated.")
            self.add_domain_event(DEFEAT_EVENT, {"session_id": self.id})

    def _terminal_outcome(self) -> BattleOutcome:
        if self.phase == BattlePhase.VICTORY:
            return BattleOutcome.PLAYER_VICTORY
        return BattleOutcome.PLAYER_DEFEAT
