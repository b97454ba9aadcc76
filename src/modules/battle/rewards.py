"""
Victory reward rules.

Purpose
-------
Everything about a node victory that does not touch the database: loot
rolls, research drops, rarity-scaled coins and XP, and the victory log
text. `BattleService.resolve_node_victory` feeds these with the node
bundle and persists the outcome.

Domain
------
- Loot row drops when `uniform[0, 1) < drop_chance`
- Pets below Legendary with research data roll a research drop
  (Common 0.55, Rare 0.45, Epic 0.30); Focus Tonic multiplies the chance
  by 1.25, capped at 0.95
- Coins and XP scale by the average enemy reward multiplier, clamped to
  [1.0, 2.25], rounded half up; a zero base stays zero

LES 2025 Compliance
-------------------
✓ Pure functions - RNG injected, all rolls in one synchronous block
✓ Deterministic under a seeded `random.Random`
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from src.database.models.enums import UnitKind
from src.domain.models.items import ItemId, properties, research_item_for_unit
from src.domain.models.leveling import LevelUpResult
from src.domain.models.rarity import (
    RESEARCH_DROP_CHANCE,
    RarityLike,
    average_reward_scale,
    is_party_eligible_pet_rarity,
    round_half_up,
    to_rarity,
)
from src.modules.shared import constants
from src.modules.units.repository import OwnedUnit
from src.modules.world.service import EnemyTemplate, NodeLoot

LootLine = Tuple[ItemId, int]


def research_drop_chance(rarity: RarityLike, focus_active: bool = False) -> float:
    """
    >>> research_drop_chance("Common")
    0.55
    >>> research_drop_chance("Legendary", focus_active=True)
    0.0
    """
    chance = RESEARCH_DROP_CHANCE.get(to_rarity(rarity), 0.0)
    if focus_active:
        chance = min(chance * constants.FOCUS_RESEARCH_MULTIPLIER, constants.RESEARCH_CHANCE_CAP)
    return chance


def scale_reward(base: int, multiplier: float) -> int:
    """
    >>> scale_reward(100, 1.08)
    108
    >>> scale_reward(0, 2.0)
    0
    """
    if base <= 0:
        return 0
    return round_half_up(base * multiplier)


def focus_bonus_percent() -> int:
    return round_half_up((constants.FOCUS_RESEARCH_MULTIPLIER - 1.0) * 100)


@dataclass(frozen=True)
class VictoryRolls:
    """Outcome of the random part of a victory."""

    loot: List[LootLine]
    humans: List[EnemyTemplate]
    multiplier: float


def roll_victory(
    rewards: Sequence[NodeLoot],
    enemies: Sequence[EnemyTemplate],
    focus_active: bool,
    rng: random.Random,
) -> VictoryRolls:
    """Roll node loot and research drops; collect defeated humans."""
    loot: List[LootLine] = [(r.item, r.quantity) for r in rewards if rng.random() < r.drop_chance]

    humans: List[EnemyTemplate] = []
    for enemy in enemies:
        if enemy.kind == UnitKind.HUMAN:
            humans.append(enemy)
            continue
        if is_party_eligible_pet_rarity(enemy.rarity):
            continue
        research_item = research_item_for_unit(enemy.name)
        if research_item is None:
            continue
        chance = research_drop_chance(enemy.rarity, focus_active)
        if chance > 0 and rng.random() < chance:
            loot.append((research_item, 1))

    return VictoryRolls(
        loot=loot,
        humans=humans,
        multiplier=average_reward_scale(e.rarity for e in enemies),
    )


@dataclass(frozen=True)
class VictoryLog:
    """Applied victory rewards and the lines shown to the player."""

    lines: List[str]
    coins: int
    xp_per_unit: int
    loot: List[LootLine] = field(default_factory=list)
    level_ups: List[LevelUpResult] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


def format_loot(loot: Sequence[LootLine]) -> str:
    return ", ".join(f"`{qty}` {properties(item).display_name}" for item, qty in loot)


def build_victory_lines(
    *,
    node_name: str,
    base_coins: int,
    coins: int,
    base_xp: int,
    xp: int,
    multiplier: float,
    focus_active: bool,
    loot: Sequence[LootLine],
    vitality_mitigated: int,
    party: Sequence[OwnedUnit],
    results: Sequence[LevelUpResult],
) -> List[str]:
    lines = [f"🎉 **Victory at the {node_name}!**"]
    if coins != base_coins:
        lines.append(f"💰 You earned **{coins}** coins ({base_coins} base × {multiplier:.2f} rarity).")
    else:
        lines.append(f"💰 You earned **{coins}** coins.")
    if focus_active:
        lines.append(f"🧠 Focus active (+{focus_bonus_percent()}% research drop chance this battle).")
    if loot:
        lines.append(f"🎁 You found: **{format_loot(loot)}**!")
    if vitality_mitigated > 0:
        lines.append(f"🛡️ Vitality prevented **{vitality_mitigated}** damage this battle.")

    lines.append("\n--- **Party Members Gained XP** ---")
    for unit, result in zip(party, results):
        if result.did_level_up:
            atk, dfn, hp = result.stat_gains
            lines.append(
                f"🌟 **{unit.display_name} leveled up to {result.new_level}!** (+{atk} ATK, +{dfn} DEF, +{hp} HP)"
            )
        elif xp != base_xp:
            lines.append(f"- **{unit.display_name}** gained `{xp}` XP ({base_xp} base × {multiplier:.2f} rarity).")
        else:
            lines.append(f"- **{unit.display_name}** gained `{xp}` XP.")
    return lines
