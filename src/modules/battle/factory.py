"""
Battle unit builders.

Turns owned units (plus bond bonuses) and enemy templates (plus story
scaling) into `BattleUnit` snapshots. Pure functions; no I/O.
"""

from __future__ import annotations

from typing import List, Mapping, Optional, Sequence, Tuple

from src.domain.models.battle import BattleUnit
from src.domain.models.rarity import round_half_up
from src.modules.units.bonus_logic import BonusTriple, vitality_from_health_bonus
from src.modules.units.repository import OwnedUnit
from src.modules.world.service import EnemyTemplate

EnemyScale = Tuple[float, float, float]  # (attack, defense, health)

NO_SCALE: EnemyScale = (1.0, 1.0, 1.0)


def enemy_scaling(player_story: int, node_story_required: int) -> EnemyScale:
    """
    Enemy stat multipliers by how far the player is past the node.

    >>> enemy_scaling(9, 2)
    (1.25, 1.25, 1.35)
    >>> enemy_scaling(0, 4)
    (0.9, 0.95, 0.9)
    """
    diff = player_story - node_story_required
    if diff >= 6:
        return (1.25, 1.25, 1.35)
    if diff >= 3:
        return (1.15, 1.10, 1.20)
    if diff <= -3:
        return (0.90, 0.95, 0.90)
    return NO_SCALE


def battle_unit_from_owned(unit: OwnedUnit, bonus: Optional[BonusTriple] = None) -> BattleUnit:
    atk, dfn, hp = bonus or (0, 0, 0)
    max_hp = unit.current_health + hp
    return BattleUnit(
        name=unit.display_name,
        unit_id=unit.unit_id,
        current_hp=max_hp,
        max_hp=max_hp,
        attack=unit.current_attack + atk,
        defense=unit.current_defense + dfn,
        is_recruitable=False,
        kind=unit.kind,
        vitality=vitality_from_health_bonus(hp),
        player_unit_id=unit.player_unit_id,
    )


def battle_unit_from_enemy(enemy: EnemyTemplate, scale: EnemyScale = NO_SCALE) -> BattleUnit:
    atk_scale, def_scale, hp_scale = scale
    max_hp = max(round_half_up(enemy.health * hp_scale), 1)
    return BattleUnit(
        name=enemy.name,
        unit_id=enemy.unit_id,
        current_hp=max_hp,
        max_hp=max_hp,
        attack=round_half_up(enemy.attack * atk_scale),
        defense=round_half_up(enemy.defense * def_scale),
        is_recruitable=enemy.is_recruitable,
        kind=enemy.kind,
    )


def synergy_line(name: str, bonus: BonusTriple) -> str:
    atk, dfn, hp = bonus
    return f"🔗 {name} gains +{atk} Atk / +{dfn} Def / +{hp} HP from bonded unit(s)."


def build_player_party(
    party: Sequence[OwnedUnit], bonuses: Mapping[int, BonusTriple]
) -> Tuple[List[BattleUnit], List[str]]:
    """Party snapshot with bond bonuses applied, plus one synergy line per boosted unit."""
    units: List[BattleUnit] = []
    lines: List[str] = []
    for owned in party:
        bonus = bonuses.get(owned.player_unit_id)
        if bonus is not None and any(v > 0 for v in bonus):
            lines.append(synergy_line(owned.display_name, bonus))
        units.append(battle_unit_from_owned(owned, bonus))
    return units, lines


def build_enemy_party(enemies: Sequence[EnemyTemplate], scale: EnemyScale = NO_SCALE) -> List[BattleUnit]:
    return [battle_unit_from_enemy(e, scale) for e in enemies]

