"""
Bond bonus math.

An equipped pet lends a share of its own stats to its host:

    base = rarity_multiplier(equipped rarity) + sqrt(equipped level) / 10
    attack  = ceil(atk * base)
    defense = ceil(def * base * 0.8)
    health  = ceil(hp  * base * 1.2)

Vitality (enemy damage absorbed per hit) is one point per 10 bonus health.
"""

from __future__ import annotations

import math
from typing import Tuple

from src.database.models.enums import UnitRarity
from src.domain.models.rarity import BOND_RARITY_MULTIPLIER, RarityLike, to_rarity

DEFENSE_FACTOR = 0.8
HEALTH_FACTOR = 1.2
VITALITY_HEALTH_DIVISOR = 10

BonusTriple = Tuple[int, int, int]


def bond_bonus(rarity: RarityLike, level: int, attack: int, defense: int, health: int) -> BonusTriple:
    """
    Stat bonus granted by an equipped unit.

    Example
    -------
    >>> bond_bonus("Legendary", 4, 20, 10, 100)
    (8, 4, 46)
    """
    base = BOND_RARITY_MULTIPLIER.get(to_rarity(rarity), BOND_RARITY_MULTIPLIER[UnitRarity.COMMON])
    base += math.sqrt(max(level, 0)) / 10.0
    return (
        math.ceil(attack * base),
        math.ceil(defense * base * DEFENSE_FACTOR),
        math.ceil(health * base * HEALTH_FACTOR),
    )


def vitality_from_health_bonus(health_bonus: int) -> int:
    return max(health_bonus, 0) // VITALITY_HEALTH_DIVISOR
