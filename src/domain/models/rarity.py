"""
Rarity ladder and the tables keyed by it.

Purpose
-------
Single source for rarity ordering and every per-rarity tuning table used
by eligibility checks, pricing, bond bonuses, research odds, reward
scaling and contract requirements.

Responsibilities
----------------
- Explicit ordinal mapping (Common=0 ... Fabled=6)
- Comparison helpers (`rarity_rank`, `rarity_at_least`)
- Per-rarity lookup tables

LES 2025 Compliance
-------------------
- Pure functions, no I/O
- Tables are immutable mappings
"""

from __future__ import annotations

import math
from types import MappingProxyType
from typing import Iterable, Mapping, Union

from src.database.models.enums import UnitRarity

RarityLike = Union[UnitRarity, str]

REWARD_SCALE_MIN = 1.0
REWARD_SCALE_MAX = 2.25

RARITY_RANK: Mapping[UnitRarity, int] = MappingProxyType(
    {rarity: idx for idx, rarity in enumerate(UnitRarity)}
)

# ============================================================================
# PER-RARITY TABLES
# ============================================================================

BOND_RARITY_MULTIPLIER: Mapping[UnitRarity, float] = MappingProxyType(
    {
        UnitRarity.COMMON: 0.05,
        UnitRarity.RARE: 0.08,
        UnitRarity.EPIC: 0.12,
        UnitRarity.LEGENDARY: 0.18,
        UnitRarity.UNIQUE: 0.24,
        UnitRarity.MYTHICAL: 0.30,
        UnitRarity.FABLED: 0.40,
    }
)

HIRE_COST_MULTIPLIER: Mapping[UnitRarity, float] = MappingProxyType(
    {
        UnitRarity.COMMON: 1.0,
        UnitRarity.RARE: 1.15,
        UnitRarity.EPIC: 1.35,
        UnitRarity.LEGENDARY: 1.65,
        UnitRarity.UNIQUE: 1.95,
        UnitRarity.MYTHICAL: 2.25,
        UnitRarity.FABLED: 2.75,
    }
)

# Tavern ordering weight; higher rarities float up.
TAVERN_WEIGHT: Mapping[UnitRarity, float] = MappingProxyType(
    {
        UnitRarity.COMMON: 1.0,
        UnitRarity.RARE: 1.1,
        UnitRarity.EPIC: 1.2,
        UnitRarity.LEGENDARY: 1.3,
        UnitRarity.UNIQUE: 1.4,
        UnitRarity.MYTHICAL: 1.5,
        UnitRarity.FABLED: 1.6,
    }
)

DEFEATS_REQUIRED: Mapping[UnitRarity, int] = MappingProxyType(
    {
        UnitRarity.COMMON: 2,
        UnitRarity.RARE: 3,
        UnitRarity.EPIC: 5,
        UnitRarity.LEGENDARY: 7,
        UnitRarity.UNIQUE: 9,
        UnitRarity.MYTHICAL: 12,
        UnitRarity.FABLED: 15,
    }
)

# Legendary and above never drop research data.
RESEARCH_DROP_CHANCE: Mapping[UnitRarity, float] = MappingProxyType(
    {
        UnitRarity.COMMON: 0.55,
        UnitRarity.RARE: 0.45,
        UnitRarity.EPIC: 0.30,
    }
)

REWARD_SCALE: Mapping[UnitRarity, float] = MappingProxyType(
    {
        UnitRarity.COMMON: 1.0,
        UnitRarity.RARE: 1.08,
        UnitRarity.EPIC: 1.18,
        UnitRarity.LEGENDARY: 1.35,
        UnitRarity.UNIQUE: 1.55,
        UnitRarity.MYTHICAL: 1.80,
        UnitRarity.FABLED: 2.10,
    }
)


# ============================================================================
# HELPERS
# ============================================================================


def to_rarity(value: RarityLike) -> UnitRarity:
    """Coerce a stored label or enum member to `UnitRarity`."""
    if isinstance(value, UnitRarity):
        return value
    return UnitRarity(value)


def rarity_rank(value: RarityLike) -> int:
    return RARITY_RANK[to_rarity(value)]


def rarity_at_least(value: RarityLike, floor: RarityLike) -> bool:
    return rarity_rank(value) >= rarity_rank(floor)


def is_party_eligible_pet_rarity(value: RarityLike) -> bool:
    """Pets may join the party only at Legendary or above."""
    return rarity_at_least(value, UnitRarity.LEGENDARY)


def rarity_tier_for_story(story_progress_required: int) -> UnitRarity:
    """
    Minimum enemy rarity for generated node encounters.

    Nodes below story 3 draw from the whole ladder, 3-5 from Rare up,
    6 and beyond from Epic up.
    """
    if story_progress_required >= 6:
        return UnitRarity.EPIC
    if story_progress_required >= 3:
        return UnitRarity.RARE
    return UnitRarity.COMMON


def rarities_at_least(floor: RarityLike) -> list[UnitRarity]:
    floor_rank = rarity_rank(floor)
    return [r for r in UnitRarity if RARITY_RANK[r] >= floor_rank]


RARITY_EMOJI: Mapping[UnitRarity, str] = MappingProxyType(
    {
        UnitRarity.COMMON: "⚪",
        UnitRarity.RARE: "🟢",
        UnitRarity.EPIC: "🔵",
        UnitRarity.LEGENDARY: "🟣",
        UnitRarity.UNIQUE: "🟡",
        UnitRarity.MYTHICAL: "🔴",
        UnitRarity.FABLED: "🟦",
    }
)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative amounts (coins, XP, prices)."""
    return math.floor(value + 0.5)


def average_reward_scale(rarities: Iterable[RarityLike]) -> float:
    """
    Mean reward multiplier of a set of enemies, clamped to [1.0, 2.25].

    >>> average_reward_scale(["Rare", "Rare"])
    1.08
    >>> average_reward_scale([])
    1.0
    """
    scales = [REWARD_SCALE[to_rarity(r)] for r in rarities]
    if not scales:
        return 1.0
    return min(max(sum(scales) / len(scales), REWARD_SCALE_MIN), REWARD_SCALE_MAX)
