"""
Unit leveling rules.

XP needed to leave level L is ``100 + 25 * L``. Surplus XP carries over,
so a single large award can produce several level-ups. Each level grants
+2 attack, +1 defense and +10 health.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

BASE_XP_PER_LEVEL = 100
XP_PER_LEVEL_STEP = 25
STAT_GAINS_PER_LEVEL: Tuple[int, int, int] = (2, 1, 10)  # (attack, defense, health)


def xp_for_level(level: int) -> int:
    """XP required to advance from `level` to `level + 1`."""
    return BASE_XP_PER_LEVEL + level * XP_PER_LEVEL_STEP


@dataclass(frozen=True)
class LevelUpResult:
    player_unit_id: int
    new_level: int
    new_xp: int
    stat_gains: Tuple[int, int, int]
    levels_gained: int

    @property
    def did_level_up(self) -> bool:
        return self.levels_gained > 0


def apply_unit_xp(player_unit_id: int, current_level: int, current_xp: int, xp_gained: int) -> LevelUpResult:
    """
    Add XP to a unit and resolve any level-ups.

    Example
    -------
    >>> apply_unit_xp(7, current_level=1, current_xp=0, xp_gained=130)
    LevelUpResult(player_unit_id=7, new_level=2, new_xp=5, stat_gains=(2, 1, 10), levels_gained=1)
    """
    new_xp = current_xp + max(xp_gained, 0)
    new_level = current_level
    gained = 0

    needed = xp_for_level(new_level)
    while new_xp >= needed:
        new_xp -= needed
        new_level += 1
        gained += 1
        needed = xp_for_level(new_level)

    atk, dfn, hp = STAT_GAINS_PER_LEVEL
    return LevelUpResult(
        player_unit_id=player_unit_id,
        new_level=new_level,
        new_xp=new_xp,
        stat_gains=(atk * gained, dfn * gained, hp * gained),
        levels_gained=gained,
    )
