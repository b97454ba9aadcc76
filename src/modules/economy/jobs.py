"""
Work jobs: payouts, cooldowns, job XP and gathered resources.

Each job pays a random coin amount, grants job XP, yields a resource
stack that grows with the job level and may roll a rare bonus item.
Job levels advance every ``max(level * 100, 100)`` XP.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Dict, List, Optional, Tuple

from src.domain.models.items import ItemId

STREAK_BONUS_PER_DAY = 0.01
STREAK_BONUS_CAP = 0.25


@dataclass(frozen=True)
class Job:
    name: str
    display_name: str
    min_payout: int
    max_payout: int
    cooldown: timedelta
    xp_gain: int
    resource: ItemId
    resource_roll: Callable[[random.Random, int], int]
    rare_reward: Optional[Tuple[ItemId, float]] = None

    @property
    def level_field(self) -> str:
        return f"{self.name}_level"

    @property
    def xp_field(self) -> str:
        return f"{self.name}_xp"


JOBS: Dict[str, Job] = {
    "fishing": Job(
        name="fishing",
        display_name="Fishing",
        min_payout=25,
        max_payout=75,
        cooldown=timedelta(minutes=30),
        xp_gain=10,
        resource=ItemId.FISH,
        resource_roll=lambda rng, level: rng.randint(3, 8) + level // 2,
        rare_reward=(ItemId.GOLDEN_FISH, 0.05),
    ),
    "mining": Job(
        name="mining",
        display_name="Mining",
        min_payout=100,
        max_payout=300,
        cooldown=timedelta(hours=2),
        xp_gain=25,
        resource=ItemId.ORE,
        resource_roll=lambda rng, level: rng.randint(5, 15) + level,
        rare_reward=(ItemId.LARGE_GEODE, 0.02),
    ),
    "coding": Job(
        name="coding",
        display_name="Coding",
        min_payout=400,
        max_payout=800,
        cooldown=timedelta(hours=8),
        xp_gain=100,
        resource=ItemId.GEM,
        resource_roll=lambda rng, level: rng.randint(1, 3) + level // 5,
    ),
}


@dataclass(frozen=True)
class WorkRoll:
    base_coins: int
    streak_bonus: int
    items: List[Tuple[ItemId, int]]
    rare_drop: Optional[ItemId]

    @property
    def total_coins(self) -> int:
        return self.base_coins + self.streak_bonus


def job_xp_threshold(level: int) -> int:
    return max(level * 100, 100)


def apply_job_xp(level: int, xp: int, gained: int) -> Tuple[int, int, bool]:
    """Returns (new_level, new_xp, leveled_up)."""
    if gained <= 0:
        return level, xp, False
    xp += gained
    leveled = False
    while xp >= job_xp_threshold(level):
        xp -= job_xp_threshold(level)
        level += 1
        leveled = True
    return level, xp, leveled


def streak_bonus(base_coins: int, streak: int) -> int:
    if streak <= 1:
        return 0
    return int(round(base_coins * min(streak * STREAK_BONUS_PER_DAY, STREAK_BONUS_CAP)))


def roll_work(job: Job, level: int, streak: int, rng: random.Random) -> WorkRoll:
    """All randomness for one shift, resolved synchronously."""
    base = rng.randint(job.min_payout, job.max_payout)
    items: List[Tuple[ItemId, int]] = [(job.resource, job.resource_roll(rng, level))]
    rare: Optional[ItemId] = None
    if job.rare_reward is not None:
        rare_item, chance = job.rare_reward
        if rng.random() < chance:
            rare = rare_item
            items.append((rare_item, 1))
    return WorkRoll(base_coins=base, streak_bonus=streak_bonus(base, streak), items=items, rare_drop=rare)
