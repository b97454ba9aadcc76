"""
Tavern pricing, fame and rotation ordering.

Purpose
-------
Pure functions behind the tavern: hire costs, fame tiers and perks, shop
discounts, and the deterministic orderings used for the global daily pool,
each user's visible recruits, rerolls and the daily shop.

Domain
------
- Hire cost = round_up_to_5(250 x rarity multiplier)
- Fame tiers at 0 / 50 / 150 / 400 with perks
  (shop discount, reroll discount, extra visible recruits)
- Visible recruits = 5 + fame extras + 1 at story 3 + 1 at story 6
- Orderings hash (year, day-of-year, ids) with blake2b so every process
  and restart agrees on them

LES 2025 Compliance
-------------------
✓ Pure functions, no I/O
✓ Deterministic per (user, UTC day)
"""

from __future__ import annotations

import hashlib
import struct
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple, TypeVar

from src.domain.models.items import TAVERN_SHOP_POOL, ItemId
from src.domain.models.rarity import HIRE_COST_MULTIPLIER, TAVERN_WEIGHT, RarityLike, round_half_up, to_rarity
from src.modules.shared import constants

T = TypeVar("T")

_U64_MAX = 2**64 - 1
STORY_WEIGHT_DIVISOR = 20.0
STORY_WEIGHT_CAP = 0.6


class FamePerks(NamedTuple):
    shop_discount: float
    reroll_discount: float
    extra_visible: int


_FAME_PERKS: Tuple[FamePerks, ...] = (
    FamePerks(0.0, 0.0, 0),
    FamePerks(0.05, 0.0, 0),
    FamePerks(0.10, 0.25, 1),
    FamePerks(0.15, 0.50, 2),
)


# ============================================================================
# ROUNDING & COSTS
# ============================================================================


def round_up_to_5(value: int) -> int:
    """
    Next multiple of five; non-positive input yields 1.

    >>> round_up_to_5(86), round_up_to_5(90), round_up_to_5(0)
    (90, 90, 1)
    """
    if value <= 0:
        return 1
    remainder = value % 5
    return value if remainder == 0 else value + (5 - remainder)


def apply_shop_discount(base_cost: int, rate: float) -> int:
    """
    Discounted price rounded up to a coin step of five.

    >>> apply_shop_discount(101, 0.15)
    90
    """
    return max(round_up_to_5(round_half_up(base_cost * (1.0 - rate))), 1)


def hire_cost_for_rarity(rarity: RarityLike) -> int:
    """
    >>> [hire_cost_for_rarity(r) for r in ("Common", "Rare", "Fabled")]
    [250, 290, 690]
    """
    return round_up_to_5(round_half_up(constants.HIRE_COST * HIRE_COST_MULTIPLIER[to_rarity(rarity)]))


# ============================================================================
# FAME
# ============================================================================


def fame_tier(fame: int) -> Tuple[int, float]:
    """Tier index and progress (0..1) toward the next tier."""
    tiers = constants.FAME_TIERS
    idx = 0
    for i in range(len(tiers) - 1, -1, -1):
        if fame >= tiers[i]:
            idx = i
            break
    if idx + 1 >= len(tiers):
        return idx, 1.0
    current, nxt = tiers[idx], tiers[idx + 1]
    return idx, min(max((fame - current) / (nxt - current), 0.0), 1.0)


def fame_perks(tier_idx: int) -> FamePerks:
    return _FAME_PERKS[min(max(tier_idx, 0), len(_FAME_PERKS) - 1)]


def fame_to_next_tier(fame: int) -> Optional[int]:
    """Points still needed for the next tier; None at max tier."""
    idx, _ = fame_tier(fame)
    if idx + 1 >= len(constants.FAME_TIERS):
        return None
    return constants.FAME_TIERS[idx + 1] - fame


def reroll_cost_for_fame(fame: int) -> int:
    tier, _ = fame_tier(fame)
    return apply_shop_discount(constants.TAVERN_REROLL_COST, fame_perks(tier).reroll_discount)


# ============================================================================
# DETERMINISTIC ORDERING
# ============================================================================


def stable_hash(*parts: int) -> int:
    """64-bit hash of a tuple of integers, identical across processes."""
    payload = struct.pack(f">{len(parts)}q", *parts)
    return int.from_bytes(hashlib.blake2b(payload, digest_size=8).digest(), "big")


def _day_parts(day: date) -> Tuple[int, int]:
    return day.year, day.timetuple().tm_yday


def daily_pool_order(unit_ids: Iterable[int], day: date) -> List[int]:
    """The global daily pool: same for every player on a given UTC day."""
    year, ordinal = _day_parts(day)
    ordered = sorted(unit_ids, key=lambda uid: (stable_hash(year, ordinal, uid), uid))
    return ordered[: constants.TAVERN_MAX_DAILY]


def jitter(user_id: int, day: date, unit_id: int) -> float:
    year, ordinal = _day_parts(day)
    return stable_hash(user_id, year, ordinal, unit_id) / _U64_MAX


def tavern_weight(rarity: RarityLike, story_progress: int) -> float:
    return TAVERN_WEIGHT[to_rarity(rarity)] + min(story_progress / STORY_WEIGHT_DIVISOR, STORY_WEIGHT_CAP)


def order_by_weighted_jitter(
    entries: Sequence[T],
    user_id: int,
    day: date,
    story_progress: int,
    *,
    unit_id_of,
    rarity_of,
) -> List[T]:
    """Sort entries by jitter x weight, highest first; ties keep input order."""

    def score(entry: T) -> float:
        return jitter(user_id, day, unit_id_of(entry)) * tavern_weight(rarity_of(entry), story_progress)

    return sorted(entries, key=score, reverse=True)


def visible_cap(story_progress: int, extra_visible: int = 0) -> int:
    unlocked = sum(1 for step in constants.TAVERN_UNLOCK_STORY_STEPS if story_progress >= step)
    return constants.TAVERN_BASE_ROTATION + extra_visible + unlocked


def reroll_rotation(
    pool_ids: Sequence[int],
    currently_visible: Iterable[int],
    user_id: int,
    day: date,
    reroll_number: int,
    cap: int,
) -> List[int]:
    """
    New rotation after a reroll.

    The pool is shuffled per (user, day, reroll number). When the pool holds
    at least two screens of recruits, units that were on display leave the
    rotation so the weighted ranking picks from fresh faces; smaller pools
    keep everyone, with the displayed units at the back.
    """
    year, ordinal = _day_parts(day)
    shown = set(currently_visible)
    shuffled = sorted(pool_ids, key=lambda uid: (stable_hash(user_id, year, ordinal, reroll_number, uid), uid))
    fresh = [uid for uid in shuffled if uid not in shown]
    if len(pool_ids) >= cap * 2:
        return fresh
    return fresh + [uid for uid in shuffled if uid in shown]


def daily_shop_items(user_id: int, day: date) -> List[ItemId]:
    year, ordinal = _day_parts(day)
    ordered = sorted(TAVERN_SHOP_POOL, key=lambda item: stable_hash(user_id, year, ordinal, int(item)))
    return ordered[: constants.TAVERN_SHOP_DAILY_COUNT]


def seconds_until_reset(now: datetime) -> int:
    """Seconds until the next UTC midnight."""
    now = now.astimezone(timezone.utc)
    reset = datetime.combine(now.date() + timedelta(days=1), time.min, tzinfo=timezone.utc)
    return max(int((reset - now).total_seconds()), 0)


def format_reset(seconds: int) -> str:
    """
    >>> format_reset(5 * 3600 + 12 * 60), format_reset(59)
    ('5h 12m', '0m')
    """
    hours, minutes = seconds // 3600, (seconds % 3600) // 60
    return f"{hours}h {minutes}m" if hours > 0 else f"{minutes}m"


def is_pet_unlocked(story_progress: int) -> bool:
    return story_progress >= constants.PET_UNLOCK_STORY_PROGRESS


__all__ = [
    "FamePerks",
    "apply_shop_discount",
    "daily_pool_order",
    "daily_shop_items",
    "fame_perks",
    "fame_tier",
    "fame_to_next_tier",
    "format_reset",
    "hire_cost_for_rarity",
    "is_pet_unlocked",
    "jitter",
    "order_by_weighted_jitter",
    "reroll_cost_for_fame",
    "reroll_rotation",
    "round_half_up",
    "round_up_to_5",
    "seconds_until_reset",
    "stable_hash",
    "tavern_weight",
    "visible_cap",
]
