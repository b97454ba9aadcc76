"""
Gamemaster Saga Domain Constants

Purpose
-------
Gameplay constants: party and army limits, resource recharge, tavern
economy, fame tiers and battle tuning. Infrastructure concerns (cache
TTLs, timeouts) belong in src/core/constants.py.

LES 2025 Compliance
-------------------
- Domain concerns only
- Pure data, no side effects at import time

Design Notes
------------
- Runtime-tunable values (research targets, starter unit) live in the
  bot_config table and are read through ConfigManager instead.
"""

from __future__ import annotations

from typing import Final, Tuple

# ============================================================================
# ARMY & PARTY
# ============================================================================

MAX_PARTY_SIZE: Final[int] = 5
MAX_ARMY_SIZE: Final[int] = 10

# ============================================================================
# RESOURCES
# ============================================================================

TP_REPLENISH_HOURS: Final[int] = 1
BATTLE_AP_COST: Final[int] = 1

# ============================================================================
# TAVERN
# ============================================================================

HIRE_COST: Final[int] = 250
TAVERN_BASE_ROTATION: Final[int] = 5
TAVERN_UNLOCK_STORY_STEPS: Final[Tuple[int, ...]] = (3, 6)  # +1 slot each
TAVERN_MAX_DAILY: Final[int] = 25
TAVERN_REROLL_COST: Final[int] = 150
TAVERN_MAX_DAILY_REROLLS: Final[int] = 3
TAVERN_SHOP_DAILY_COUNT: Final[int] = 3
PET_UNLOCK_STORY_PROGRESS: Final[int] = 5

FAME_PER_HIRE: Final[int] = 5
FAME_TIERS: Final[Tuple[int, ...]] = (0, 50, 150, 400)

# ============================================================================
# RECRUITMENT
# ============================================================================

TAMING_LURE_COST: Final[int] = 1
RESEARCH_ITEM_COST: Final[int] = 10

# ============================================================================
# TASKS & QUESTS
# ============================================================================

DAILY_TASK_COUNT: Final[int] = 2
WEEKLY_TASK_COUNT: Final[int] = 1
QUEST_BOARD_SIZE: Final[int] = 3

# ============================================================================
# BATTLE
# ============================================================================

HEALTH_POTION_HEAL: Final[int] = 50
GREATER_HEALTH_POTION_HEAL: Final[int] = 150
FOCUS_RESEARCH_MULTIPLIER: Final[float] = 1.25
RESEARCH_CHANCE_CAP: Final[float] = 0.95
FALLBACK_ENEMY_COUNT: Final[int] = 3

# ============================================================================
# CONSUMABLES
# ============================================================================

STAMINA_DRAFT_AP: Final[int] = 1
STAMINA_DRAFT_MAX_TP: Final[int] = 5
