"""
Battle Module
=============

Saga battles: starting, turns, taming and contracts mid-fight, and
victory rewards.
"""

from .factory import battle_unit_from_enemy, battle_unit_from_owned, enemy_scaling, synergy_line
from .registry import BattleGame, BattleRegistry
from .rewards import VictoryLog, research_drop_chance, roll_victory, scale_reward
from .service import BattleService

__all__ = [
    "BattleService",
    "BattleGame",
    "BattleRegistry",
    "VictoryLog",
    "enemy_scaling",
    "battle_unit_from_owned",
    "battle_unit_from_enemy",
    "synergy_line",
    "research_drop_chance",
    "roll_victory",
    "scale_reward",
]
