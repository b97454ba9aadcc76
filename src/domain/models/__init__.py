"""
Domain models for the Gamemaster Saga core.

Purpose
-------
Pure game rules, separate from the SQLAlchemy schema in
src/database/models: rarity tables, the item catalog, unit leveling and
the battle state machine. Services convert database rows into these
objects and persist the results.
"""

from .base import DomainEvent, DomainValidationError, Entity
from .battle import BattleOutcome, BattlePhase, BattleSession, BattleUnit
from .items import ItemCategory, ItemId, ItemProperties, ItemRarity
from .leveling import LevelUpResult, apply_unit_xp, xp_for_level

__all__ = [
    "Entity",
    "DomainEvent",
    "DomainValidationError",
    "BattleSession",
    "BattleUnit",
    "BattlePhase",
    "BattleOutcome",
    "ItemId",
    "ItemProperties",
    "ItemCategory",
    "ItemRarity",
    "LevelUpResult",
    "apply_unit_xp",
    "xp_for_level",
]
