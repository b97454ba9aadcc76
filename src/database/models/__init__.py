"""
Database Models Package
=======================

SQLAlchemy ORM models for the Gamemaster Saga core, organized by domain.

- Schema only, no business logic
- `Mapped[]` annotations with `mapped_column()`
- Check constraints and partial unique indexes carry the table-level
  invariants (non-negative balance, one open draft per unit, one active
  bond per host)

Domain Organization
-------------------
- core: profiles, saga profile, bot_config, items and inventory
- units: unit masters, owned units, bonds, encounters, contracts, research
- tavern: fame and daily rotation
- world: map nodes, node enemies and node rewards
- crafting: recipes and ingredients
- progression: tasks and quests
- enums: shared PostgreSQL enum types
"""

from src.core.database.base import Base

from .core import BotConfig, Inventory, Item, Profile, SagaProfile
from .crafting import Recipe, RecipeIngredient
from .progression import PlayerQuest, PlayerTask, Quest, QuestReward, Task
from .tavern import TavernFame, TavernUserRotation
from .units import (
    DraftedHumanContract,
    EquippableUnitBond,
    HumanEncounter,
    PlayerUnit,
    Unit,
    UnitResearchProgress,
)
from .world import MapNode, NodeEnemy, NodeReward

__all__ = [
    "Base",
    "Profile",
    "SagaProfile",
    "BotConfig",
    "Item",
    "Inventory",
    "Unit",
    "PlayerUnit",
    "EquippableUnitBond",
    "HumanEncounter",
    "DraftedHumanContract",
    "UnitResearchProgress",
    "TavernFame",
    "TavernUserRotation",
    "MapNode",
    "NodeEnemy",
    "NodeReward",
    "Recipe",
    "RecipeIngredient",
    "Task",
    "PlayerTask",
    "Quest",
    "QuestReward",
    "PlayerQuest",
]
