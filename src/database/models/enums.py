"""
Database Model Enums
====================

Typed constants backing the PostgreSQL enum columns of the saga schema.

Values are the exact labels stored in the database enum types
(`unit_kind`, `unit_rarity`, `task_type`, `quest_type_enum`,
`player_quest_status_enum`). Ordering and gameplay meaning of rarities
live in `src.domain.models.rarity`.
"""

from __future__ import annotations

import enum
from typing import Dict, Type

from sqlalchemy import Enum as SAEnum


class UnitKind(str, enum.Enum):
    """Whether a unit is a hireable/contractable human or a tameable pet."""

    HUMAN = "Human"
    PET = "Pet"


class UnitRarity(str, enum.Enum):
    """Seven-step rarity ladder, declared lowest to highest."""

    COMMON = "Common"
    RARE = "Rare"
    EPIC = "Epic"
    LEGENDARY = "Legendary"
    UNIQUE = "Unique"
    MYTHICAL = "Mythical"
    FABLED = "Fabled"


class TaskType(str, enum.Enum):
    DAILY = "Daily"
    WEEKLY = "Weekly"


class QuestType(str, enum.Enum):
    BATTLE = "Battle"
    RIDDLE = "Riddle"


class PlayerQuestStatus(str, enum.Enum):
    """Offered -> Accepted -> Completed | Failed."""

    OFFERED = "Offered"
    ACCEPTED = "Accepted"
    COMPLETED = "Completed"
    FAILED = "Failed"


class TrainingStat(str, enum.Enum):
    ATTACK = "attack"
    DEFENSE = "defense"


_ENUM_TYPES: Dict[str, SAEnum] = {}


def pg_enum(enum_cls: Type[enum.Enum], name: str) -> SAEnum:
    """
    Column type storing the enum's values (not member names).

    One SAEnum instance per database type name, shared by every column.
    """
    if name not in _ENUM_TYPES:
        _ENUM_TYPES[name] = SAEnum(
            enum_cls,
            name=name,
            values_callable=lambda members: [m.value for m in members],
            validate_strings=True,
        )
    return _ENUM_TYPES[name]
