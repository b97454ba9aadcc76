"""
PlayerUnit: a unit owned by a player, with its own level and stats.
Schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base
from src.database.models.enums import UnitRarity, pg_enum


class PlayerUnit(Base):
    """
    Owned unit instance.

    `rarity` is a snapshot of the master rarity taken at creation time.
    Training fields are either all set or all cleared.
    """

    __tablename__ = "player_units"
    __table_args__ = (
        CheckConstraint("current_level >= 1", name="level_positive"),
        CheckConstraint("current_xp >= 0", name="xp_non_negative"),
        CheckConstraint(
            "(is_training AND training_stat IS NOT NULL AND training_ends_at IS NOT NULL)"
            " OR (NOT is_training AND training_stat IS NULL AND training_ends_at IS NULL)",
            name="training_consistent",
        ),
        Index("ix_player_units_user", "user_id"),
        Index("ix_player_units_user_party", "user_id", "is_in_party"),
    )

    player_unit_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    unit_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("units.unit_id", ondelete="CASCADE"),
        nullable=False,
    )

    nickname: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    current_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    current_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_attack: Mapped[int] = mapped_column(Integer, nullable=False)
    current_defense: Mapped[int] = mapped_column(Integer, nullable=False)
    current_health: Mapped[int] = mapped_column(Integer, nullable=False)

    is_in_party: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_training: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    training_stat: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    training_ends_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    rarity: Mapped[UnitRarity] = mapped_column(pg_enum(UnitRarity, "unit_rarity"), nullable=False)
