"""
EquippableUnitBond: a pet equipped onto a host unit.
Schema only.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, func, text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, utc_now


class EquippableUnitBond(Base):
    """
    Bond history row.

    A unit can be the equipped side of at most one row ever (UNIQUE), and a
    host has at most one row with `is_equipped` set. Unequipping keeps the
    row with `is_equipped = false`.
    """

    __tablename__ = "equippable_unit_bonds"
    __table_args__ = (
        Index("ix_bonds_host", "host_player_unit_id"),
        Index(
            "uq_bonds_active_host",
            "host_player_unit_id",
            unique=True,
            postgresql_where=text("is_equipped"),
        ),
    )

    bond_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    host_player_unit_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("player_units.player_unit_id", ondelete="CASCADE"),
        nullable=False,
    )
    equipped_player_unit_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("player_units.player_unit_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=func.now(),
    )
    is_equipped: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
