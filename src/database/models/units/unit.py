"""
Unit: master definitions of every human and pet in the saga.
Schema only.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base
from src.database.models.enums import UnitKind, UnitRarity, pg_enum


class Unit(Base):
    __tablename__ = "units"

    unit_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    base_attack: Mapped[int] = mapped_column(Integer, nullable=False)
    base_defense: Mapped[int] = mapped_column(Integer, nullable=False)
    base_health: Mapped[int] = mapped_column(Integer, nullable=False)

    is_recruitable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    kind: Mapped[UnitKind] = mapped_column(pg_enum(UnitKind, "unit_kind"), nullable=False)
    rarity: Mapped[UnitRarity] = mapped_column(
        pg_enum(UnitRarity, "unit_rarity"),
        nullable=False,
        default=UnitRarity.COMMON,
    )
