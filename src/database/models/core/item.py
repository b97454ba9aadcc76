"""
Item and Inventory tables.

`items` mirrors the closed item catalog in `src.domain.models.items` and is
seeded from it; `inventories` holds per-user quantities.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base


class Item(Base):
    __tablename__ = "items"

    item_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")


class Inventory(Base):
    """One row per (user, item). Rows at quantity 0 are kept."""

    __tablename__ = "inventories"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="quantity_non_negative"),
        Index("ix_inventories_user", "user_id"),
    )

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    item_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("items.item_id", ondelete="CASCADE"),
        primary_key=True,
        autoincrement=False,
    )
    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
