"""
Story map: nodes, the enemies placed on them and their loot tables.
Schema only.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import CheckConstraint, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base


class MapNode(Base):
    __tablename__ = "map_nodes"

    node_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    area_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    story_progress_required: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reward_coins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reward_unit_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class NodeEnemy(Base):
    """Join row; one row per enemy slot on a node."""

    __tablename__ = "node_enemies"

    node_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("map_nodes.node_id", ondelete="CASCADE"),
        primary_key=True,
        autoincrement=False,
    )
    unit_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("units.unit_id", ondelete="CASCADE"),
        primary_key=True,
        autoincrement=False,
    )


class NodeReward(Base):
    __tablename__ = "node_rewards"
    __table_args__ = (
        CheckConstraint("drop_chance >= 0 AND drop_chance <= 1", name="drop_chance_range"),
        CheckConstraint("quantity > 0", name="quantity_positive"),
    )

    node_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("map_nodes.node_id", ondelete="CASCADE"),
        primary_key=True,
        autoincrement=False,
    )
    item_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("items.item_id", ondelete="CASCADE"),
        primary_key=True,
        autoincrement=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    drop_chance: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
