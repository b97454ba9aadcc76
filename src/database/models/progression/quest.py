"""
Quest templates, their reward bundles and per-player quest state.
Schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, utc_now
from src.database.models.enums import PlayerQuestStatus, QuestType, pg_enum


class Quest(Base):
    """
    Quest template.

    For Battle quests `objective_key` is a comma-separated list of enemy
    unit ids; for Riddle quests it is the expected answer.
    """

    __tablename__ = "quests"

    quest_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    giver_name: Mapped[str] = mapped_column(String(100), nullable=False)
    difficulty: Mapped[str] = mapped_column(String(32), nullable=False, default="Normal")
    quest_type: Mapped[QuestType] = mapped_column(pg_enum(QuestType, "quest_type_enum"), nullable=False)
    objective_key: Mapped[str] = mapped_column(String(255), nullable=False)


class QuestReward(Base):
    __tablename__ = "quest_rewards"

    quest_reward_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    quest_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("quests.quest_id", ondelete="CASCADE"), nullable=False, index=True
    )
    reward_coins: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    reward_item_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("items.item_id", ondelete="SET NULL"), nullable=True
    )
    reward_item_quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class PlayerQuest(Base):
    __tablename__ = "player_quests"
    __table_args__ = (
        Index("ix_player_quests_user_status", "user_id", "status"),
    )

    player_quest_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    quest_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("quests.quest_id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[PlayerQuestStatus] = mapped_column(
        pg_enum(PlayerQuestStatus, "player_quest_status_enum"),
        nullable=False,
        default=PlayerQuestStatus.OFFERED,
    )
    offered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
