"""
Task templates and per-player task assignments.
Schema only (daily/weekly rotation is service logic).
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, utc_now
from src.database.models.enums import TaskType, pg_enum


class Task(Base):
    """
    Task template.

    `objective_key` is matched verbatim against progress keys such as
    "WinBattle", "WinBattle:3", "Work" or "GatherItem:1".
    """

    __tablename__ = "tasks"

    task_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    task_type: Mapped[TaskType] = mapped_column(pg_enum(TaskType, "task_type"), nullable=False)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    objective_key: Mapped[str] = mapped_column(String(100), nullable=False)
    objective_goal: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    reward_coins: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    reward_item_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("items.item_id", ondelete="SET NULL"), nullable=True
    )
    reward_item_quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class PlayerTask(Base):
    """A task assigned to one player for one period."""

    __tablename__ = "player_tasks"
    __table_args__ = (
        CheckConstraint("progress >= 0", name="progress_non_negative"),
        Index("ix_player_tasks_user_assigned", "user_id", "assigned_at"),
    )

    player_task_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    task_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tasks.task_id", ondelete="CASCADE"), nullable=False
    )
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    claimed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
