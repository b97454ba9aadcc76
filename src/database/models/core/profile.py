"""
Profile: coin balance, job progression and work streak per user.
Schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, TimestampMixin


class Profile(Base, TimestampMixin):
    """
    Economic profile of a player.

    Created lazily with INSERT ... ON CONFLICT DO NOTHING on first use.
    `balance` never drops below zero after a commit.
    """

    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="balance_non_negative"),
        CheckConstraint(
            "fishing_level >= 1 AND mining_level >= 1 AND coding_level >= 1",
            name="job_levels_positive",
        ),
        CheckConstraint(
            "fishing_xp >= 0 AND mining_xp >= 0 AND coding_xp >= 0",
            name="job_xp_non_negative",
        ),
    )

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")

    last_work: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    work_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    fishing_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    fishing_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    mining_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    mining_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    coding_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    coding_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
