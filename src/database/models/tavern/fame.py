"""
TavernFame: per-user tavern standing and daily reroll counter.
Schema only.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, Date, Integer
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base


class TavernFame(Base):
    """
    `daily_rerolls` counts rerolls done on the `last_reroll` date; a new
    day resets the count on the next reroll.
    """

    __tablename__ = "tavern_fame"
    __table_args__ = (
        CheckConstraint("fame >= 0", name="fame_non_negative"),
        CheckConstraint("daily_rerolls >= 0", name="rerolls_non_negative"),
    )

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    fame: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    daily_rerolls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_reroll: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
