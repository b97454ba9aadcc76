"""
HumanEncounter: how many times a user has defeated each human unit.
Schema only.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, func
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, utc_now


class HumanEncounter(Base):
    __tablename__ = "human_encounters"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    unit_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("units.unit_id", ondelete="CASCADE"),
        primary_key=True,
        autoincrement=False,
    )
    defeats: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_defeated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=func.now(),
    )
