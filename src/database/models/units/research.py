"""
UnitResearchProgress: tame attempts accumulated per (user, pet).
Schema only.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, func
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, utc_now


class UnitResearchProgress(Base):
    __tablename__ = "unit_research_progress"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    unit_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("units.unit_id", ondelete="CASCADE"),
        primary_key=True,
        autoincrement=False,
    )
    tamed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=func.now(),
    )
