"""
TavernUserRotation: the ordered recruit ids a user sees today.
Schema only.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import List

from sqlalchemy import BigInteger, Date, DateTime, Integer, func
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, utc_now


class TavernUserRotation(Base):
    __tablename__ = "tavern_user_rotation"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    rotation: Mapped[List[int]] = mapped_column(ARRAY(Integer), nullable=False, default=list)
    day: Mapped[date] = mapped_column(Date, nullable=False)
    generated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=func.now(),
    )
