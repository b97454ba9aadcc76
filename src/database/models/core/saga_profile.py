"""
SagaProfile: Action Points, Training Points and story progress.
Schema only.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Integer, func
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, utc_now

DEFAULT_MAX_AP = 10
DEFAULT_MAX_TP = 10


class SagaProfile(Base):
    """
    Per-user saga resources.

    `last_tp_update` doubles as the AP reset anchor: AP refills when the
    calendar date of now differs from it. `story_progress` only grows.
    """

    __tablename__ = "player_saga_profile"
    __table_args__ = (
        CheckConstraint("current_ap >= 0 AND current_ap <= max_ap", name="ap_bounds"),
        CheckConstraint("current_tp >= 0 AND current_tp <= max_tp", name="tp_bounds"),
        CheckConstraint("story_progress >= 0", name="story_non_negative"),
    )

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)

    current_ap: Mapped[int] = mapped_column(Integer, nullable=False, default=DEFAULT_MAX_AP)
    max_ap: Mapped[int] = mapped_column(Integer, nullable=False, default=DEFAULT_MAX_AP)
    current_tp: Mapped[int] = mapped_column(Integer, nullable=False, default=DEFAULT_MAX_TP)
    max_tp: Mapped[int] = mapped_column(Integer, nullable=False, default=DEFAULT_MAX_TP)

    last_tp_update: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=func.now(),
    )
    story_progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
