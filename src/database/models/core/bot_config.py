"""
BotConfig: runtime tunables as key/value text rows.
Schema only; read and written through ConfigManager.
"""

from __future__ import annotations

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, TimestampMixin


class BotConfig(Base, TimestampMixin):
    __tablename__ = "bot_config"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
