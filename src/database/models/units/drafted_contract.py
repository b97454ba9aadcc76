"""
DraftedHumanContract: a contract drafted after enough defeats.
Schema only.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Index, Integer, func, text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, utc_now


class DraftedHumanContract(Base):
    """At most one non-consumed draft per (user, unit)."""

    __tablename__ = "drafted_human_contracts"
    __table_args__ = (
        Index(
            "uq_drafted_contracts_open",
            "user_id",
            "unit_id",
            unique=True,
            postgresql_where=text("NOT consumed"),
        ),
    )

    contract_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    unit_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("units.unit_id", ondelete="CASCADE"),
        nullable=False,
    )
    drafted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=func.now(),
    )
    consumed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
