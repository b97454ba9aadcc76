"""
Leaderboard Service
===================

Purpose
-------
Read-only rankings over profiles and saga progress.

Domain
------
- Gamemaster score: balance / 10 + work_streak * 50 + story_progress * 1000
  (players without a saga profile count story progress as 0)
- Wealth: raw balance
- Streak: current work streak
- Ranks are 1-based, ties broken by user id for a stable order

LES 2025 Compliance
-------------------
✓ Read-only - get_session() only, no locks
✓ Validated input - limit must be a positive integer
✓ Observable - structured logging per query
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List

from sqlalchemy import func, select
from sqlalchemy.sql.elements import ColumnElement

from src.core.database.service import DatabaseService
from src.database.models import Profile, SagaProfile
from src.modules.shared.base_service import BaseService

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    user_id: int
    score: int


def gamemaster_score() -> ColumnElement[int]:
    """SQL expression for the combined gamemaster score."""
    return (
        Profile.balance // 10
        + Profile.work_streak * 50
        + func.coalesce(SagaProfile.story_progress, 0) * 1000
    )


class LeaderboardService(BaseService):
    """
    Ranked views of the player base.

    Public Methods
    --------------
    - get_gamemaster_leaderboard() -> combined score board
    - get_wealth_leaderboard() -> balance board
    - get_streak_leaderboard() -> work streak board
    """

    def __init__(self, config_manager: ConfigManager, event_bus: EventBus, logger: Logger) -> None:
        super().__init__(config_manager, event_bus, logger)

    async def get_gamemaster_leaderboard(self, limit: int = DEFAULT_LIMIT) -> List[LeaderboardEntry]:
        return await self._ranked("gamemaster", gamemaster_score(), limit, with_saga=True)

    async def get_wealth_leaderboard(self, limit: int = DEFAULT_LIMIT) -> List[LeaderboardEntry]:
        return await self._ranked("wealth", Profile.balance, limit)

    async def get_streak_leaderboard(self, limit: int = DEFAULT_LIMIT) -> List[LeaderboardEntry]:
        return await self._ranked("streak", Profile.work_streak, limit)

    # ========================================================================
    # PRIVATE
    # ========================================================================

    async def _ranked(
        self,
        board: str,
        score: ColumnElement[int],
        limit: int,
        *,
        with_saga: bool = False,
    ) -> List[LeaderboardEntry]:
        self.validate_positive_int(limit, "limit")
        limit = min(limit, MAX_LIMIT)
        stmt = select(Profile.user_id, score.label("score"))
        if with_saga:
            stmt = stmt.outerjoin(SagaProfile, SagaProfile.user_id == Profile.user_id)
        stmt = stmt.order_by(score.desc(), Profile.user_id).limit(limit)

        async with self.persistence_guard("get_leaderboard", board=board, limit=limit):
            async with DatabaseService.get_session() as session:
                rows = (await session.execute(stmt)).all()

        entries = [
            LeaderboardEntry(rank=i, user_id=row.user_id, score=int(row.score or 0))
            for i, row in enumerate(rows, start=1)
        ]
        self.log.debug("Leaderboard queried", extra={"board": board, "entries": len(entries)})
        return entries
