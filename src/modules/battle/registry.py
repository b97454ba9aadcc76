"""
In-memory registry of running battles.

A battle lives only in process memory: it starts from persisted state
(party, bonuses, node) and writes back only through service calls
(item use, taming, contracts, victory rewards). Losing the process loses
the fight, never committed rewards.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from src.core.logging.logger import get_logger
from src.domain.models.battle import BattleSession
from src.modules.units.repository import OwnedUnit

logger = get_logger(__name__)

QUEST_BATTLE_NAME = "Quest Battle"


@dataclass
class BattleGame:
    """
    One running battle and its bookkeeping.

    `claimed` flips once victory rewards (or the quest completion) are
    committed; `victory_lines` caches the result so a repeated claim
    returns the same text without paying again.
    """

    session: BattleSession
    user_id: int
    party_members: List[OwnedUnit]
    node_id: int
    node_name: str
    player_quest_id: Optional[int] = None
    can_afford_recruit: bool = False
    claimed: bool = False
    victory_lines: Optional[List[str]] = None
    ended_message: Optional[str] = None
    started_at: float = field(default_factory=time.monotonic)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def game_id(self) -> str:
        return str(self.session.id)

    @property
    def is_quest_battle(self) -> bool:
        return self.player_quest_id is not None

    @property
    def is_finished(self) -> bool:
        return self.ended_message is not None


class BattleRegistry:
    """Battles by id; not shared across processes."""

    def __init__(self, max_age_seconds: float = 3600.0) -> None:
        self._games: Dict[str, BattleGame] = {}
        self._max_age = max_age_seconds

    def register(self, game: BattleGame) -> BattleGame:
        self.prune()
        self._games[game.game_id] = game
        return game

    def get(self, game_id: str) -> Optional[BattleGame]:
        return self._games.get(game_id)

    def remove(self, game_id: str) -> Optional[BattleGame]:
        return self._games.pop(game_id, None)

    def for_user(self, user_id: int) -> List[BattleGame]:
        return [g for g in self._games.values() if g.user_id == user_id]

    def prune(self) -> int:
        """Drop battles older than the max age; returns how many."""
        cutoff = time.monotonic() - self._max_age
        stale = [gid for gid, g in self._games.items() if g.started_at < cutoff]
        for gid in stale:
            del self._games[gid]
        if stale:
            logger.info("Pruned stale battles", extra={"count": len(stale)})
        return len(stale)

    def __len__(self) -> int:
        return len(self._games)
