"""
Research Service
================

Purpose
-------
Pet research progress: sub-Legendary tames and battle research drops
accumulate per-creature counters toward configurable targets.

Targets come from bot_config (`research_target_common`, `_rare`, `_epic`,
`_high`) with defaults 5 / 10 / 18 / 0.

LES 2025 Compliance
-------------------
✓ Config-driven - targets read through ConfigManager
✓ Cached reads - progress listing cached 20 s
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Tuple

from sqlalchemy import select

from src.core.cache import research_progress_cache
from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger
from src.database.models import Unit, UnitResearchProgress
from src.database.models.enums import UnitRarity
from src.modules.shared.base_service import BaseService
from src.modules.units.repository import ResearchProgressRepository

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus


_TARGET_KEYS = {
    UnitRarity.COMMON: ("research_target_common", 5),
    UnitRarity.RARE: ("research_target_rare", 10),
    UnitRarity.EPIC: ("research_target_epic", 18),
}
_HIGH_TARGET = ("research_target_high", 0)


@dataclass(frozen=True)
class ResearchEntry:
    unit_id: int
    name: str
    rarity: UnitRarity
    tamed_count: int
    target: int

    @property
    def is_complete(self) -> bool:
        return self.target > 0 and self.tamed_count >= self.target


class ResearchService(BaseService):
    def __init__(self, config_manager: ConfigManager, event_bus: EventBus, logger: Logger) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._research = ResearchProgressRepository(
            UnitResearchProgress, get_logger(f"{__name__}.ResearchProgressRepository")
        )

    async def research_target_for_rarity(self, rarity: UnitRarity) -> int:
        key, default = _TARGET_KEYS.get(rarity, _HIGH_TARGET)
        return await self._config.get_config_int(key, default)

    async def get_research_progress(self, user_id: int, unit_id: int) -> int:
        async with self.persistence_guard("get_research_progress", user_id=user_id, unit_id=unit_id):
            async with DatabaseService.get_session() as session:
                return await self._research.get_count(session, user_id, unit_id)

    async def increment_research_progress(self, user_id: int, unit_id: int, amount: int = 1) -> int:
        async with self.persistence_guard("increment_research_progress", user_id=user_id, unit_id=unit_id):
            async with DatabaseService.get_transaction() as session:
                count = await self._research.increment(session, user_id, unit_id, amount)
        research_progress_cache.invalidate(user_id)
        return count

    async def list_research_progress(self, user_id: int) -> List[Tuple[int, int]]:
        """(unit_id, tamed_count) pairs, cached 20 s."""
        cached = research_progress_cache.get(user_id)
        if cached is not None:
            return cached

        async with self.persistence_guard("list_research_progress", user_id=user_id):
            async with DatabaseService.get_session() as session:
                counts = await self._research.list_counts(session, user_id)
        research_progress_cache.insert(user_id, counts)
        return counts

    async def list_research_entries(self, user_id: int) -> List[ResearchEntry]:
        """Research progress joined with unit names and rarity targets."""
        counts = dict(await self.list_research_progress(user_id))
        if not counts:
            return []

        async with self.persistence_guard("list_research_entries", user_id=user_id):
            async with DatabaseService.get_session() as session:
                result = await session.execute(
                    select(Unit).where(Unit.unit_id.in_(list(counts))).order_by(Unit.name)
                )
                units = list(result.scalars().all())

        targets = {}
        entries = []
        for unit in units:
            if unit.rarity not in targets:
                targets[unit.rarity] = await self.research_target_for_rarity(unit.rarity)
            entries.append(
                ResearchEntry(
                    unit_id=unit.unit_id,
                    name=unit.name,
                    rarity=unit.rarity,
                    tamed_count=counts[unit.unit_id],
                    target=targets[unit.rarity],
                )
            )
        return entries
