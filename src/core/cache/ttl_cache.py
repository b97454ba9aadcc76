"""
In-process TTL caches for hot per-user reads.

Purpose
-------
Short-lived read-through caches in front of PostgreSQL for the views that
are rebuilt on every interaction: saga profile, contract status, research
progress, equipment bonuses and the bond map. Also holds the focus buff
flag and the date-keyed tavern daily pool.

Design Notes
------------
- Each cache maps key -> (stored_at, value). Reads past the TTL remove the
  entry and count as a miss.
- Hits return a deep copy so callers can never mutate cached state.
- Locks are `threading.Lock` and are never held across an await.
- TTLs come from ConfigManager (`caches.*_ttl_seconds`) with built-in
  defaults.
- Every mutating service path calls `invalidate_user_caches(user_id)` after
  its transaction commits.
"""

from __future__ import annotations

import copy
import threading
import time
from datetime import date
from typing import Any, Dict, Generic, Hashable, List, Optional, Tuple, TypeVar

from src.core import constants
from src.core.cache.metrics import CacheMetrics
from src.core.config.manager import ConfigManager
from src.core.logging.logger import get_logger

logger = get_logger(__name__)

V = TypeVar("V")


class TtlCache(Generic[V]):
    """
    Mapping with per-read TTL checks.

    Parameters
    ----------
    name:
        Cache name; also the ConfigManager key stem for its TTL.
    default_ttl:
        TTL in seconds when the config does not override it.
    """

    def __init__(self, name: str, default_ttl: float) -> None:
        self.name = name
        self.default_ttl = float(default_ttl)
        self._entries: Dict[Hashable, Tuple[float, V]] = {}
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> float:
        return ConfigManager.get_float(f"caches.{self.name}_ttl_seconds", self.default_ttl)

    def get(self, key: Hashable) -> Optional[V]:
        return self.get_with_ttl(key, self.ttl_seconds)

    def get_with_ttl(self, key: Hashable, ttl_seconds: float) -> Optional[V]:
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                stored_at, value = entry
                if now - stored_at < ttl_seconds:
                    CacheMetrics.record_hit()
                    return copy.deepcopy(value)
                del self._entries[key]
        CacheMetrics.record_miss()
        return None

    def insert(self, key: Hashable, value: V) -> None:
        with self._lock:
            self._entries[key] = (time.monotonic(), copy.deepcopy(value))
        CacheMetrics.record_set()

    def invalidate(self, key: Hashable) -> bool:
        with self._lock:
            removed = self._entries.pop(key, None) is not None
        if removed:
            CacheMetrics.record_invalidation()
        return removed

    def clear(self) -> None:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        if count:
            CacheMetrics.record_invalidation(count)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class DailyPoolCache:
    """Single-entry cache of the global tavern pool, keyed by UTC date."""

    def __init__(self) -> None:
        self._entry: Optional[Tuple[date, List[int]]] = None
        self._lock = threading.Lock()

    def get(self, day: date) -> Optional[List[int]]:
        with self._lock:
            if self._entry is not None and self._entry[0] == day:
                CacheMetrics.record_hit()
                return list(self._entry[1])
        CacheMetrics.record_miss()
        return None

    def set(self, day: date, unit_ids: List[int]) -> None:
        with self._lock:
            self._entry = (day, list(unit_ids))
        CacheMetrics.record_set()

    def clear(self) -> None:
        with self._lock:
            self._entry = None


# ============================================================================
# Named caches
# ============================================================================

saga_profile_cache: TtlCache[Any] = TtlCache("saga_profile", constants.SAGA_PROFILE_TTL_SECONDS)
contract_status_cache: TtlCache[Any] = TtlCache("contract_status", constants.CONTRACT_STATUS_TTL_SECONDS)
research_progress_cache: TtlCache[Any] = TtlCache("research_progress", constants.RESEARCH_PROGRESS_TTL_SECONDS)
equipment_bonus_cache: TtlCache[Any] = TtlCache("equipment_bonus", constants.EQUIPMENT_BONUS_TTL_SECONDS)
bond_map_cache: TtlCache[Any] = TtlCache("bond_map", constants.BOND_MAP_TTL_SECONDS)
focus_buff_cache: TtlCache[float] = TtlCache("focus_buff", constants.FOCUS_BUFF_TTL_SECONDS)

tavern_daily_pool = DailyPoolCache()

_USER_CACHES = (
    saga_profile_cache,
    contract_status_cache,
    research_progress_cache,
    equipment_bonus_cache,
    bond_map_cache,
)


def invalidate_user_caches(user_id: int) -> None:
    """Drop every per-user entry so the next read hits the database."""
    removed = sum(1 for cache in _USER_CACHES if cache.invalidate(user_id))
    logger.debug("User caches invalidated", extra={"user_id": user_id, "entries_removed": removed})


def cache_stats() -> Tuple[int, int]:
    """Global (hits, misses) across all named caches."""
    return CacheMetrics.stats()


def clear_all_caches() -> None:
    """Empty every named cache (tests and admin tooling)."""
    for cache in (*_USER_CACHES, focus_buff_cache):
        cache.clear()
    tavern_daily_pool.clear()
