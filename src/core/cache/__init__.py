"""
In-process caching: named TTL caches, invalidation and metrics.
"""

from src.core.cache.metrics import CacheMetrics
from src.core.cache.ttl_cache import (
    DailyPoolCache,
    TtlCache,
    bond_map_cache,
    cache_stats,
    clear_all_caches,
    contract_status_cache,
    equipment_bonus_cache,
    focus_buff_cache,
    invalidate_user_caches,
    research_progress_cache,
    saga_profile_cache,
    tavern_daily_pool,
)

__all__ = [
    "CacheMetrics",
    "TtlCache",
    "DailyPoolCache",
    "saga_profile_cache",
    "contract_status_cache",
    "research_progress_cache",
    "equipment_bonus_cache",
    "bond_map_cache",
    "focus_buff_cache",
    "tavern_daily_pool",
    "invalidate_user_caches",
    "cache_stats",
    "clear_all_caches",
]
