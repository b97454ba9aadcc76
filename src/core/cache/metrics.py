"""
Cache metrics for the in-process TTL caches.

Purpose
-------
Process-wide hit/miss/set/invalidation counters shared by every named
cache, with derived hit rate for diagnostics.

Architecture Notes
------------------
- Class-level counters guarded by a `threading.Lock`; recording never
  awaits, so the lock is never held across an await.
- `reset()` exists for tests and monitoring cycles.
"""

import threading
from typing import Any, Dict, Tuple


class CacheMetrics:
    """Thread-safe counters for cache operations."""

    _metrics: Dict[str, int] = {
        "hits": 0,
        "misses": 0,
        "sets": 0,
        "invalidations": 0,
    }
    _lock: threading.Lock = threading.Lock()

    @classmethod
    def record_hit(cls) -> None:
        with cls._lock:
            cls._metrics["hits"] += 1

    @classmethod
    def record_miss(cls) -> None:
        with cls._lock:
            cls._metrics["misses"] += 1

    @classmethod
    def record_set(cls) -> None:
        with cls._lock:
            cls._metrics["sets"] += 1

    @classmethod
    def record_invalidation(cls, count: int = 1) -> None:
        with cls._lock:
            cls._metrics["invalidations"] += count

    @classmethod
    def stats(cls) -> Tuple[int, int]:
        """(hits, misses) since start or last reset."""
        with cls._lock:
            return cls._metrics["hits"], cls._metrics["misses"]

    @classmethod
    def get_metrics(cls) -> Dict[str, Any]:
        """
        Raw counters plus derived hit rate.

        Example
        -------
        >>> CacheMetrics.get_metrics()["hit_rate"]
        87.5
        """
        with cls._lock:
            total_gets = cls._metrics["hits"] + cls._metrics["misses"]
            hit_rate = (cls._metrics["hits"] / total_gets * 100) if total_gets else 0.0
            return {
                **cls._metrics,
                "hit_rate": round(hit_rate, 2),
                "total_operations": total_gets + cls._metrics["sets"],
            }

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            for key in cls._metrics:
                cls._metrics[key] = 0
