"""
Gamemaster Saga Infrastructure Constants

Purpose
-------
Infrastructure-level constants: cache TTLs, event dispatch timeouts and
database timing defaults. Game rules and balance values belong in
src/modules/shared/constants.py.

LES 2025 Compliance
-------------------
- Infrastructure concerns only
- No side effects at import time

Design Notes
------------
- Values are annotated with typing.Final
- Cache TTLs are defaults; `caches.<name>_ttl_seconds` in config overrides
"""

from __future__ import annotations

from typing import Final

# ============================================================================
# DATABASE
# ============================================================================

DEFAULT_STATEMENT_TIMEOUT_MS: Final[int] = 15_000
DATABASE_HEALTH_CHECK_TIMEOUT_SECONDS: Final[float] = 5.0

# ============================================================================
# CACHE TTL (seconds)
# ============================================================================

SAGA_PROFILE_TTL_SECONDS: Final[float] = 3
CONTRACT_STATUS_TTL_SECONDS: Final[float] = 20
RESEARCH_PROGRESS_TTL_SECONDS: Final[float] = 20
EQUIPMENT_BONUS_TTL_SECONDS: Final[float] = 5
BOND_MAP_TTL_SECONDS: Final[float] = 10
FOCUS_BUFF_TTL_SECONDS: Final[float] = 900  # 15 minutes

# ============================================================================
# EVENT SYSTEM
# ============================================================================

EVENT_CRITICAL_TIMEOUT_SECONDS: Final[float] = 5.0
EVENT_HIGH_TIMEOUT_SECONDS: Final[float] = 5.0

# ============================================================================
# CONFIG
# ============================================================================

CONFIG_REFRESH_SECONDS_DEFAULT: Final[int] = 300
