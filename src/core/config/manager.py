"""
ConfigManager: cached runtime tunables for the saga core.

Purpose
-------
- Dot-notation access to gameplay tunables (research targets, cache TTLs,
  tavern pricing, job tables).
- YAML defaults from the `config/` directory overlaid by `bot_config` rows.
- Warm in-memory cache with a periodic background refresh.
- Async `get_config_value` / `set_config_value` for the bot_config table.

Responsibilities
----------------
- Load and deep-merge every YAML file under Config.CONFIG_DIR.
- Overlay `bot_config` rows as `bot_config.<key>` on `initialize()`.
- Serve cached reads with typed helpers (`get_int`, `get_bool`).
- Upsert bot_config rows inside `DatabaseService.get_transaction()`.

LES 2025 Compliance
-------------------
- **Separation of concerns**: pure infra, no game rules.
- **Transaction discipline**: writes go through `get_transaction()`.
- **Graceful degradation**: DB failures fall back to YAML defaults; the
  background refresh logs errors and keeps looping.

Key Design Decisions
--------------------
- YAML is the single source of defaults; `bot_config` stores overrides as
  text, matching the table's key/value shape.
- `get_config_value` always reads the database so admin writes are seen
  immediately by reward paths; `get()` serves the cache.

Dependencies
------------
- PyYAML (`yaml.safe_load`)
- `src.core.database.service.DatabaseService`
- `src.database.models.core.bot_config.BotConfig`
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Any, Dict, List, MutableMapping, Optional

import yaml
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert

from src.core.config.config import Config
from src.core.logging.logger import get_logger
from src.database.models.core.bot_config import BotConfig

logger = get_logger(__name__)

BOT_CONFIG_SECTION = "bot_config"


# ============================================================================
# Exceptions
# ============================================================================


class ConfigManagerError(RuntimeError):
    """Base error type for ConfigManager-related failures."""


class ConfigInitializationError(ConfigManagerError):
    """Raised when ConfigManager cannot initialize correctly."""


class ConfigWriteError(ConfigManagerError):
    """Raised when a configuration write fails."""


__all__ = [
    "ConfigManager",
    "ConfigManagerError",
    "ConfigInitializationError",
    "ConfigWriteError",
]


# ============================================================================
# ConfigManager
# ============================================================================


class ConfigManager:
    """
    Runtime configuration with YAML defaults and database overrides.

    Examples
    --------
    >>> ConfigManager.get_int("caches.saga_profile_ttl_seconds", 3)
    3
    >>> await ConfigManager.set_config_value("research_target_common", "6")
    >>> await ConfigManager.get_config_value("research_target_common")
    '6'
    """

    _cache: Dict[str, Any] = {}
    _defaults: Dict[str, Any] = {}

    _initialized: bool = False
    _defaults_loaded: bool = False
    _refresh_task: Optional[asyncio.Task[None]] = None
    _init_lock: asyncio.Lock = asyncio.Lock()

    _refresh_interval_seconds: int = 300
    _refresh_count: int = 0
    _errors: int = 0

    # =========================================================================
    # YAML LOADING & DEFAULTS
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: MutableMapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)  # type: ignore[index]
            else:
                target[key] = value

    @classmethod
    def _load_yaml_configs(cls, config_dir: Optional[Path] = None) -> None:
        """Load and deep-merge every YAML file from the config directory."""
        directory = Path(config_dir or Config.CONFIG_DIR)
        cls._defaults = {}

        if not directory.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(directory)},
            )
            cls._cache = {}
            cls._defaults_loaded = True
            return

        yaml_files = sorted(list(directory.rglob("*.yaml")) + list(directory.rglob("*.yml")))
        loaded_count = 0

        for yaml_file in yaml_files:
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                logger.warning(
                    "Failed to load YAML config",
                    extra={
                        "file": str(yaml_file),
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )
                continue

            if isinstance(data, dict):
                cls._deep_merge_dict(cls._defaults, data)
                loaded_count += 1
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={"file": str(yaml_file), "root_type": type(data).__name__},
                )

        cls._cache = _copy_tree(cls._defaults)
        cls._defaults_loaded = True

        interval = cls._get_from(cls._defaults, "core.config_refresh_seconds")
        if isinstance(interval, int) and interval > 0:
            cls._refresh_interval_seconds = interval
        elif Config.CONFIG_REFRESH_INTERVAL > 0:
            cls._refresh_interval_seconds = Config.CONFIG_REFRESH_INTERVAL

        logger.info(
            "YAML configs loaded",
            extra={"yaml_file_count": loaded_count, "total_cache_keys": len(cls._cache)},
        )

    @classmethod
    def _apply_overrides(cls, rows: List[BotConfig]) -> None:
        section = cls._cache.setdefault(BOT_CONFIG_SECTION, {})
        for row in rows:
            section[row.key] = row.value

    # =========================================================================
    # INITIALIZATION / REFRESH
    # =========================================================================

    @classmethod
    async def initialize(cls, start_refresh: bool = True) -> None:
        """
        Load YAML defaults, overlay bot_config rows and start the refresh task.

        Raises
        ------
        ConfigInitializationError
            If the database overlay fails. Defaults stay usable.
        """
        from src.core.database.service import DatabaseService

        if cls._initialized:
            return

        async with cls._init_lock:
            if cls._initialized:
                return

            start = time.perf_counter()
            cls._load_yaml_configs()

            try:
                async with DatabaseService.get_session() as session:
                    result = await session.execute(select(BotConfig))
                    rows = list(result.scalars().all())
                cls._apply_overrides(rows)
            except Exception as exc:
                cls._errors += 1
                cls._initialized = True
                logger.error(
                    "ConfigManager initialization failed; falling back to defaults",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise ConfigInitializationError("Failed to initialize ConfigManager") from exc

            cls._initialized = True

            if start_refresh and (cls._refresh_task is None or cls._refresh_task.done()):
                cls._refresh_task = asyncio.create_task(cls._background_refresh())

            logger.info(
                "ConfigManager initialized",
                extra={
                    "override_count": len(rows),
                    "latency_ms": round((time.perf_counter() - start) * 1000, 2),
                },
            )

    @classmethod
    async def refresh(cls) -> None:
        """Re-read every bot_config row into the cache."""
        from src.core.database.service import DatabaseService

        async with DatabaseService.get_session() as session:
            result = await session.execute(select(BotConfig))
            rows = list(result.scalars().all())
        cls._apply_overrides(rows)
        cls._refresh_count += 1

    @classmethod
    async def _background_refresh(cls) -> None:
        """Refresh overrides every interval until cancelled. Never raises."""
        try:
            while True:
                try:
                    await asyncio.sleep(cls._refresh_interval_seconds)
                    await cls.refresh()
                    logger.debug(
                        "ConfigManager cache refreshed",
                        extra={"refresh_count": cls._refresh_count},
                    )
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    cls._errors += 1
                    logger.error(
                        "ConfigManager background refresh error",
                        extra={"error": str(exc), "error_type": type(exc).__name__},
                        exc_info=True,
                    )
        except asyncio.CancelledError:
            logger.info("ConfigManager background refresh loop terminated")

    @classmethod
    async def shutdown(cls) -> None:
        """Stop the refresh task and reset state. Safe to call repeatedly."""
        task = cls._refresh_task
        cls._refresh_task = None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        cls._initialized = False
        logger.info("ConfigManager shutdown complete")

    # =========================================================================
    # READ API
    # =========================================================================

    @staticmethod
    def _get_from(tree: Dict[str, Any], key: str) -> Any:
        value: Any = tree
        for part in key.split("."):
            if not isinstance(value, dict):
                return None
            value = value.get(part)
            if value is None:
                return None
        return value

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Resolve a dot-notation key from the cache, then the YAML defaults.

        Never touches the database. Defaults are loaded lazily if
        `initialize()` has not run yet.
        """
        if not cls._defaults_loaded:
            cls._load_yaml_configs()

        value = cls._get_from(cls._cache, key)
        if value is None:
            value = cls._get_from(cls._defaults, key)
        return default if value is None else value

    @classmethod
    def get_int(cls, key: str, default: int = 0) -> int:
        value = cls.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning(
                "Config value is not an integer; using default",
                extra={"config_key": key, "value": value, "default": default},
            )
            return default

    @classmethod
    def get_float(cls, key: str, default: float = 0.0) -> float:
        value = cls.get(key, default)
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning(
                "Config value is not a number; using default",
                extra={"config_key": key, "value": value, "default": default},
            )
            return default

    @classmethod
    def get_bool(cls, key: str, default: bool = False) -> bool:
        value = cls.get(key, default)
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in {"1", "true", "yes", "on"}

    # =========================================================================
    # bot_config API
    # =========================================================================

    @classmethod
    async def get_config_value(cls, key: str, default: Optional[str] = None) -> Optional[str]:
        """
        Fresh read of one bot_config key.

        Falls back to the YAML default under `bot_config.<key>`, then to
        `default`.
        """
        from src.core.database.service import DatabaseService

        async with DatabaseService.get_session() as session:
            row = await session.get(BotConfig, key)

        if row is not None:
            return row.value

        fallback = cls.get(f"{BOT_CONFIG_SECTION}.{key}")
        if fallback is not None:
            return str(fallback)
        return default

    @classmethod
    async def get_config_int(cls, key: str, default: int) -> int:
        raw = await cls.get_config_value(key)
        if raw is None:
            return default
        try:
            return int(raw)
        except ValueError:
            logger.warning(
                "bot_config value is not an integer; using default",
                extra={"config_key": key, "value": raw, "default": default},
            )
            return default

    @classmethod
    async def set_config_value(cls, key: str, value: str) -> None:
        """
        Upsert one bot_config row and update the cache.

        Raises
        ------
        ConfigWriteError
            If the write fails.
        """
        from src.core.database.service import DatabaseService

        try:
            async with DatabaseService.get_transaction() as session:
                stmt = pg_insert(BotConfig).values(key=key, value=str(value))
                stmt = stmt.on_conflict_do_update(
                    index_elements=[BotConfig.key],
                    set_={"value": stmt.excluded.value},
                )
                await session.execute(stmt)
        except Exception as exc:
            cls._errors += 1
            logger.error(
                "Failed to write bot_config value",
                extra={"config_key": key, "error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )
            raise ConfigWriteError(f"Failed to write config key '{key}'") from exc

        cls._cache.setdefault(BOT_CONFIG_SECTION, {})[key] = str(value)
        logger.info("bot_config value updated", extra={"config_key": key})

    # =========================================================================
    # Introspection
    # =========================================================================

    @classmethod
    def get_metrics(cls) -> Dict[str, Any]:
        return {
            "initialized": cls._initialized,
            "refresh_count": cls._refresh_count,
            "errors": cls._errors,
            "refresh_interval_seconds": cls._refresh_interval_seconds,
            "top_level_keys": sorted(cls._cache.keys()),
        }

    @classmethod
    def reset(cls) -> None:
        """Drop cached state (tests)."""
        cls._cache = {}
        cls._defaults = {}
        cls._defaults_loaded = False
        cls._initialized = False


def _copy_tree(tree: Dict[str, Any]) -> Dict[str, Any]:
    return {k: _copy_tree(v) if isinstance(v, dict) else v for k, v in tree.items()}
