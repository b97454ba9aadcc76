"""
Core infrastructure layer for the Gamemaster Saga.

Subpackages
-----------
- config: static Config and the bot_config-backed ConfigManager
- logging: structured, queue-backed logging
- database: declarative base and DatabaseService
- event: priority-tiered async event bus
- cache: in-process TTL caches and invalidation

Design Decisions
----------------
This package performs no imports. Subsystems depend on one another
(database reads Config, logging reads Config, ConfigManager reads the
database), so callers import from the concrete module they need.
"""
