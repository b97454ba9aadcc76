"""
Configuration package.

- `Config` (src.core.config.config): static, environment-driven settings.
- `ConfigManager` (src.core.config.manager): YAML defaults plus
  `bot_config` overrides. Import it from its module; it depends on the
  database layer, which itself reads `Config`.
"""

from src.core.config.config import Config, Environment

__all__ = ["Config", "Environment"]
