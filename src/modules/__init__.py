"""
Domain services of the Gamemaster Saga.

Each subpackage owns one feature area (saga, units, contracts, tavern,
world, battle, economy, crafting, progression, leaderboard, views) and
depends on `src.core` for infrastructure and `src.modules.shared` for the
base service, repository and exception hierarchy.
"""
