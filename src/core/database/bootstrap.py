"""
Database Subsystem Bootstrap
============================

Purpose
-------
Single entry point for bringing the database subsystem up and down.

Responsibilities
----------------
- Initialize DatabaseService (engine, session factory, pool)
- Optionally verify readiness with a bounded health check
- Optionally create the schema (development and test databases)
- Shut the engine down

Non-Responsibilities
--------------------
- Migrations (outside the core)
- Transaction management (DatabaseService)

LES 2025 Compliance
-------------------
✓ Config-driven - health timeout from Config
✓ Fail-fast - any failure surfaces as DatabaseInitializationError
✓ Observable - every step logged
"""

from __future__ import annotations

import asyncio
from typing import Optional

from src.core.config.config import Config
from src.core.database.service import DatabaseInitializationError, DatabaseService
from src.core.logging.logger import get_logger

logger = get_logger(__name__)

DEFAULT_HEALTH_TIMEOUT_SECONDS = 5.0


async def initialize_database_subsystem(
    *,
    database_url: Optional[str] = None,
    verify_health: bool = True,
    create_schema: bool = False,
) -> None:
    """
    Initialize the database subsystem.

    Raises
    ------
    DatabaseInitializationError
        If initialization fails or the health check fails or times out.
    """
    logger.info("Initializing database subsystem")

    try:
        await DatabaseService.initialize(database_url)
    except DatabaseInitializationError:
        raise
    except Exception as exc:
        logger.error(
            "Unexpected error during database initialization",
            extra={"error": str(exc), "error_type": type(exc).__name__},
            exc_info=True,
        )
        raise DatabaseInitializationError(f"Database initialization failed: {exc}") from exc

    if verify_health:
        await _verify_health()

    if create_schema:
        from src.database.seed import seed_items

        await DatabaseService.create_schema()
        async with DatabaseService.get_transaction() as session:
            await seed_items(session)
        logger.info("Database schema ensured and item catalog seeded")

    logger.info("Database subsystem initialized")


async def _verify_health() -> None:
    timeout = float(getattr(Config, "DATABASE_BOOTSTRAP_HEALTH_TIMEOUT_SECONDS", DEFAULT_HEALTH_TIMEOUT_SECONDS))
    try:
        healthy = await asyncio.wait_for(DatabaseService.health_check(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        logger.error("Database health check timed out during bootstrap", extra={"timeout_seconds": timeout})
        raise DatabaseInitializationError(f"Database health check timed out after {timeout}s") from exc

    if not healthy:
        logger.error("Database health check failed during bootstrap")
        raise DatabaseInitializationError("Database is unreachable or unhealthy after initialization")


async def shutdown_database_subsystem() -> None:
    """Dispose the engine. Safe to call more than once."""
    logger.info("Shutting down database subsystem")
    await DatabaseService.shutdown()
    logger.info("Database subsystem shutdown complete")
