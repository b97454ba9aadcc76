"""
Application Context (Kernel)
============================

Purpose
-------
Orchestrates startup and shutdown of the saga core in dependency order.

Responsibilities
----------------
- Load and validate Config
- Initialize the database subsystem
- Initialize ConfigManager (YAML defaults + bot_config overrides)
- Create the process-wide EventBus
- Initialize the ServiceContainer (services, listeners, component router)
- Tear everything down in reverse order

Non-Responsibilities
--------------------
- Business logic (domain services)
- Rendering or chat-platform I/O (frontends call `service_container.router`)

LES 2025 Compliance
-------------------
✓ Strict separation of concerns - orchestration only
✓ Structured logging with timing per step
✓ Emergency cleanup when startup fails partway

Initialization Order
--------------------
1. Config.validate()
2. Database subsystem
3. ConfigManager
4. EventBus
5. ServiceContainer

Shutdown Order (Reverse)
------------------------
1. ServiceContainer.shutdown()
2. ConfigManager.shutdown()
3. Database subsystem
"""

from __future__ import annotations

import time
from typing import Optional

from src.core.config.config import Config
from src.core.config.manager import ConfigManager
from src.core.database.bootstrap import initialize_database_subsystem, shutdown_database_subsystem
from src.core.event.bus import EventBus
from src.core.logging.logger import get_logger
from src.core.services.container import ServiceContainer

logger = get_logger(__name__)


class ApplicationContext:
    """
    Kernel for infrastructure orchestration and dependency injection.

    Usage:
        context = ApplicationContext()
        await context.initialize()
        result = await context.service_container.router.dispatch(user_id, "nav_saga")
        await context.shutdown()
    """

    def __init__(self, *, database_url: Optional[str] = None, create_schema: bool = False) -> None:
        self._database_url = database_url
        self._create_schema = create_schema
        self._event_bus: Optional[EventBus] = None
        self._service_container: Optional[ServiceContainer] = None
        self._initialized: bool = False

        logger.debug("ApplicationContext created")

    # ========================================================================
    # INITIALIZATION
    # ========================================================================

    async def initialize(self) -> None:
        """
        Initialize all infrastructure components in dependency order.

        Raises:
            RuntimeError: If already initialized or initialization fails
        """
        if self._initialized:
            raise RuntimeError("ApplicationContext already initialized")

        logger.info("=" * 70)
        logger.info("APPLICATION CONTEXT INITIALIZATION")
        logger.info("=" * 70)

        start_time = time.perf_counter()

        try:
            Config.validate()
            logger.info("✓ Configuration validated")

            step = time.perf_counter()
            await initialize_database_subsystem(
                database_url=self._database_url,
                create_schema=self._create_schema,
            )
            logger.info("✓ Database subsystem initialized (%.2fms)", (time.perf_counter() - step) * 1000)

            step = time.perf_counter()
            await ConfigManager.initialize()
            logger.info("✓ ConfigManager initialized (%.2fms)", (time.perf_counter() - step) * 1000)

            self._event_bus = EventBus(config_manager=ConfigManager)

            step = time.perf_counter()
            self._service_container = ServiceContainer(
                config_manager=ConfigManager,
                event_bus=self._event_bus,
                logger=get_logger("src.core.services.container"),
            )
            await self._service_container.initialize()
            logger.info("✓ ServiceContainer initialized (%.2fms)", (time.perf_counter() - step) * 1000)

            self._initialized = True
            logger.info("=" * 70)
            logger.info("✓ Application context initialized in %.2fms", (time.perf_counter() - start_time) * 1000)
            logger.info("=" * 70)

        except Exception as exc:
            logger.critical(
                "Application context initialization failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )
            await self._emergency_shutdown()
            raise RuntimeError("Failed to initialize application context") from exc

    # ========================================================================
    # SHUTDOWN
    # ========================================================================

    async def shutdown(self) -> None:
        """Shut down in reverse dependency order; each step logs its own failure."""
        if not self._initialized:
            logger.warning("ApplicationContext not initialized, nothing to shut down")
            return

        logger.info("APPLICATION CONTEXT SHUTDOWN")

        if self._service_container:
            try:
                await self._service_container.shutdown()
                logger.info("✓ ServiceContainer shut down")
            except Exception as exc:
                logger.error(
                    "Error shutting down service container",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )

        try:
            await ConfigManager.shutdown()
        except Exception as exc:
            logger.error(
                "Error shutting down config manager",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )

        try:
            await shutdown_database_subsystem()
            logger.info("✓ Database subsystem shut down")
        except Exception as exc:
            logger.error(
                "Error shutting down database",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )

        self._initialized = False
        logger.info("✓ Application context shutdown complete")

    async def _emergency_shutdown(self) -> None:
        """Best-effort cleanup when initialization fails partway through."""
        logger.warning("Performing emergency shutdown")

        if self._service_container:
            try:
                await self._service_container.shutdown()
            except Exception as exc:
                logger.error("Emergency shutdown: service container", extra={"error": str(exc)})

        try:
            await ConfigManager.shutdown()
        except Exception as exc:
            logger.error("Emergency shutdown: config manager", extra={"error": str(exc)})

        try:
            await shutdown_database_subsystem()
        except Exception as exc:
            logger.error("Emergency shutdown: database", extra={"error": str(exc)})

    # ========================================================================
    # PROPERTIES
    # ========================================================================

    @property
    def event_bus(self) -> EventBus:
        if not self._initialized or self._event_bus is None:
            raise RuntimeError("EventBus not available: ApplicationContext not initialized")
        return self._event_bus

    @property
    def service_container(self) -> ServiceContainer:
        if not self._initialized or self._service_container is None:
            raise RuntimeError("ServiceContainer not available: ApplicationContext not initialized")
        return self._service_container

    @property
    def is_initialized(self) -> bool:
        return self._initialized
