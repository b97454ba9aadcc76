"""
Service Container
=================

Purpose
-------
Centralized dependency injection container for the saga services.
Builds each service once, in dependency order, and exposes them as
properties.

Responsibilities
----------------
- Initialize all domain services with required dependencies
- Register cross-module event listeners (task progress)
- Build the view composer and component router on top of the services
- Track per-service init timing for diagnostics

Non-Responsibilities
--------------------
- Database and event bus startup (delegated to ApplicationContext)
- Rendering (the component router returns view models)

LES 2025 Compliance
-------------------
✓ Separation of concerns - wiring only, no business logic
✓ Fail-fast - any service failing to build aborts startup
✓ Minimal observability - timing + health snapshot

Architecture Notes
------------------
- Every domain service takes (config_manager, event_bus, logger);
  services that call other services get them as keyword arguments
- TavernService needs UnitService; BattleService needs most of the rest
"""

from __future__ import annotations

import random
import time
from typing import TYPE_CHECKING, Any, Dict, Optional

from src.core.config.manager import ConfigManager
from src.core.event.types import SagaEvents
from src.core.logging.logger import get_logger
from src.modules.battle import BattleRegistry, BattleService
from src.modules.contracts import HumanContractService
from src.modules.crafting import CraftingService
from src.modules.economy import EconomyService
from src.modules.leaderboard import LeaderboardService
from src.modules.progression import QuestService, TaskService, register_progression_listeners
from src.modules.saga import SagaService
from src.modules.tavern import TavernService
from src.modules.units import BondService, ResearchService, UnitService
from src.modules.views import ComponentRouter, ViewComposer
from src.modules.world import WorldService

if TYPE_CHECKING:
    from logging import Logger

    from src.core.event.bus import EventBus

logger = get_logger(__name__)

NOT_INITIALIZED = "ServiceContainer not initialized. Call initialize() first."


class ServiceContainer:
    """
    Dependency injection container for all saga services.

    Usage:
        container = ServiceContainer(config_manager, event_bus, logger)
        await container.initialize()

        result = await container.router.dispatch(user_id, "battle_attack", game_id=gid)
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._config_manager = config_manager
        self._event_bus = event_bus
        self._logger = logger
        self._rng = rng

        self._services: Dict[str, Any] = {}
        self._listener_ids: Dict[str, str] = {}
        self._initialized = False

        self._service_init_times: Dict[str, float] = {}
        self._init_start: Optional[float] = None
        self._init_end: Optional[float] = None

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def initialize(self) -> None:
        """Build every service; call after ConfigManager and EventBus are ready."""
        if self._initialized:
            self._logger.warning("ServiceContainer already initialized")
            return

        self._init_start = time.perf_counter()
        self._logger.info("Service container initialization starting...")

        try:
            # Leaf services
            for name, cls in (
                ("saga", SagaService),
                ("units", UnitService),
                ("bonds", BondService),
                ("research", ResearchService),
                ("contracts", HumanContractService),
                ("tasks", TaskService),
                ("quests", QuestService),
                ("crafting", CraftingService),
                ("leaderboard", LeaderboardService),
            ):
                self._services[name] = self._create_service(name, cls)

            self._services["economy"] = self._create_service("economy", EconomyService, rng=self._rng)
            self._services["world"] = self._create_service("world", WorldService, rng=self._rng)
            self._services["tavern"] = self._create_service(
                "tavern", TavernService, unit_service=self._services["units"]
            )
            self._services["battle"] = self._create_service(
                "battle",
                BattleService,
                unit_service=self._services["units"],
                bond_service=self._services["bonds"],
                saga_service=self._services["saga"],
                contract_service=self._services["contracts"],
                world_service=self._services["world"],
                tavern_service=self._services["tavern"],
                quest_service=self._services["quests"],
                registry=BattleRegistry(),
                rng=self._rng,
            )

            self._listener_ids[SagaEvents.TASK_PROGRESS] = register_progression_listeners(
                self._event_bus, self._services["tasks"]
            )

            composer = ViewComposer(
                saga_service=self._services["saga"],
                unit_service=self._services["units"],
                tavern_service=self._services["tavern"],
                contract_service=self._services["contracts"],
                task_service=self._services["tasks"],
                quest_service=self._services["quests"],
            )
            self._services["composer"] = composer
            self._services["router"] = ComponentRouter(
                composer,
                tavern_service=self._services["tavern"],
                unit_service=self._services["units"],
                contract_service=self._services["contracts"],
                task_service=self._services["tasks"],
                quest_service=self._services["quests"],
                battle_service=self._services["battle"],
            )

            self._init_end = time.perf_counter()
            self._initialized = True

            extra_data: Dict[str, Any] = {
                "total_time_seconds": round(self._init_end - self._init_start, 3),
                "service_count": len(self._service_init_times),
            }
            if self._service_init_times:
                slowest = max(self._service_init_times, key=self._service_init_times.__getitem__)
                extra_data["slowest_service"] = slowest
                extra_data["slowest_duration"] = round(self._service_init_times[slowest], 3)

            self._logger.info("Service container initialized successfully", extra=extra_data)

        except Exception as e:
            self._logger.critical(
                "Service container initialization failed",
                exc_info=True,
                extra={"error": str(e)},
            )
            raise

    def _create_service(self, name: str, cls: type, **dependencies: Any) -> Any:
        """Instantiate one service with timing; extra keyword dependencies are passed through."""
        start = time.perf_counter()

        try:
            instance = cls(
                config_manager=self._config_manager,
                event_bus=self._event_bus,
                logger=get_logger(f"{cls.__module__}.{cls.__name__}"),
                **dependencies,
            )
        except Exception:
            self._logger.error(f"Failed to initialize {name}", exc_info=True)
            raise

        duration = time.perf_counter() - start
        self._service_init_times[name] = duration
        self._logger.debug(f"Initialized {name} in {duration:.3f}s")

        return instance

    async def shutdown(self) -> None:
        if not self._initialized:
            return

        self._logger.info("Shutting down service container...")
        for event_name, listener_id in self._listener_ids.items():
            self._event_bus.unsubscribe(event_name, listener_id)
        self._listener_ids.clear()
        self._services.clear()

        self._initialized = False
        self._logger.info("Service container shut down")

    async def health_check(self) -> Dict[str, bool | float | int | None]:
        """Health snapshot for admin diagnostics."""
        return {
            "initialized": self._initialized,
            "service_count": len(self._service_init_times),
            "listener_count": len(self._listener_ids),
            "active_battles": len(self._services["battle"].registry) if self._initialized else 0,
            "total_init_time_seconds": (
                round(self._init_end - self._init_start, 3)
                if self._init_start and self._init_end
                else None
            ),
        }

    # ========================================================================
    # Service Access
    # ========================================================================

    def _get(self, name: str) -> Any:
        if not self._initialized or name not in self._services:
            raise RuntimeError(NOT_INITIALIZED)
        return self._services[name]

    @property
    def saga(self) -> SagaService:
        return self._get("saga")

    @property
    def units(self) -> UnitService:
        return self._get("units")

    @property
    def bonds(self) -> BondService:
        return self._get("bonds")

    @property
    def research(self) -> ResearchService:
        return self._get("research")

    @property
    def contracts(self) -> HumanContractService:
        return self._get("contracts")

    @property
    def tavern(self) -> TavernService:
        return self._get("tavern")

    @property
    def economy(self) -> EconomyService:
        return self._get("economy")

    @property
    def world(self) -> WorldService:
        return self._get("world")

    @property
    def battle(self) -> BattleService:
        return self._get("battle")

    @property
    def tasks(self) -> TaskService:
        return self._get("tasks")

    @property
    def quests(self) -> QuestService:
        return self._get("quests")

    @property
    def crafting(self) -> CraftingService:
        return self._get("crafting")

    @property
    def leaderboard(self) -> LeaderboardService:
        return self._get("leaderboard")

    @property
    def composer(self) -> ViewComposer:
        return self._get("composer")

    @property
    def router(self) -> ComponentRouter:
        return self._get("router")

    @property
    def is_initialized(self) -> bool:
        return self._initialized
