"""
Base Service Foundation

Purpose
-------
Foundational class for every saga domain service. Services implement
business rules, own their transactions through DatabaseService and
publish events after commit.

LES 2025 Compliance
-------------------
- Pure business logic layer, no presentation concerns
- Config-driven (reads tunables through ConfigManager)
- Emits events for cross-module communication
- Raises domain exceptions; database failures surface as PersistenceError

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe config access
- Post-commit event emission
- `persistence_guard`, which turns SQLAlchemy failures into
  `PersistenceError` after the transaction has rolled back

What this class does NOT do:
- Open sessions or transactions (DatabaseService does)
- Contain game-specific logic

Usage
-----
    class TavernService(BaseService):
        async def add_fame(self, user_id: int, amount: int) -> None:
            async with self.persistence_guard("add_fame", user_id=user_id):
                async with DatabaseService.get_transaction() as session:
                    ...
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from src.core.event.types import SagaEvents
from src.modules.shared.exceptions import ConfigurationError, PersistenceError, ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus


class BaseService:
    """
    Base class for all domain services.

    Args:
        config_manager: ConfigManager (class or instance)
        event_bus: Event bus for post-commit notifications
        logger: Structured logger instance
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        self._config = config_manager
        self._events = event_bus
        self.log = logger

    def get_config(self, key: str, default: Optional[Any] = None, required: bool = False) -> Any:
        """
        Safely retrieve a configuration value.

        Raises:
            ConfigurationError: If required=True and key is missing
        """
        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(key, f"Required configuration key '{key}' is missing")
        return value

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Publish an event. Call only after the owning transaction committed.

        Listener failures are isolated by the bus; a lost event never
        affects state that is already durable.
        """
        await self._events.publish(event_type, {**data, **(context or {})})

    async def publish_task_progress(self, user_id: int, objective_key: str, increment: int = 1) -> None:
        """Post-commit task progress notification (`task.progress`)."""
        await self.emit_event(
            SagaEvents.TASK_PROGRESS,
            {"user_id": user_id, "objective_key": objective_key, "increment": increment},
        )

    @asynccontextmanager
    async def persistence_guard(self, operation: str, **context: Any) -> AsyncIterator[None]:
        """
        Convert database failures raised inside the block to PersistenceError.

        Domain exceptions pass through untouched.
        """
        try:
            yield
        except SQLAlchemyError as exc:
            self.log_error(operation, exc, **context)
            raise PersistenceError(operation, exc) from exc

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(self, operation: str, error: Exception, **context: Any) -> None:
        self.log.error(
            f"Service error during {operation}: {error}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
        )

    @staticmethod
    def validate_positive_int(value: int, name: str) -> None:
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            raise ValidationError(f"{name} must be a positive integer, got {value}", field=name)

    @staticmethod
    def validate_non_negative_int(value: int, name: str) -> None:
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise ValidationError(f"{name} must be a non-negative integer, got {value}", field=name)
