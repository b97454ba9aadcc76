"""
EventBus wiring for progression.

Task progress listens at HIGH priority so an increment published by a
command lands before the publisher returns.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from src.core.event.types import ListenerPriority, SagaEvents
from src.core.logging.logger import get_logger

if TYPE_CHECKING:
    from src.core.event.bus import EventBus
    from src.modules.progression.task_service import TaskService

logger = get_logger(__name__)


def register_progression_listeners(event_bus: EventBus, task_service: TaskService) -> str:
    """Subscribe the task service to `task.progress`; returns the listener id."""
    listener_id = event_bus.subscribe(
        SagaEvents.TASK_PROGRESS,
        task_service.on_task_progress,
        priority=ListenerPriority.HIGH,
        identifier="progression.task_progress",
    )
    logger.info("Progression listeners registered", extra={"listener_id": listener_id})
    return listener_id
