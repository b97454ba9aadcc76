"""
Core event types for the saga EventBus.

Purpose
-------
Type definitions shared by the event system: payload alias, listener
priorities, callback union and the immutable listener record. Also names
the events the saga core publishes.

Priority Levels
---------------
- CRITICAL (0): sequential, awaited, timeout-protected.
- HIGH (10): sequential, awaited, timeout-protected. Task progress runs
  here so it lands before the publisher returns.
- NORMAL (50): concurrent, awaited.
- LOW (100): fire-and-forget.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

EventPayload = dict[str, Any]


class ListenerPriority(Enum):
    """Lower value runs earlier."""

    CRITICAL = 0
    HIGH = 10
    NORMAL = 50
    LOW = 100


CallbackType = Union[
    Callable[[EventPayload], Any],
    Callable[[EventPayload], Awaitable[Any]],
]


class SagaEvents:
    """Event names published by the saga services."""

    TASK_PROGRESS = "task.progress"
    BATTLE_VICTORY = "battle.victory"
    BATTLE_DEFEAT = "battle.defeat"
    TAVERN_HIRE = "tavern.hire"
    TAVERN_REROLL = "tavern.reroll"
    UNIT_RECRUITED = "unit.recruited"
    UNIT_DISMISSED = "unit.dismissed"
    CONTRACT_DRAFTED = "contract.drafted"
    CONTRACT_ACCEPTED = "contract.accepted"
    QUEST_COMPLETED = "quest.completed"
    ITEM_CRAFTED = "item.crafted"
    WORK_COMPLETED = "economy.work_completed"


@dataclass(slots=True, frozen=True)
class EventListener:
    """
    Registered listener.

    Attributes
    ----------
    callback:
        Async or sync callable invoked with the payload.
    priority:
        Execution tier.
    identifier:
        Unique id for deduplication and unsubscription.
    once:
        Removed from the registry before its first execution.
    """

    callback: CallbackType
    priority: ListenerPriority
    identifier: str
    once: bool = False

    @classmethod
    def from_callback(
        cls,
        event_name: str,
        callback: CallbackType,
        priority: ListenerPriority,
        identifier: Optional[str],
        once: bool,
    ) -> EventListener:
        """
        Build a listener, deriving the identifier from the callback when
        none is given (``module.qualname@event``).
        """
        if identifier is None:
            module = getattr(callback, "__module__", "unknown")
            qualname = getattr(callback, "__qualname__", getattr(callback, "__name__", "callback"))
            identifier = f"{module}.{qualname}@{event_name}"

        return cls(callback=callback, priority=priority, identifier=identifier, once=once)
