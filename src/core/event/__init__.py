"""
Event system: tiered async pub/sub used for post-commit side effects.
"""

from src.core.event.bus import EventBus
from src.core.event.registry import ListenerRegistry, matches
from src.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
    SagaEvents,
)

__all__ = [
    "EventBus",
    "ListenerRegistry",
    "matches",
    "EventListener",
    "EventPayload",
    "CallbackType",
    "ListenerPriority",
    "SagaEvents",
]
