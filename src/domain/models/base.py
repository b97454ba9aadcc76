"""
Base domain model classes for the Gamemaster Saga core.

Purpose
-------
Foundational abstractions for stateful domain objects that carry business
rules and record domain events, independent of persistence.

Responsibilities
----------------
- `Entity`: identity, equality and pending domain events
- `DomainEvent`: state change notification collected by an entity
- `DomainValidationError` and small validators for constructor checks

Non-Responsibilities
--------------------
- Persistence (handled by services against SQLAlchemy models)
- Publishing (services drain events and hand them to the EventBus)

LES 2025 Compliance
-------------------
- Business logic belongs in domain models
- Domain models are separate from database models
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Hashable, List, Optional


# ============================================================================
# DOMAIN EVENTS
# ============================================================================


@dataclass
class DomainEvent:
    """
    A state change that other parts of the system may react to.

    Attributes
    ----------
    event_name : str
        Event name (e.g., "battle.victory")
    payload : Dict[str, Any]
        Event payload
    occurred_at : datetime
        When the event occurred (UTC)
    """

    event_name: str
    payload: Dict[str, Any]
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# ============================================================================
# ENTITY
# ============================================================================


class Entity(ABC):
    """
    Base class for entities with identity.

    Two entities with the same ID are the same entity even when their
    attributes differ. Subclasses record significant transitions with
    `add_domain_event`; the owning service drains them with
    `clear_domain_events` once the change is durable.
    """

    def __init__(self, entity_id: Hashable) -> None:
        self._id = entity_id
        self._domain_events: List[DomainEvent] = []

    @property
    def id(self) -> Hashable:
        return self._id

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entity):
            return False
        return type(self) is type(other) and self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def add_domain_event(self, event_name: str, payload: Dict[str, Any]) -> None:
        self._domain_events.append(DomainEvent(event_name=event_name, payload=payload))

    def clear_domain_events(self) -> List[DomainEvent]:
        """Return and forget every pending event."""
        events = self._domain_events.copy()
        self._domain_events.clear()
        return events

    def get_pending_events(self) -> List[DomainEvent]:
        return self._domain_events.copy()


# ============================================================================
# DOMAIN MODEL VALIDATION
# ============================================================================


class DomainValidationError(Exception):
    """Raised when a domain object is constructed with invalid state."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


def validate_non_negative(value: int, field_name: str) -> None:
    if value < 0:
        raise DomainValidationError(f"{field_name} must be non-negative, got {value}", field=field_name)


def validate_positive(value: int, field_name: str) -> None:
    if value <= 0:
        raise DomainValidationError(f"{field_name} must be positive, got {value}", field=field_name)
