"""
Listener storage and wildcard routing for the EventBus.

Exact listeners are kept per event name; wildcard listeners ("battle.*",
"*.victory", "*") are kept as (pattern, listener) pairs. Lookups return
listeners sorted by (priority, identifier) for deterministic ordering.
"""

from __future__ import annotations

from src.core.event.types import EventListener


def matches(event_name: str, pattern: str) -> bool:
    """
    Match an event name against a pattern where ``*`` spans any text.

    >>> matches("battle.victory", "battle.*")
    True
    >>> matches("battle.victory", "*.victory")
    True
    >>> matches("battle.victory", "tavern.*")
    False
    """
    if pattern == "*":
        return True
    if "*" not in pattern:
        return event_name == pattern

    while "**" in pattern:
        pattern = pattern.replace("**", "*")

    parts = pattern.split("*")
    if parts[0] and not event_name.startswith(parts[0]):
        return False
    if parts[-1] and not event_name.endswith(parts[-1]):
        return False

    idx = len(parts[0])
    for mid in parts[1:-1]:
        if not mid:
            continue
        next_idx = event_name.find(mid, idx)
        if next_idx == -1:
            return False
        idx = next_idx + len(mid)
    return True


def _sort_key(listener: EventListener) -> tuple[int, str]:
    return (listener.priority.value, listener.identifier)


class ListenerRegistry:
    """In-memory listener store. Single event loop use only."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[EventListener]] = {}
        self._wildcard_listeners: list[tuple[str, EventListener]] = []

    def add_listener(
        self,
        event_name: str,
        listener: EventListener,
        *,
        allow_duplicates: bool,
    ) -> bool:
        """Register a listener. Returns False when prevented as duplicate."""
        if "*" in event_name:
            if not allow_duplicates and any(
                lst.identifier == listener.identifier
                for pattern, lst in self._wildcard_listeners
                if pattern == event_name
            ):
                return False
            self._wildcard_listeners.append((event_name, listener))
            self._wildcard_listeners.sort(key=lambda pl: _sort_key(pl[1]))
            return True

        listeners = self._listeners.setdefault(event_name, [])
        if not allow_duplicates and any(lst.identifier == listener.identifier for lst in listeners):
            return False
        listeners.append(listener)
        listeners.sort(key=_sort_key)
        return True

    def remove_listener(self, event_name: str, identifier: str) -> bool:
        removed = False

        if event_name in self._listeners:
            before = len(self._listeners[event_name])
            self._listeners[event_name] = [
                lst for lst in self._listeners[event_name] if lst.identifier != identifier
            ]
            removed = len(self._listeners[event_name]) < before
            if not self._listeners[event_name]:
                del self._listeners[event_name]

        before_wc = len(self._wildcard_listeners)
        self._wildcard_listeners = [
            (pattern, lst)
            for pattern, lst in self._wildcard_listeners
            if not (pattern == event_name and lst.identifier == identifier)
        ]
        return removed or len(self._wildcard_listeners) < before_wc

    def clear_all(self) -> int:
        total = self.get_total_listener_count()
        self._listeners.clear()
        self._wildcard_listeners.clear()
        return total

    def extract_listeners_for_event(self, event_name: str) -> list[EventListener]:
        """
        Collect exact and wildcard listeners for an event, pruning
        ``once`` listeners from the registry in the same step.
        """
        result: list[EventListener] = []

        exact = self._listeners.get(event_name, [])
        kept = [lst for lst in exact if not lst.once]
        result.extend(exact)
        if kept:
            self._listeners[event_name] = kept
        elif event_name in self._listeners:
            del self._listeners[event_name]

        remaining: list[tuple[str, EventListener]] = []
        for pattern, listener in self._wildcard_listeners:
            if matches(event_name, pattern):
                result.append(listener)
                if not listener.once:
                    remaining.append((pattern, listener))
            else:
                remaining.append((pattern, listener))
        self._wildcard_listeners = remaining

        result.sort(key=_sort_key)
        return result

    def get_listener_count_for_event(self, event_name: str) -> int:
        count = len(self._listeners.get(event_name, []))
        count += sum(1 for pattern, _ in self._wildcard_listeners if matches(event_name, pattern))
        return count

    def get_total_listener_count(self) -> int:
        return sum(len(v) for v in self._listeners.values()) + len(self._wildcard_listeners)

    def get_all_event_keys(self) -> list[str]:
        keys = set(self._listeners.keys())
        keys.update(pattern for pattern, _ in self._wildcard_listeners)
        return sorted(keys)
