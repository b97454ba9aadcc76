"""
EventBus: priority-tiered async publish/subscribe for the saga core.

Purpose
-------
Decouple post-commit side effects (task progress, notifications) from the
services that cause them. A lost event never corrupts state: publishers
only publish after their transaction committed.

Execution Model
---------------
- CRITICAL / HIGH: sequential, ordered, awaited with timeout
- NORMAL: concurrent (asyncio.gather), awaited
- LOW: fire-and-forget background tasks

Listener errors are isolated: they are logged and counted, never raised
to the publisher.

Dependencies
------------
- src.core.event.registry.ListenerRegistry
- src.core.logging.logger
"""

from __future__ import annotations

import asyncio
import inspect
from collections import Counter
from typing import Any, Optional

from src.core.event.registry import ListenerRegistry
from src.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


class EventBus:
    """
    Async event bus.

    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("task.progress", on_progress, priority=ListenerPriority.HIGH)
    >>> await bus.publish("task.progress", {"user_id": 1, "objective_key": "Work"})
    """

    def __init__(
        self,
        registry: Optional[ListenerRegistry] = None,
        config_manager: Any = None,
        *,
        critical_timeout_seconds: Optional[float] = None,
        high_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._registry = registry or ListenerRegistry()
        self._config_manager = config_manager
        self._background_tasks: set[asyncio.Task[Any]] = set()

        self._publish_counts: Counter[str] = Counter()
        self._error_count = 0

        self._critical_timeout = self._load_timeout(
            "core.event.listener_timeout.critical_seconds", critical_timeout_seconds, 5.0
        )
        self._high_timeout = self._load_timeout(
            "core.event.listener_timeout.high_seconds", high_timeout_seconds, 5.0
        )

    def _load_timeout(self, key: str, override: Optional[float], default: float) -> float:
        """override -> config -> default."""
        if override is not None:
            return float(override)
        if self._config_manager is None:
            return float(default)
        try:
            return float(self._config_manager.get(key, default))
        except (TypeError, ValueError) as exc:
            logger.warning(
                "Failed to load timeout from config, using default",
                extra={"config_key": key, "default_value": default, "error": str(exc)},
            )
            return float(default)

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    @staticmethod
    def _validate_callback_signature(callback: CallbackType) -> None:
        """Reject callbacks that do not take exactly one payload argument."""
        try:
            sig = inspect.signature(callback)
        except (TypeError, ValueError):
            return

        params = list(sig.parameters.values())
        if len(params) != 1:
            name = getattr(callback, "__qualname__", None) or getattr(callback, "__name__", repr(callback))
            raise ValueError(
                f"Event listener must accept exactly 1 parameter (EventPayload), "
                f"got {len(params)} parameters for '{name}'"
            )

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
        allow_duplicates: bool = False,
    ) -> str:
        """
        Subscribe a callback to an event name or wildcard pattern.

        Returns
        -------
        str
            The listener identifier, for `unsubscribe`.
        """
        self._validate_callback_signature(callback)

        listener = EventListener.from_callback(
            event_name=event_name,
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )
        added = self._registry.add_listener(event_name, listener, allow_duplicates=allow_duplicates)

        if added:
            logger.debug(
                "EventBus: subscribed listener",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "priority": listener.priority.name,
                },
            )
        else:
            logger.warning(
                "EventBus: duplicate listener prevented",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )
        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        return self._registry.remove_listener(event_name, identifier)

    def clear(self) -> None:
        total = self._registry.clear_all()
        logger.info("EventBus: cleared all listeners", extra={"previous_listener_count": total})

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    async def publish(self, event_name: str, data: EventPayload) -> list[Any]:
        """
        Publish an event.

        Returns
        -------
        list[Any]
            Results of CRITICAL/HIGH/NORMAL listeners (None for failed ones).
        """
        self._publish_counts[event_name] += 1

        listeners = self._registry.extract_listeners_for_event(event_name)
        if not listeners:
            logger.debug("EventBus: no listeners for event", extra={"event_name": event_name})
            return []

        results: list[Any] = []

        for listener in listeners:
            if listener.priority is ListenerPriority.CRITICAL:
                results.append(await self._run_with_timeout(listener, event_name, data, self._critical_timeout))
        for listener in listeners:
            if listener.priority is ListenerPriority.HIGH:
                results.append(await self._run_with_timeout(listener, event_name, data, self._high_timeout))

        normal = [lst for lst in listeners if lst.priority is ListenerPriority.NORMAL]
        if normal:
            results.extend(
                await asyncio.gather(*[self._run_listener(lst, event_name, data) for lst in normal])
            )

        loop = asyncio.get_running_loop()
        for listener in listeners:
            if listener.priority is ListenerPriority.LOW:
                task = loop.create_task(
                    self._run_listener(listener, event_name, data),
                    name=f"eventbus-low-{event_name}-{listener.identifier}",
                )
                self._background_tasks.add(task)
                task.add_done_callback(self._background_tasks.discard)

        return results

    async def _run_with_timeout(
        self,
        listener: EventListener,
        event_name: str,
        payload: EventPayload,
        timeout: Optional[float],
    ) -> Any:
        if timeout is None or timeout <= 0:
            return await self._run_listener(listener, event_name, payload)

        try:
            return await asyncio.wait_for(self._run_listener(listener, event_name, payload), timeout=timeout)
        except asyncio.TimeoutError:
            self._error_count += 1
            logger.error(
                "EventBus listener timeout",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "priority": listener.priority.name,
                    "timeout_seconds": timeout,
                },
            )
            return None

    async def _run_listener(self, listener: EventListener, event_name: str, payload: EventPayload) -> Any:
        """Run one listener; errors are logged and isolated."""
        try:
            if inspect.iscoroutinefunction(listener.callback):
                return await listener.callback(payload)
            result = listener.callback(payload)
            if inspect.isawaitable(result):
                return await result
            return result
        except Exception as exc:
            self._error_count += 1
            logger.error(
                "EventBus listener error",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            return None

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    async def drain(self) -> None:
        """Await every in-flight LOW-tier task (shutdown and tests)."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    def get_metrics_summary(self) -> dict[str, Any]:
        return {
            "published": dict(self._publish_counts),
            "listener_errors": self._error_count,
            "listeners": self._registry.get_total_listener_count(),
            "background_tasks": len(self._background_tasks),
        }

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        if event_name is None:
            return self._registry.get_total_listener_count()
        return self._registry.get_listener_count_for_event(event_name)

    def get_all_events(self) -> list[str]:
        return self._registry.get_all_event_keys()
