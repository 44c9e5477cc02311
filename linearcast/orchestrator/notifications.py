"""Explicit observer channel for session notifications.

A :class:`NotificationHub` keeps, per :class:`SessionEvent`, an ordered list
of handlers.  Emission is synchronous and isolated: a handler that raises is
logged with its traceback and the remaining handlers still run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from linearcast.core import events

__all__ = ["SessionEvent", "Handler", "NotificationHub"]

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class SessionEvent(StrEnum):
    """Notifications published by a channel scheduler session."""

    PROGRAM_START = "program_start"
    """Payload: the :class:`ScheduledProgram` that became current."""

    PROGRAM_END = "program_end"
    """Payload: the :class:`ScheduledProgram` that stopped being current."""

    SCHEDULE_SYNC = "schedule_sync"
    """Payload: a :class:`SchedulerState` snapshot.  Emitted on every sync."""


class NotificationHub:
    """Register, unregister and invoke handlers per event."""

    def __init__(self) -> None:
        self._handlers: dict[SessionEvent, list[Handler]] = {e: [] for e in SessionEvent}

    def on(self, event: SessionEvent, handler: Handler) -> Callable[[], None]:
        """Register *handler* for *event*.

        Returns:
            A zero-argument callable that unregisters the handler.
        """
        self._handlers[SessionEvent(event)].append(handler)
        return lambda: self.off(event, handler)

    def off(self, event: SessionEvent, handler: Handler) -> None:
        """Unregister *handler*; unknown handlers are ignored."""
        handlers = self._handlers[SessionEvent(event)]
        if handler in handlers:
            handlers.remove(handler)

    def handler_count(self, event: SessionEvent) -> int:
        return len(self._handlers[SessionEvent(event)])

    def clear(self) -> None:
        for handlers in self._handlers.values():
            handlers.clear()

    def emit(self, event: SessionEvent, payload: Any) -> None:
        """Invoke every handler registered for *event* with *payload*."""
        # Snapshot so handlers may unregister themselves while being called.
        for handler in list(self._handlers[event]):
            try:
                handler(payload)
            except Exception:
                logger.exception(
                    "Handler %r for %s raised; continuing with remaining handlers.",
                    handler,
                    event,
                    extra={"event": events.HANDLER_ERROR},
                )
