from __future__ import annotations

import logging
from collections import deque
from threading import Lock
from typing import Any, Callable, Deque, Dict, List

from .models import LogEvent


INFO = "info"
WARN = "warn"
ERROR = "error"
DEBUG = "debug"

LEVELS = {
    INFO: logging.INFO,
    WARN: logging.WARNING,
    ERROR: logging.ERROR,
    DEBUG: logging.DEBUG,
}

EventListener = Callable[[LogEvent], None]


class EventLog:
    """Thread-safe sink for diagnostic events.

    Keeps the most recent events for display, forwards each one to the
    standard ``logging`` module, and notifies subscribed listeners."""

    def __init__(self, logger_name: str = "hyquery", maxlen: int = 5000) -> None:
        self._lock = Lock()
        self._events: Deque[LogEvent] = deque(maxlen=maxlen)
        self._listeners: List[EventListener] = []
        self._logger = logging.getLogger(logger_name)

    def emit(self, level: str, message: str, **fields: Any) -> LogEvent:
        if level not in LEVELS:
            raise ValueError(f"Unknown log level: {level}")
        event = LogEvent(level=level, message=message, fields=dict(fields))
        with self._lock:
            self._events.append(event)
            listeners = list(self._listeners)
        self._logger.log(LEVELS[level], message)
        for listener in listeners:
            try:
                listener(event)
            except Exception:  # noqa: BLE001
                self._logger.exception("Event listener %r failed", listener)
        return event

    def info(self, message: str, **fields: Any) -> LogEvent:
        return self.emit(INFO, message, **fields)

    def warn(self, message: str, **fields: Any) -> LogEvent:
        return self.emit(WARN, message, **fields)

    def error(self, message: str, **fields: Any) -> LogEvent:
        return self.emit(ERROR, message, **fields)

    def debug(self, message: str, **fields: Any) -> LogEvent:
        return self.emit(DEBUG, message, **fields)

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def events(self) -> List[LogEvent]:
        with self._lock:
            return list(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def export_json(self) -> List[Dict[str, Any]]:
        """Export retained events as a list of dictionaries."""
        with self._lock:
            return [e.to_dict() for e in self._events]
