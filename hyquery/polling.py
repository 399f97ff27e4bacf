from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .events import EventLog


@dataclass
class PollingSession:
    """One running poll loop: its interval, stop signal and worker thread."""

    interval: float
    cancelled: threading.Event = field(default_factory=threading.Event)
    thread: Optional[threading.Thread] = None

    def cancel(self) -> None:
        self.cancelled.set()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the worker thread to exit; True if it has."""
        if self.thread is None:
            return True
        self.thread.join(timeout)
        return not self.thread.is_alive()


class PollingController:
    """Calls ``tick`` immediately and then every ``interval`` seconds on a daemon thread.

    At most one session is active. ``start`` while running cancels the old
    loop before the new one begins; ``stop`` cancels the loop and is a no-op
    when nothing runs. Cancellation is checked before every tick and wakes
    the inter-tick wait, so a stopped loop never begins another tick. A tick
    already running when the loop is cancelled is allowed to finish."""

    def __init__(self, tick: Callable[[], Any], events: Optional[EventLog] = None, name: str = "hyquery-poll") -> None:
        self._tick = tick
        self._events = events or EventLog()
        self._name = name
        self._lock = threading.Lock()
        self._session: Optional[PollingSession] = None

    @property
    def is_running(self) -> bool:
        return self._session is not None

    @property
    def interval(self) -> Optional[float]:
        session = self._session
        return session.interval if session else None

    @property
    def session(self) -> Optional[PollingSession]:
        return self._session

    def start(self, interval: float) -> PollingSession:
        if interval <= 0:
            raise ValueError(f"polling interval must be positive, got {interval}")
        with self._lock:
            if self._session is not None:
                self._session.cancel()
            session = PollingSession(interval=float(interval))
            session.thread = threading.Thread(target=self._loop, args=(session,), name=self._name, daemon=True)
            self._session = session
            session.thread.start()
        self._events.info(f"Polling started: every {int(interval)}s", interval=float(interval))
        return session

    def stop(self, wait: bool = False, timeout: Optional[float] = None) -> bool:
        """Cancel the active loop; returns False if none was running."""
        with self._lock:
            session = self._session
            self._session = None
        if session is None:
            return False
        session.cancel()
        self._events.info("Polling stopped")
        if wait:
            session.join(timeout)
        return True

    def _loop(self, session: PollingSession) -> None:
        while not session.cancelled.is_set():
            try:
                self._tick()
            except Exception as exc:  # noqa: BLE001
                self._events.error(f"Polling cycle failed: {type(exc).__name__}: {exc}")
            if session.cancelled.wait(session.interval):
                break
