from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from threading import Lock
from typing import Any, Optional

from .events import EventLog
from .models import FetchOutcome, ParsedQueryResponse, QueryConfig
from .orchestrator import FetchOrchestrator, OutcomeListener
from .polling import PollingController
from .transport import RequestsTransport, Transport


MANUAL_REASON = "Manual Test"
POLLING_REASON = "Polling"


class QueryMonitor:
    """Caller-facing state holder wiring config, fetches and polling together.

    The polling loop and manual requests share one FetchOrchestrator, so a
    manual request made while a poll is in flight is skipped. Config changes
    are picked up by the next fetch; an interval change restarts an active
    polling loop.
    """

    def __init__(
        self,
        config: Optional[QueryConfig] = None,
        transport: Optional[Transport] = None,
        events: Optional[EventLog] = None,
        max_workers: int = 2,
    ) -> None:
        self._config_lock = Lock()
        self._config = config or QueryConfig()
        self._events = events or EventLog()
        self._transport = transport or RequestsTransport()
        self._orchestrator = FetchOrchestrator(self._transport, self._events)
        self._polling = PollingController(self._poll_tick, self._events)
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="hyquery-manual")

    @property
    def config(self) -> QueryConfig:
        with self._config_lock:
            return self._config

    def update_config(self, config: Optional[QueryConfig] = None, **changes: Any) -> QueryConfig:
        """Replace the config snapshot, or derive a new one from ``changes``."""
        with self._config_lock:
            new_config = config if config is not None else self._config
            if changes:
                new_config = new_config.with_changes(**changes)
            self._config = new_config
            return new_config

    @property
    def events(self) -> EventLog:
        return self._events

    @property
    def orchestrator(self) -> FetchOrchestrator:
        return self._orchestrator

    @property
    def is_request_in_flight(self) -> bool:
        return self._orchestrator.in_flight

    @property
    def is_polling(self) -> bool:
        return self._polling.is_running

    @property
    def last_outcome(self) -> Optional[FetchOutcome]:
        return self._orchestrator.last_outcome

    @property
    def last_parsed(self) -> Optional[ParsedQueryResponse]:
        return self._orchestrator.last_parsed

    @property
    def last_raw_text(self) -> str:
        return self._orchestrator.last_raw_text

    def add_listener(self, listener: OutcomeListener) -> None:
        self._orchestrator.add_listener(listener)

    def fetch_now(self, reason: str = MANUAL_REASON) -> FetchOutcome:
        """Run one fetch on the calling thread."""
        return self._orchestrator.run_once(self.config, reason)

    def test_request(self) -> "Future[FetchOutcome]":
        """Run one manual fetch on the worker pool."""
        return self._executor.submit(self.fetch_now, MANUAL_REASON)

    def start_polling(self) -> None:
        config = self.update_config(polling_enabled=True)
        self._polling.start(config.polling_interval)

    def stop_polling(self) -> None:
        self.update_config(polling_enabled=False)
        self._polling.stop()

    def toggle_polling(self) -> bool:
        """Flip polling on or off; returns the new state."""
        if self.config.polling_enabled:
            self.stop_polling()
        else:
            self.start_polling()
        return self.config.polling_enabled

    def set_polling_interval(self, seconds: float) -> None:
        if seconds <= 0:
            raise ValueError(f"polling interval must be positive, got {seconds}")
        config = self.update_config(polling_interval=float(seconds))
        if self._polling.is_running:
            self._polling.start(config.polling_interval)

    def clear_logs(self) -> None:
        self._events.clear()

    def close(self) -> None:
        self._polling.stop(wait=True, timeout=self.config.timeout_seconds + 1)
        self._executor.shutdown(wait=True)
        self._transport.close()

    def _poll_tick(self) -> FetchOutcome:
        return self._orchestrator.run_once(self.config, POLLING_REASON)
