from __future__ import annotations

import time
from contextlib import contextmanager
from threading import Lock
from typing import Callable, Iterator, List, Mapping, Optional

from .decoder import decode
from .errors import CharsetDecodeError, DecodeError, InvalidEndpoint, TransportError
from .events import EventLog
from .models import FetchOutcome, ParsedQueryResponse, QueryConfig
from .normalizer import NON_DECODABLE_TEXT, decode_body
from .transport import ACCEPT_HEADER, Transport, build_url


PREVIEW_MAX_CHARS = 1200
HINT_406 = (
    "HTTP 406: check Accept header and endpoint path. "
    "This endpoint often requires a specific Accept type."
)

OutcomeListener = Callable[[FetchOutcome], None]


def format_headers(headers: Mapping[str, str]) -> str:
    """Render headers one ``Key: value`` per line, sorted case-insensitively."""
    pairs = sorted(((str(k), str(v)) for k, v in headers.items()), key=lambda kv: kv[0].lower())
    return "\n".join(f"{k}: {v}" for k, v in pairs)


def body_preview(text: str, max_chars: int = PREVIEW_MAX_CHARS) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "\n…(truncated)…"


class FetchOrchestrator:
    """Runs Transport -> normalizer -> decoder as one single-flight operation.

    A call made while another is in progress returns a skipped outcome at
    once instead of waiting. Every completed call replaces the published
    outcome; nothing raised below escapes ``run_once``.
    """

    def __init__(self, transport: Transport, events: Optional[EventLog] = None) -> None:
        self._transport = transport
        self._events = events or EventLog()
        self._flight = Lock()
        self._listeners: List[OutcomeListener] = []

        self._last_outcome: Optional[FetchOutcome] = None
        self._last_parsed: Optional[ParsedQueryResponse] = None
        self._last_raw_text: str = ""

    @property
    def events(self) -> EventLog:
        return self._events

    @property
    def in_flight(self) -> bool:
        return self._flight.locked()

    @property
    def last_outcome(self) -> Optional[FetchOutcome]:
        return self._last_outcome

    @property
    def last_parsed(self) -> Optional[ParsedQueryResponse]:
        return self._last_parsed

    @property
    def last_raw_text(self) -> str:
        return self._last_raw_text

    def add_listener(self, listener: OutcomeListener) -> None:
        self._listeners.append(listener)

    @contextmanager
    def _single_flight(self) -> Iterator[bool]:
        acquired = self._flight.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                self._flight.release()

    def run_once(self, config: QueryConfig, reason: str) -> FetchOutcome:
        with self._single_flight() as acquired:
            if not acquired:
                self._events.debug(f"Skipped {reason}: request already in flight", reason=reason)
                return FetchOutcome(reason=reason, ok=False, skipped=True, error_kind="Skipped")

            outcome = self._fetch(config, reason)
            self._record(outcome)
        for listener in list(self._listeners):
            try:
                listener(outcome)
            except Exception as exc:  # noqa: BLE001
                self._events.error(f"Outcome listener failed: {type(exc).__name__}: {exc}", reason=reason)
        return outcome

    def _record(self, outcome: FetchOutcome) -> None:
        self._last_outcome = outcome
        if outcome.raw_text is not None:
            # A body was received: decode success or failure replaces the parsed slot.
            self._last_raw_text = outcome.raw_text
            self._last_parsed = outcome.parsed

    def _fetch(self, config: QueryConfig, reason: str) -> FetchOutcome:
        start_ms = self._now_ms()

        try:
            url = build_url(config)
        except InvalidEndpoint as exc:
            self._events.error(f"{reason}: bad URL (host/port/path)", reason=reason, detail=str(exc))
            return FetchOutcome(
                reason=reason,
                ok=False,
                error_kind="InvalidEndpoint",
                error_message=str(exc),
                latency_ms=self._now_ms() - start_ms,
            )

        self._events.info(f"{reason}: GET {url}", reason=reason, url=url)
        self._events.debug(f"Accept: {ACCEPT_HEADER}")

        try:
            raw = self._transport.fetch(config)
        except TransportError as exc:
            return self._failure(reason, url, start_ms, f"TransportError.{exc.kind}", exc)
        except Exception as exc:  # noqa: BLE001
            return self._failure(reason, url, start_ms, type(exc).__name__, exc)

        self._events.info(
            f"{reason}: HTTP {raw.status_code} ({len(raw.body)} bytes)",
            reason=reason,
            status_code=raw.status_code,
            byte_count=len(raw.body),
        )
        self._events.debug(f"Response headers:\n{format_headers(raw.headers)}")

        try:
            text = decode_body(raw.body, raw.content_type)
        except CharsetDecodeError as exc:
            self._events.warn(f"Body decode failed ({exc.encoding}): {exc}", reason=reason)
            text = NON_DECODABLE_TEXT

        parsed: Optional[ParsedQueryResponse] = None
        decode_error: Optional[DecodeError] = None
        try:
            parsed = decode(text)
        except DecodeError as exc:
            decode_error = exc
            self._events.warn(f"Decode failed: {exc}", reason=reason)

        self._events.debug(f"Body preview:\n{body_preview(text)}")

        if raw.status_code == 406:
            self._events.warn(HINT_406, reason=reason, status_code=406)

        if not raw.is_success:
            error_kind: Optional[str] = "HTTPError"
            error_message: Optional[str] = f"HTTP {raw.status_code}"
        elif decode_error is not None:
            error_kind = f"DecodeError.{decode_error.kind}"
            error_message = str(decode_error)
        else:
            error_kind = None
            error_message = None

        return FetchOutcome(
            reason=reason,
            ok=error_kind is None,
            url=url,
            parsed=parsed,
            raw_text=text,
            status_code=raw.status_code,
            headers=raw.headers,
            byte_count=len(raw.body),
            error_kind=error_kind,
            error_message=error_message,
            latency_ms=self._now_ms() - start_ms,
        )

    def _failure(self, reason: str, url: str, start_ms: int, error_kind: str, exc: Exception) -> FetchOutcome:
        message = str(exc) or type(exc).__name__
        self._events.error(f"{reason}: {message}", reason=reason, error_kind=error_kind)
        return FetchOutcome(
            reason=reason,
            ok=False,
            url=url,
            error_kind=error_kind,
            error_message=message,
            latency_ms=self._now_ms() - start_ms,
        )

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)
