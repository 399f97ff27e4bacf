from __future__ import annotations

import time
import uuid as _uuid
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from requests.structures import CaseInsensitiveDict


DEFAULT_HOST = "192.168.0.203"
DEFAULT_PORT = 5523
DEFAULT_PATH = "/Nitrado/Query"


def _as_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    return default


def _as_float(value: Any, default: float) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    return result if result > 0 else default


@dataclass(frozen=True)
class QueryConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    path: str = DEFAULT_PATH
    use_https: bool = True
    timeout_seconds: float = 5.0
    polling_enabled: bool = False
    polling_interval: float = 5.0

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "QueryConfig":
        port_val = d.get("port", DEFAULT_PORT)
        try:
            port = max(0, min(65535, int(port_val)))
        except (TypeError, ValueError):
            port = DEFAULT_PORT
        return QueryConfig(
            host=str(d.get("host", DEFAULT_HOST)).strip(),
            port=port,
            path=str(d.get("path", DEFAULT_PATH)).strip(),
            use_https=_as_bool(d.get("use_https"), True),
            timeout_seconds=_as_float(d.get("timeout_seconds"), 5.0),
            polling_enabled=_as_bool(d.get("polling_enabled"), False),
            polling_interval=_as_float(d.get("polling_interval"), 5.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def with_changes(self, **changes: Any) -> "QueryConfig":
        return replace(self, **changes)


@dataclass(frozen=True)
class RawResponse:
    """One HTTP exchange as received; header lookups ignore case."""

    status_code: int
    headers: CaseInsensitiveDict
    body: bytes

    @property
    def content_type(self) -> str:
        return self.headers.get("Content-Type", "") or ""

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass(frozen=True)
class ServerInfo:
    name: Optional[str] = None
    version: Optional[str] = None
    revision: Optional[str] = None
    patchline: Optional[str] = None
    protocol_version: Optional[int] = None
    protocol_hash: Optional[str] = None
    max_players: Optional[int] = None


@dataclass(frozen=True)
class UniverseInfo:
    current_players: Optional[int] = None
    default_world: Optional[str] = None


@dataclass(frozen=True)
class PlayerEntry:
    name: Optional[str] = None
    uuid: Optional[str] = None
    world: Optional[str] = None
    # Fresh per decode when both uuid and name are missing; never stable across fetches.
    fallback_id: str = field(default_factory=lambda: str(_uuid.uuid4()), compare=False, repr=False)

    @property
    def id(self) -> str:
        return self.uuid or self.name or self.fallback_id


@dataclass(frozen=True)
class PluginEntry:
    name: Optional[str] = None
    version: Optional[str] = None
    loaded: Optional[bool] = None
    enabled: Optional[bool] = None
    state: Optional[str] = None


@dataclass(frozen=True)
class PlayersInfo:
    entries: Tuple[PlayerEntry, ...] = ()

    @property
    def count(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class PluginsInfo:
    entries: Tuple[PluginEntry, ...] = ()

    @property
    def count(self) -> int:
        return len(self.entries)

    @property
    def names(self) -> List[Optional[str]]:
        return [e.name for e in self.entries]


@dataclass(frozen=True)
class ParsedQueryResponse:
    """Decoded query document; every section is independently optional."""

    server: Optional[ServerInfo] = None
    universe: Optional[UniverseInfo] = None
    players: Optional[PlayersInfo] = None
    plugins: Optional[PluginsInfo] = None


@dataclass(frozen=True)
class FetchOutcome:
    """Result of one fetch-and-record cycle.

    ``ok`` is True only for a 2xx response whose body decoded. Failures carry
    ``error_kind`` (the exception class name, suffixed with its kind for
    TransportError and DecodeError, or ``HTTPError`` for a non-2xx status)
    and keep whatever raw text was fetched. A skipped invocation has
    ``skipped`` set and never replaces a published outcome.
    """

    reason: str
    ok: bool
    url: Optional[str] = None
    parsed: Optional[ParsedQueryResponse] = None
    raw_text: Optional[str] = None
    status_code: Optional[int] = None
    headers: Optional[CaseInsensitiveDict] = None
    byte_count: int = 0
    error_kind: Optional[str] = None
    error_message: Optional[str] = None
    latency_ms: int = 0
    skipped: bool = False
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class LogEvent:
    level: str
    message: str
    timestamp: float = field(default_factory=time.time)
    fields: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp, "level": self.level, "message": self.message, **self.fields}
