from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import DecodeError
from .models import (
    ParsedQueryResponse,
    PlayerEntry,
    PlayersInfo,
    PluginEntry,
    PluginsInfo,
    ServerInfo,
    UniverseInfo,
)


SERVER_KEY = "Server"
UNIVERSE_KEY = "Universe"
PLAYERS_KEY = "Players"
PLUGINS_KEY = "Plugins"
SECTION_KEYS = (SERVER_KEY, UNIVERSE_KEY, PLAYERS_KEY, PLUGINS_KEY)

PLAYER_WRAPPER_KEYS = ("Players", "Entries", "List", "Data")
PLUGIN_WRAPPER_KEYS = ("Plugins", "Entries", "List", "Data")


# Field readers: a value of the wrong JSON type reads as absent.

def _str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _int(value: Any) -> Optional[int]:
    # bool is an int subclass in Python but not a JSON number
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _bool(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def _is_record_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, dict) for item in value)


def _is_name_mapping(value: Any) -> bool:
    return isinstance(value, dict) and all(isinstance(item, dict) for item in value.values())


def server_from_dict(d: Dict[str, Any]) -> ServerInfo:
    return ServerInfo(
        name=_str(d.get("Name")),
        version=_str(d.get("Version")),
        revision=_str(d.get("Revision")),
        patchline=_str(d.get("Patchline")),
        protocol_version=_int(d.get("ProtocolVersion")),
        protocol_hash=_str(d.get("ProtocolHash")),
        max_players=_int(d.get("MaxPlayers")),
    )


def universe_from_dict(d: Dict[str, Any]) -> UniverseInfo:
    return UniverseInfo(
        current_players=_int(d.get("CurrentPlayers")),
        default_world=_str(d.get("DefaultWorld")),
    )


def player_from_dict(d: Dict[str, Any]) -> PlayerEntry:
    return PlayerEntry(
        name=_str(d.get("Name")),
        uuid=_str(d.get("UUID")),
        world=_str(d.get("World")),
    )


def plugin_from_dict(d: Dict[str, Any], name: Optional[str] = None) -> PluginEntry:
    return PluginEntry(
        name=name if name is not None else _str(d.get("Name")),
        version=_str(d.get("Version")),
        loaded=_bool(d.get("Loaded")),
        enabled=_bool(d.get("Enabled")),
        state=_str(d.get("State")),
    )


class SectionShape(ABC):
    """One recognised layout of a list section.

    Shapes are tried in priority order and the first one that matches
    builds the entries."""

    @abstractmethod
    def matches(self, value: Any, document: Dict[str, Any]) -> bool:
        raise NotImplementedError

    @abstractmethod
    def build(self, value: Any, document: Dict[str, Any]) -> List[Any]:
        raise NotImplementedError


class RecordArrayShape(SectionShape):
    """The section value is itself an array of records."""

    def __init__(self, make: Callable[[Dict[str, Any]], Any]) -> None:
        self._make = make

    def matches(self, value: Any, document: Dict[str, Any]) -> bool:
        return _is_record_list(value)

    def build(self, value: Any, document: Dict[str, Any]) -> List[Any]:
        return [self._make(item) for item in value]


class WrappedArrayShape(SectionShape):
    """The section value is an object holding the record array under a wrapper key."""

    def __init__(self, wrapper_keys: Sequence[str], make: Callable[[Dict[str, Any]], Any]) -> None:
        self._wrapper_keys = tuple(wrapper_keys)
        self._make = make

    def _find(self, value: Any) -> Optional[List[Dict[str, Any]]]:
        if not isinstance(value, dict):
            return None
        for key in self._wrapper_keys:
            if _is_record_list(value.get(key)):
                return value[key]
        return None

    def matches(self, value: Any, document: Dict[str, Any]) -> bool:
        return self._find(value) is not None

    def build(self, value: Any, document: Dict[str, Any]) -> List[Any]:
        return [self._make(item) for item in self._find(value) or []]


def _entries_from_mapping(mapping: Dict[str, Dict[str, Any]]) -> List[PluginEntry]:
    return [plugin_from_dict(details, name=name) for name, details in sorted(mapping.items())]


class WrappedNameMappingShape(SectionShape):
    """``{"Plugins": {"<name>": {...details...}}}`` inside the section."""

    def __init__(self, wrapper_key: str = PLUGINS_KEY) -> None:
        self._wrapper_key = wrapper_key

    def matches(self, value: Any, document: Dict[str, Any]) -> bool:
        return isinstance(value, dict) and _is_name_mapping(value.get(self._wrapper_key))

    def build(self, value: Any, document: Dict[str, Any]) -> List[Any]:
        return _entries_from_mapping(value[self._wrapper_key])


class NameMappingShape(SectionShape):
    """The section value maps plugin names to detail objects."""

    def matches(self, value: Any, document: Dict[str, Any]) -> bool:
        return _is_name_mapping(value)

    def build(self, value: Any, document: Dict[str, Any]) -> List[Any]:
        return _entries_from_mapping(value)


class DocumentNameMappingShape(SectionShape):
    """The whole document, carrying no section key, maps plugin names to details."""

    def matches(self, value: Any, document: Dict[str, Any]) -> bool:
        if not document or any(key in document for key in SECTION_KEYS):
            return False
        return _is_name_mapping(document)

    def build(self, value: Any, document: Dict[str, Any]) -> List[Any]:
        return _entries_from_mapping(document)


PLAYER_SHAPES: Tuple[SectionShape, ...] = (
    RecordArrayShape(player_from_dict),
    WrappedArrayShape(PLAYER_WRAPPER_KEYS, player_from_dict),
)

PLUGIN_SHAPES: Tuple[SectionShape, ...] = (
    RecordArrayShape(plugin_from_dict),
    WrappedArrayShape(PLUGIN_WRAPPER_KEYS, plugin_from_dict),
    WrappedNameMappingShape(),
    NameMappingShape(),
)

DOCUMENT_PLUGIN_SHAPE = DocumentNameMappingShape()


def decode_section(value: Any, document: Dict[str, Any], shapes: Iterable[SectionShape]) -> List[Any]:
    """Build entries with the first matching shape; no match means no entries."""
    for shape in shapes:
        if shape.matches(value, document):
            return shape.build(value, document)
    return []


def decode_document(document: Dict[str, Any]) -> ParsedQueryResponse:
    server = document.get(SERVER_KEY)
    universe = document.get(UNIVERSE_KEY)

    players: Optional[PlayersInfo] = None
    if document.get(PLAYERS_KEY) is not None:
        players = PlayersInfo(tuple(decode_section(document[PLAYERS_KEY], document, PLAYER_SHAPES)))

    plugins: Optional[PluginsInfo] = None
    if document.get(PLUGINS_KEY) is not None:
        plugins = PluginsInfo(tuple(decode_section(document[PLUGINS_KEY], document, PLUGIN_SHAPES)))
    elif DOCUMENT_PLUGIN_SHAPE.matches(None, document):
        plugins = PluginsInfo(tuple(DOCUMENT_PLUGIN_SHAPE.build(None, document)))

    return ParsedQueryResponse(
        server=server_from_dict(server) if isinstance(server, dict) else None,
        universe=universe_from_dict(universe) if isinstance(universe, dict) else None,
        players=players,
        plugins=plugins,
    )


def decode(text: str) -> ParsedQueryResponse:
    """Parse canonical text into a ParsedQueryResponse.

    Only invalid JSON syntax, nesting too deep to parse, or a non-object
    top level raise DecodeError;
    everything below the top level degrades to absent fields or empty lists.
    """
    try:
        document = json.loads(text)
    except (ValueError, TypeError, RecursionError) as exc:
        raise DecodeError.malformed(f"invalid JSON: {exc}") from exc
    if not isinstance(document, dict):
        raise DecodeError.malformed(f"expected a JSON object at top level, got {type(document).__name__}")
    return decode_document(document)
