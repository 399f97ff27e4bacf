from __future__ import annotations

from typing import Optional


class QueryError(Exception):
    """Base class for every failure raised inside the query pipeline."""


class InvalidEndpoint(QueryError, ValueError):
    """Host, port or path cannot form a request URL."""


class TransportError(QueryError):
    """Network-level failure before a complete HTTP response was received."""

    TIMEOUT = "timeout"
    CONNECTION_FAILED = "connection_failed"
    OTHER = "other"

    def __init__(self, kind: str, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.cause = cause

    @classmethod
    def timeout(cls, message: str, cause: Optional[BaseException] = None) -> "TransportError":
        return cls(cls.TIMEOUT, message, cause)

    @classmethod
    def connection_failed(cls, message: str, cause: Optional[BaseException] = None) -> "TransportError":
        return cls(cls.CONNECTION_FAILED, message, cause)

    @classmethod
    def other(cls, message: str, cause: Optional[BaseException] = None) -> "TransportError":
        return cls(cls.OTHER, message, cause)


class CharsetDecodeError(QueryError):
    """Body bytes are not valid under the declared charset."""

    def __init__(self, encoding: str, message: str) -> None:
        super().__init__(message)
        self.encoding = encoding


class DecodeError(QueryError):
    """Body text is not a JSON object."""

    MALFORMED = "malformed"

    def __init__(self, message: str, kind: str = MALFORMED) -> None:
        super().__init__(message)
        self.kind = kind

    @classmethod
    def malformed(cls, message: str) -> "DecodeError":
        return cls(message, cls.MALFORMED)
