from __future__ import annotations

import re
from typing import Optional

from .errors import CharsetDecodeError


NON_DECODABLE_TEXT = "<non-decodable body>"

_LATIN1_CHARSET = re.compile(r"charset\s*=\s*\"?(iso-8859-1|latin1)\b", re.IGNORECASE)


def declares_latin1(content_type: Optional[str]) -> bool:
    """True when the Content-Type carries a single-byte Latin-1 charset parameter."""
    return bool(content_type) and _LATIN1_CHARSET.search(content_type) is not None


def decode_body(body: bytes, content_type: Optional[str]) -> str:
    """Decode ``body`` under its declared charset, raising CharsetDecodeError."""
    encoding = "iso-8859-1" if declares_latin1(content_type) else "utf-8"
    try:
        return body.decode(encoding)
    except UnicodeDecodeError as exc:
        raise CharsetDecodeError(encoding, f"body is not valid {encoding}: {exc.reason} at byte {exc.start}") from exc


def normalize(body: bytes, content_type: Optional[str]) -> str:
    """Return the canonical text of ``body``.

    Latin-1 bodies are decoded byte-for-byte, so the resulting str is the
    UTF-8 form the JSON decoder expects. Undecodable bodies yield
    NON_DECODABLE_TEXT instead of raising.
    """
    try:
        return decode_body(body, content_type)
    except CharsetDecodeError:
        return NON_DECODABLE_TEXT
