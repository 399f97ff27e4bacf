from __future__ import annotations

import time
import warnings
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import quote as _quote, urljoin, urlsplit

import requests
from requests.structures import CaseInsensitiveDict
from urllib3.exceptions import InsecureRequestWarning, ReadTimeoutError

from .errors import InvalidEndpoint, TransportError
from .models import QueryConfig, RawResponse
from .trust import is_trusted_host


# The endpoint answers 406 to anything else, including a missing Accept header.
ACCEPT_HEADER = "application/json"

_HOST_FORBIDDEN = set("/?#@")
_PATH_SAFE = "/:@!$&'()*+,;=-._~%"
REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})


def build_url(config: QueryConfig) -> str:
    """Assemble ``scheme://host:port/path`` or raise InvalidEndpoint."""
    host = config.host
    if not host or any(ch.isspace() or ch in _HOST_FORBIDDEN for ch in host):
        raise InvalidEndpoint(f"invalid host: {host!r}")
    if isinstance(config.port, bool) or not isinstance(config.port, int) or not 1 <= config.port <= 65535:
        raise InvalidEndpoint(f"invalid port: {config.port!r}")
    path = config.path or ""
    if path and not path.startswith("/"):
        raise InvalidEndpoint(f"path must start with '/': {path!r}")

    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    scheme = "https" if config.use_https else "http"
    return f"{scheme}://{host}:{config.port}{_quote(path, safe=_PATH_SAFE)}"


def _host_of(url: str) -> str:
    """Host part of ``url`` with its original case; urlsplit().hostname lowercases it."""
    netloc = urlsplit(url).netloc.rpartition("@")[2]
    if netloc.startswith("["):
        return netloc[1:].partition("]")[0]
    return netloc.partition(":")[0]


class Transport(ABC):
    """Performs one GET per call, following redirects; never retries."""

    @abstractmethod
    def fetch(self, config: QueryConfig) -> RawResponse:
        ...

    def close(self) -> None:
        pass



class RequestsTransport(Transport):
    """Transport backed by a requests.Session.

    Any received response is returned whatever its status code. Redirects
    are followed here rather than by requests so the trust decision is made
    again for every hop's host. The configured timeout is one budget for the
    whole exchange: each hop gets only what remains of it as its connect and
    read timeout, and the body is streamed so the budget is rechecked after
    every chunk. A stream that stalls mid-body is cut off by the remaining
    read timeout, so it can overrun the budget by at most that amount.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        chunk_size: int = 16 * 1024,
        max_redirects: int = 5,
    ) -> None:
        self._session = session or requests.Session()
        self._chunk_size = chunk_size
        self._max_redirects = max_redirects

    def fetch(self, config: QueryConfig) -> RawResponse:
        url = build_url(config)
        host = config.host
        timeout = float(config.timeout_seconds)
        deadline = time.monotonic() + timeout

        try:
            for _ in range(self._max_redirects + 1):
                response = self._get(url, host, self._remaining(deadline, timeout))
                location = CaseInsensitiveDict(response.headers).get("Location")
                if response.status_code in REDIRECT_STATUSES and location:
                    response.close()
                    url = urljoin(url, location)
                    host = _host_of(url)
                    continue
                try:
                    body = self._read_body(response, deadline, timeout)
                finally:
                    response.close()
                break
            else:
                raise TransportError.other(f"more than {self._max_redirects} redirects")
        except TransportError:
            raise
        except requests.exceptions.Timeout as exc:
            raise TransportError.timeout(f"request timed out after {timeout:g}s", exc) from exc
        except requests.exceptions.ConnectionError as exc:
            # requests wraps read timeouts hit while streaming the body
            if exc.args and isinstance(exc.args[0], ReadTimeoutError):
                raise TransportError.timeout(f"request timed out after {timeout:g}s", exc) from exc
            raise TransportError.connection_failed(str(exc) or type(exc).__name__, exc) from exc
        except requests.exceptions.RequestException as exc:
            raise TransportError.other(str(exc) or type(exc).__name__, exc) from exc

        return RawResponse(
            status_code=int(response.status_code),
            headers=CaseInsensitiveDict(response.headers),
            body=body,
        )

    def _get(self, url: str, host: str, timeout: float) -> requests.Response:
        verify = not is_trusted_host(host)
        with warnings.catch_warnings():
            if not verify:
                warnings.simplefilter("ignore", InsecureRequestWarning)
            return self._session.get(
                url,
                headers={"Accept": ACCEPT_HEADER},
                timeout=(timeout, timeout),
                verify=verify,
                stream=True,
                allow_redirects=False,
            )

    @staticmethod
    def _remaining(deadline: float, timeout: float) -> float:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TransportError.timeout(f"request timed out after {timeout:g}s")
        return remaining

    def _read_body(self, response: requests.Response, deadline: float, timeout: float) -> bytes:
        chunks = []
        for chunk in response.iter_content(chunk_size=self._chunk_size):
            if chunk:
                chunks.append(chunk)
            if time.monotonic() > deadline:
                raise TransportError.timeout(f"response not complete after {timeout:g}s")
        return b"".join(chunks)

    def close(self) -> None:
        self._session.close()
