from __future__ import annotations

from typing import FrozenSet


# LAN aliases of the monitored server, which serves a self-signed certificate.
TRUSTED_SELF_SIGNED_HOSTS: FrozenSet[str] = frozenset({"NUCTAX", "nuctax.local", "192.168.0.203"})


def is_trusted_host(name: str) -> bool:
    """Return True if certificate-chain validation may be skipped for ``name``.

    Every other host gets the standard system validation.
    """
    return name in TRUSTED_SELF_SIGNED_HOSTS
