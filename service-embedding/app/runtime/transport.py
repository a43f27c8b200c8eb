"""Listener transport resolution (HTTPS with plaintext fallback).

``resolve_transport`` is a pure decision: it inspects the configured key and
certificate and returns a ``TransportDecision`` plus advisory diagnostics.
It never raises for missing or broken certificate material; the caller logs
the diagnostics and serves plaintext on the same port instead.
"""

import os
import ssl
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class TransportMode(str, Enum):
    HTTPS = "https"
    HTTP = "http"


@dataclass
class TransportDecision:
    """Outcome of transport resolution.

    Attributes
    - mode: protocol the listener will serve
    - requested: whether TLS was asked for by configuration
    - keyfile / certfile: paths to pass to the server when ``mode`` is HTTPS
    - diagnostics: human-readable reasons for a fallback, in check order
    """
    mode: TransportMode
    requested: bool
    keyfile: Optional[str] = None
    certfile: Optional[str] = None
    diagnostics: List[str] = field(default_factory=list)

    @property
    def fell_back(self) -> bool:
        """True when TLS was requested but plaintext will be served."""
        return self.requested and self.mode is TransportMode.HTTP

    @property
    def scheme(self) -> str:
        return self.mode.value


def _check_file(label: str, path: str) -> Optional[str]:
    if not os.path.exists(path):
        return f"{label} not found: {path}"
    if not os.path.isfile(path):
        return f"{label} is not a regular file: {path}"
    if not os.access(path, os.R_OK):
        return f"{label} is not readable: {path}"
    return None


def resolve_transport(use_ssl: bool, keyfile: str, certfile: str) -> TransportDecision:
    """Decide between HTTPS and plaintext HTTP.

    HTTPS is chosen only when TLS is requested and the key and certificate
    exist, are readable and load as a matching pair.
    """
    if not use_ssl:
        return TransportDecision(mode=TransportMode.HTTP, requested=False)

    diagnostics = [
        problem
        for problem in (
            _check_file("Private key", keyfile),
            _check_file("Certificate", certfile),
        )
        if problem is not None
    ]

    if not diagnostics:
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        try:
            context.load_cert_chain(certfile=certfile, keyfile=keyfile)
        except (ssl.SSLError, OSError, ValueError) as e:
            diagnostics.append(f"Certificate material could not be loaded: {e}")

    if diagnostics:
        return TransportDecision(
            mode=TransportMode.HTTP,
            requested=True,
            diagnostics=diagnostics,
        )

    return TransportDecision(
        mode=TransportMode.HTTPS,
        requested=True,
        keyfile=keyfile,
        certfile=certfile,
    )
