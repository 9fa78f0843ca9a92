"""Transport implementations and the default transport factory."""

from __future__ import annotations

from typing import Callable

from ..endpoint import Endpoint, EndpointKind
from ..logger import BoundLogger
from .base import RawResponse, Transport, TransportKind
from .http import HttpTransport, tls_context
from .unix import UnixSocketTransport

TransportFactory = Callable[[Endpoint, BoundLogger], Transport]


def create_transport(endpoint: Endpoint, logger: BoundLogger) -> Transport:
    """Pick the transport implied by a resolved endpoint."""
    if endpoint.kind is EndpointKind.UNIX_SOCKET:
        return UnixSocketTransport(endpoint.socket_path, logger=logger)
    if endpoint.kind is EndpointKind.TLS:
        return HttpTransport(endpoint.base_url, verify=tls_context(endpoint.cert_path), logger=logger)
    return HttpTransport(endpoint.base_url, logger=logger)


__all__ = [
    "HttpTransport",
    "RawResponse",
    "Transport",
    "TransportFactory",
    "TransportKind",
    "UnixSocketTransport",
    "create_transport",
]
