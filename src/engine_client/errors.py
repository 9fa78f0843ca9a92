"""Exceptions raised by the container-engine client."""

from __future__ import annotations

from typing import Any


class EngineClientError(Exception):
    """Base error for all client failures."""

    def __init__(self, message: str, *, context: Any | None = None) -> None:
        super().__init__(message)
        self.context = context


class ConfigurationError(EngineClientError):
    """Raised when endpoint, TLS or container settings are missing or contradictory."""


class TransportError(EngineClientError):
    """Raised when a TCP, TLS or Unix socket connection fails."""


class ProtocolError(TransportError):
    """Raised for malformed HTTP framing or a corrupt multiplexed stream."""


class FormatError(EngineClientError):
    """Raised when a tar entry or JSON document cannot be decoded."""


class OperationError(EngineClientError):
    """Raised when the engine answers a call that demands success with a failure."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        body: Any | None = None,
        context: Any | None = None,
    ) -> None:
        super().__init__(message, context=context)
        self.status = status
        self.body = body


__all__ = [
    "ConfigurationError",
    "EngineClientError",
    "FormatError",
    "OperationError",
    "ProtocolError",
    "TransportError",
]
