"""Common transport abstractions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import BinaryIO, Literal, Mapping, Protocol, runtime_checkable

from ..types import PreparedRequest

TransportKind = Literal["http", "unix"]


@dataclass
class RawResponse:
    """Status line, headers and the still-open body of one exchange.

    ``body`` owns the connection: reading it to the end does not close it,
    ``body.close()`` does.
    """

    status: int
    body: BinaryIO
    reason: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)

    def read_all(self) -> bytes:
        try:
            return self.body.read()
        finally:
            self.body.close()


@runtime_checkable
class Transport(Protocol):
    Kind = TransportKind

    @property
    def kind(self) -> TransportKind: ...

    def send(self, request: PreparedRequest) -> RawResponse: ...


__all__ = ["RawResponse", "Transport", "TransportKind"]
