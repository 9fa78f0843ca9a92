"""Request, response and result types shared across the client."""

from __future__ import annotations

import enum
from collections.abc import Generator
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Literal, Mapping, Union

HttpMethod = Literal["GET", "POST", "DELETE"]
BodyEncoding = Literal["json", "octet-stream"]
ResponseShape = Literal["json", "json-stream", "raw"]


@dataclass
class Request:
    """A call as the caller describes it, before any encoding."""

    method: HttpMethod
    path: str
    query: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    body_encoding: BodyEncoding | None = None
    expect: ResponseShape = "json"


@dataclass
class PreparedRequest:
    """A request ready for the wire: encoded query, headers and body."""

    method: HttpMethod
    target: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | BinaryIO | None = None


@dataclass
class Response:
    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    content: Any = None
    raw_stream: BinaryIO | None = None
    multiplexed: bool = False
    _body: BinaryIO | None = field(default=None, repr=False)

    @property
    def ok(self) -> bool:
        return 200 <= self.status <= 399

    def close(self) -> None:
        """Release the connection held by a streaming response."""
        if self.raw_stream is not None:
            self.raw_stream.close()
        if isinstance(self.content, Generator):
            self.content.close()
        if self._body is not None:
            self._body.close()

    def __enter__(self) -> "Response":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class StreamChannel(enum.IntEnum):
    STDOUT = 1
    STDERR = 2


@dataclass(frozen=True)
class StreamFrame:
    channel: StreamChannel
    payload: bytes


@dataclass(frozen=True)
class TarEntryResult:
    name: str
    size: int
    content: bytes


@dataclass(frozen=True)
class Created:
    response: Response


@dataclass(frozen=True)
class ImageMissing:
    response: Response


@dataclass(frozen=True)
class CreateFailed:
    response: Response


CreateOutcome = Union[Created, ImageMissing, CreateFailed]


@dataclass
class RunResult:
    container: Response
    status: Response


__all__ = [
    "BodyEncoding",
    "CreateFailed",
    "CreateOutcome",
    "Created",
    "HttpMethod",
    "ImageMissing",
    "PreparedRequest",
    "Request",
    "Response",
    "ResponseShape",
    "RunResult",
    "StreamChannel",
    "StreamFrame",
    "TarEntryResult",
]
