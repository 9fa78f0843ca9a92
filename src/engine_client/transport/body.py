"""File-like response bodies for the socket transports.

Each body reads lazily from the connection it was handed and releases the
connection on ``close()``. Framing follows HTTP/1.1: a declared
``Content-Length``, ``Transfer-Encoding: chunked``, or everything until the
peer closes the connection.
"""

from __future__ import annotations

import io
from typing import BinaryIO, Callable

from ..errors import ProtocolError, TransportError


class ResponseBody(io.RawIOBase):
    def __init__(self, fp: BinaryIO, on_close: Callable[[], None]) -> None:
        super().__init__()
        self._fp = fp
        self._on_close = on_close

    def readable(self) -> bool:
        return True

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._on_close()
        finally:
            super().close()

    def _read_some(self, size: int) -> bytes:
        try:
            return self._fp.read1(size)  # type: ignore[attr-defined]
        except OSError as exc:
            raise TransportError(f"reading response body failed: {exc}") from exc

    def _readline(self) -> bytes:
        try:
            return self._fp.readline()
        except OSError as exc:
            raise TransportError(f"reading response body failed: {exc}") from exc


class EmptyBody(ResponseBody):
    def readinto(self, buffer) -> int:  # type: ignore[no-untyped-def]
        return 0


class LengthDelimitedBody(ResponseBody):
    def __init__(self, fp: BinaryIO, length: int, on_close: Callable[[], None]) -> None:
        super().__init__(fp, on_close)
        self._remaining = length

    def readinto(self, buffer) -> int:  # type: ignore[no-untyped-def]
        if self._remaining == 0 or len(buffer) == 0:
            return 0
        data = self._read_some(min(len(buffer), self._remaining))
        if not data:
            raise ProtocolError(f"connection closed with {self._remaining} body bytes outstanding")
        buffer[: len(data)] = data
        self._remaining -= len(data)
        return len(data)


class UntilCloseBody(ResponseBody):
    def readinto(self, buffer) -> int:  # type: ignore[no-untyped-def]
        if len(buffer) == 0:
            return 0
        data = self._read_some(len(buffer))
        buffer[: len(data)] = data
        return len(data)


class ChunkedBody(ResponseBody):
    def __init__(self, fp: BinaryIO, on_close: Callable[[], None]) -> None:
        super().__init__(fp, on_close)
        self._chunk_left = 0
        self._done = False

    def readinto(self, buffer) -> int:  # type: ignore[no-untyped-def]
        if self._done or len(buffer) == 0:
            return 0
        if self._chunk_left == 0:
            self._chunk_left = self._next_chunk_size()
            if self._chunk_left == 0:
                self._skip_trailers()
                self._done = True
                return 0

        data = self._read_some(min(len(buffer), self._chunk_left))
        if not data:
            raise ProtocolError("connection closed inside a chunk")
        buffer[: len(data)] = data
        self._chunk_left -= len(data)
        if self._chunk_left == 0:
            self._expect_line_end()
        return len(data)

    def _next_chunk_size(self) -> int:
        line = self._readline()
        if not line:
            raise ProtocolError("connection closed before the next chunk")
        size_text = line.split(b";", 1)[0].strip()
        try:
            size = int(size_text, 16)
        except ValueError as exc:
            raise ProtocolError(f"invalid chunk size {line!r}") from exc
        if size < 0:
            raise ProtocolError(f"invalid chunk size {line!r}")
        return size

    def _expect_line_end(self) -> None:
        line = self._readline()
        if line not in (b"\r\n", b"\n"):
            raise ProtocolError(f"missing line end after chunk, got {line!r}")

    def _skip_trailers(self) -> None:
        while True:
            line = self._readline()
            if line in (b"", b"\r\n", b"\n"):
                return


__all__ = [
    "ChunkedBody",
    "EmptyBody",
    "LengthDelimitedBody",
    "ResponseBody",
    "UntilCloseBody",
]
