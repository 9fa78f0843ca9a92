"""HTTP/1.1 over a Unix domain socket using the standard library socket module."""

from __future__ import annotations

import socket
from typing import BinaryIO

from ..errors import ProtocolError, TransportError
from ..logger import BoundLogger, create_logger
from ..types import PreparedRequest
from .base import RawResponse, Transport
from .body import ChunkedBody, EmptyBody, LengthDelimitedBody, ResponseBody, UntilCloseBody

CHUNK_SIZE = 64 * 1024
MAX_HEADER_LINES = 200


class UnixSocketTransport:
    """Speaks raw HTTP to the engine's local socket.

    Every call opens its own connection. The response body keeps that
    connection until it is closed, which lets attach, exec and log-follow
    calls stream for as long as the engine keeps writing.
    """

    kind: Transport.Kind = "unix"

    def __init__(self, socket_path: str, *, logger: BoundLogger | None = None) -> None:
        self._socket_path = socket_path
        self._logger = (logger or create_logger()).child("unix")

    @property
    def socket_path(self) -> str:
        return self._socket_path

    def send(self, request: PreparedRequest) -> RawResponse:
        sock = self._connect()
        reader: BinaryIO | None = None
        try:
            self._write_request(sock, request)
            reader = sock.makefile("rb")
            status, reason, headers = self._read_head(reader)
            body = self._body_for(request, status, headers, reader, sock)
        except BaseException:
            if reader is not None:
                reader.close()
            sock.close()
            raise
        self._logger.debug("UNIX <- %s %s status=%d", request.method, request.target, status)
        return RawResponse(status=status, reason=reason, headers=headers, body=body)

    def _connect(self) -> socket.socket:
        self._logger.trace("Connecting to %s", self._socket_path)
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.connect(self._socket_path)
        except OSError as exc:
            sock.close()
            raise TransportError(f"Cannot connect to {self._socket_path}: {exc}") from exc
        return sock

    def _write_request(self, sock: socket.socket, request: PreparedRequest) -> None:
        headers = {"Host": "localhost", "Connection": "close"}
        headers.update(request.headers)
        body = request.body
        chunked = body is not None and not isinstance(body, (bytes, bytearray))
        if chunked:
            headers.pop("Content-Length", None)
            headers["Transfer-Encoding"] = "chunked"
        elif body is not None:
            headers["Content-Length"] = str(len(body))
        elif request.method == "POST":
            headers["Content-Length"] = "0"

        lines = [f"{request.method} {request.target} HTTP/1.1"]
        lines.extend(f"{name}: {value}" for name, value in headers.items())
        head = ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")
        self._logger.debug("UNIX -> %s %s", request.method, request.target)

        try:
            sock.sendall(head)
            if chunked:
                self._write_chunked(sock, body)  # type: ignore[arg-type]
            elif body:
                sock.sendall(body)  # type: ignore[arg-type]
        except OSError as exc:
            raise TransportError(f"Writing request to {self._socket_path} failed: {exc}") from exc

    def _write_chunked(self, sock: socket.socket, stream: BinaryIO) -> None:
        while True:
            chunk = stream.read(CHUNK_SIZE)
            if not chunk:
                break
            sock.sendall(b"%x\r\n" % len(chunk) + chunk + b"\r\n")
        sock.sendall(b"0\r\n\r\n")

    def _read_head(self, reader: BinaryIO) -> tuple[int, str, dict[str, str]]:
        status_line = self._readline(reader)
        if not status_line:
            raise ProtocolError("connection closed before a status line was received")
        status, reason = _parse_status_line(status_line)

        headers: dict[str, str] = {}
        for _ in range(MAX_HEADER_LINES):
            line = self._readline(reader)
            if not line:
                raise ProtocolError("connection closed inside the response headers")
            if line in (b"\r\n", b"\n"):
                if 100 <= status < 200:
                    # interim response, the real one follows
                    return self._read_head(reader)
                return status, reason, headers
            name, sep, value = line.decode("latin-1").partition(":")
            if not sep or not name.strip():
                raise ProtocolError(f"malformed header line {line!r}")
            key = name.strip().lower()
            value = value.strip()
            headers[key] = f"{headers[key]}, {value}" if key in headers else value
        raise ProtocolError("too many response header lines")

    def _readline(self, reader: BinaryIO) -> bytes:
        try:
            return reader.readline()
        except OSError as exc:
            raise TransportError(f"Reading response from {self._socket_path} failed: {exc}") from exc

    def _body_for(
        self,
        request: PreparedRequest,
        status: int,
        headers: dict[str, str],
        reader: BinaryIO,
        sock: socket.socket,
    ) -> ResponseBody:
        def release() -> None:
            reader.close()
            sock.close()

        if status in (204, 304):
            release()
            return EmptyBody(reader, lambda: None)
        if "chunked" in headers.get("transfer-encoding", "").lower():
            return ChunkedBody(reader, release)
        if "content-length" in headers:
            try:
                length = int(headers["content-length"])
            except ValueError as exc:
                raise ProtocolError(f"invalid Content-Length {headers['content-length']!r}") from exc
            if length < 0:
                raise ProtocolError(f"invalid Content-Length {length}")
            return LengthDelimitedBody(reader, length, release)
        return UntilCloseBody(reader, release)


def _parse_status_line(line: bytes) -> tuple[int, str]:
    parts = line.decode("latin-1").rstrip("\r\n").split(None, 2)
    if len(parts) < 2 or not parts[0].startswith("HTTP/"):
        raise ProtocolError(f"malformed status line {line!r}")
    try:
        status = int(parts[1])
    except ValueError as exc:
        raise ProtocolError(f"malformed status line {line!r}") from exc
    if not 100 <= status <= 999:
        raise ProtocolError(f"malformed status line {line!r}")
    return status, parts[2] if len(parts) > 2 else ""


__all__ = ["UnixSocketTransport"]
