"""Demultiplexing of attach, exec and log output.

Without a TTY the engine interleaves stdout and stderr on one connection.
Each frame carries an 8-byte header:

- byte 0: channel (0 = stdin, 1 = stdout, 2 = stderr)
- bytes 1-3: reserved, zero
- bytes 4-7: payload length, big-endian unsigned

With a TTY the engine writes the terminal output as is.
"""

from __future__ import annotations

import struct
from typing import BinaryIO, Iterable, Iterator

from .errors import ProtocolError
from .types import Response, StreamChannel, StreamFrame

HEADER_SIZE = 8
STDIN_CHANNEL = 0
READ_SIZE = 8 * 1024
_HEADER = struct.Struct(">BxxxI")


def parse_frame_header(header: bytes) -> tuple[int, int]:
    channel, length = _HEADER.unpack(header)
    return channel, length


def demultiplex(stream: BinaryIO, *, multiplexed: bool = True) -> Iterator[StreamFrame]:
    """Yield the frames of ``stream`` until it ends.

    The first malformed frame raises :class:`ProtocolError` and closes the
    stream; there is no attempt to find the next frame boundary.
    """
    if not multiplexed:
        yield from _passthrough(stream)
        return

    while True:
        header = _read_exact(stream, HEADER_SIZE)
        if not header:
            return
        if len(header) < HEADER_SIZE:
            _corrupt(stream, f"stream ended inside a frame header ({len(header)} of {HEADER_SIZE} bytes)")

        channel, length = parse_frame_header(header)
        if channel not in (STDIN_CHANNEL, StreamChannel.STDOUT, StreamChannel.STDERR):
            _corrupt(stream, f"unknown stream channel {channel}")

        payload = _read_exact(stream, length)
        if len(payload) < length:
            _corrupt(stream, f"stream ended inside a frame payload ({len(payload)} of {length} bytes)")
        if channel == STDIN_CHANNEL:
            continue
        yield StreamFrame(channel=StreamChannel(channel), payload=payload)


def demultiplex_response(response: Response) -> Iterator[StreamFrame]:
    if response.raw_stream is None:
        raise ValueError("response has no raw stream to demultiplex")
    return demultiplex(response.raw_stream, multiplexed=response.multiplexed)


def collect_output(frames: Iterable[StreamFrame]) -> tuple[bytes, bytes]:
    """Join frames into ``(stdout, stderr)``."""
    stdout: list[bytes] = []
    stderr: list[bytes] = []
    for frame in frames:
        (stdout if frame.channel is StreamChannel.STDOUT else stderr).append(frame.payload)
    return b"".join(stdout), b"".join(stderr)


def _passthrough(stream: BinaryIO) -> Iterator[StreamFrame]:
    while True:
        chunk = stream.read(READ_SIZE)
        if not chunk:
            return
        yield StreamFrame(channel=StreamChannel.STDOUT, payload=chunk)


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    """Read ``size`` bytes, fewer only when the stream ends first."""
    parts: list[bytes] = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        parts.append(chunk)
        remaining -= len(chunk)
    return b"".join(parts)


def _corrupt(stream: BinaryIO, message: str) -> None:
    stream.close()
    raise ProtocolError(message)


__all__ = [
    "HEADER_SIZE",
    "collect_output",
    "demultiplex",
    "demultiplex_response",
    "parse_frame_header",
]
