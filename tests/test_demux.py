import io
import struct

import pytest

from engine_client import ProtocolError, Response, StreamChannel, StreamFrame, collect_output, demultiplex
from engine_client.demux import demultiplex_response


def frame(channel: int, payload: bytes) -> bytes:
    return struct.pack(">BxxxI", channel, len(payload)) + payload


class TrackingStream(io.BytesIO):
    def __init__(self, data: bytes) -> None:
        super().__init__(data)
        self.close_calls = 0

    def close(self) -> None:
        self.close_calls += 1
        super().close()


def test_single_stdout_frame() -> None:
    stream = io.BytesIO(bytes([0x01, 0, 0, 0, 0, 0, 0, 5]) + b"hello")
    frames = list(demultiplex(stream))
    assert frames == [StreamFrame(channel=StreamChannel.STDOUT, payload=b"hello")]


def test_truncated_payload_is_a_protocol_error() -> None:
    stream = TrackingStream(bytes([0x01, 0, 0, 0, 0, 0, 0, 5]) + b"hel")
    with pytest.raises(ProtocolError):
        list(demultiplex(stream))
    assert stream.close_calls == 1


def test_truncated_header_is_a_protocol_error() -> None:
    stream = io.BytesIO(frame(1, b"ok") + b"\x02\x00\x00")
    frames = demultiplex(stream)
    assert next(frames).payload == b"ok"
    with pytest.raises(ProtocolError):
        next(frames)


def test_unknown_channel_is_a_protocol_error() -> None:
    stream = TrackingStream(frame(3, b"??") + frame(1, b"never"))
    with pytest.raises(ProtocolError):
        list(demultiplex(stream))
    assert stream.closed


def test_interleaved_channels_keep_order() -> None:
    data = frame(1, b"out-1") + frame(2, b"err-1") + frame(0, b"in") + frame(1, b"out-2")
    frames = list(demultiplex(io.BytesIO(data)))
    assert [(f.channel, f.payload) for f in frames] == [
        (StreamChannel.STDOUT, b"out-1"),
        (StreamChannel.STDERR, b"err-1"),
        (StreamChannel.STDOUT, b"out-2"),
    ]
    assert collect_output(frames) == (b"out-1out-2", b"err-1")


def test_empty_stream_yields_nothing() -> None:
    assert list(demultiplex(io.BytesIO(b""))) == []


def test_tty_output_passes_through_unmodified() -> None:
    raw = frame(1, b"looks framed") + b"\x1b[0mplain"
    frames = list(demultiplex(io.BytesIO(raw), multiplexed=False))
    assert all(f.channel is StreamChannel.STDOUT for f in frames)
    assert b"".join(f.payload for f in frames) == raw


def test_demultiplex_response_uses_flag() -> None:
    response = Response(status=200, raw_stream=io.BytesIO(frame(2, b"boom")), multiplexed=True)
    assert collect_output(demultiplex_response(response)) == (b"", b"boom")


def test_demultiplex_response_requires_stream() -> None:
    with pytest.raises(ValueError):
        demultiplex_response(Response(status=200))
