import io
import json
import time

import pytest

from engine_client import FormatError
from engine_client.parser import decode_body, decode_error_body, extract_error_message, iter_json_documents


class SlowStream(io.BytesIO):
    """Hands out at most a few bytes per read, like a trickling socket."""

    def __init__(self, data: bytes, step: int = 3) -> None:
        super().__init__(data)
        self.step = step
        self.reads = 0

    def read(self, size: int = -1) -> bytes:
        self.reads += 1
        return super().read(min(self.step, size) if size and size > 0 else self.step)


def test_decode_json_body() -> None:
    assert decode_body(b'{"Id": "abc"}', "application/json") == {"Id": "abc"}


def test_decode_text_body() -> None:
    assert decode_body(b"OK", "text/plain; charset=utf-8") == "OK"


def test_decode_empty_body() -> None:
    assert decode_body(b"", "application/json") is None


def test_invalid_json_body_is_a_format_error() -> None:
    with pytest.raises(FormatError):
        decode_body(b"{nope", "application/json")


def test_error_body_never_fails() -> None:
    assert decode_error_body(b'{"message": "no such image"}') == {"message": "no such image"}
    assert decode_error_body(b"page not found\n") == "page not found"
    assert decode_error_body(b"") is None


def test_extract_error_message_prefers_message_field() -> None:
    assert extract_error_message({"message": "boom"}) == "boom"
    assert extract_error_message("nonsense") == "nonsense"
    assert extract_error_message(None) == "Error occurred"


def test_json_stream_newline_delimited() -> None:
    stream = io.BytesIO(b'{"status": "a"}\r\n{"status": "b"}\n')
    assert list(iter_json_documents(stream)) == [{"status": "a"}, {"status": "b"}]
    assert stream.closed


def test_json_stream_concatenated_across_reads() -> None:
    data = '{"stream":"Step 1"}{"stream":"café"}[1,2]'.encode("utf-8")
    documents = list(iter_json_documents(SlowStream(data), read_size=2))
    assert documents == [{"stream": "Step 1"}, {"stream": "café"}, [1, 2]]


def test_json_stream_is_lazy() -> None:
    stream = SlowStream(b'{"id": 1}' + b'{"id": 2}' * 100, step=16)
    documents = iter_json_documents(stream, read_size=16)
    assert next(documents) == {"id": 1}
    assert stream.reads < 5
    documents.close()
    assert stream.closed


def test_json_stream_trailing_garbage_is_a_format_error() -> None:
    with pytest.raises(FormatError):
        list(iter_json_documents(io.BytesIO(b'{"id": 1}{"id": ')))


def test_json_stream_numbers_at_chunk_end() -> None:
    assert list(iter_json_documents(SlowStream(b"12 345", step=2), read_size=2)) == [12, 345]


def test_json_stream_escapes_split_across_reads() -> None:
    data = b'["a\\\\", "q\\"}]", {"k": "[{"}]' + b'\n"tail"'
    assert list(iter_json_documents(SlowStream(data, step=1), read_size=1)) == [
        ["a\\", 'q"}]', {"k": "[{"}],
        "tail",
    ]


def test_json_stream_unterminated_document_is_a_format_error() -> None:
    with pytest.raises(FormatError):
        list(iter_json_documents(io.BytesIO(b'[{"id": 1}, {"id": 2}')))


def test_json_stream_large_document_is_parsed_in_linear_time() -> None:
    results = [
        {"name": f"image-{index}", "description": "a small image " * 8 + 'says "hi" [x] {y} \\', "star_count": index}
        for index in range(40000)
    ]
    data = json.dumps(results).encode("utf-8")
    assert len(data) > 4 * 1024 * 1024

    started = time.perf_counter()
    documents = list(iter_json_documents(io.BytesIO(data)))
    elapsed = time.perf_counter() - started

    assert documents == [results]
    assert elapsed < 5
