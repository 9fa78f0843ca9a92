"""Response body decoding shared by all call shapes."""

from __future__ import annotations

import codecs
import json
import re
from typing import Any, BinaryIO, Iterator

from .errors import FormatError

READ_SIZE = 64 * 1024

_decoder = json.JSONDecoder()
_STRUCTURAL = re.compile(r'["{}\[\]]')
_STRING_SPECIAL = re.compile(r'["\\]')


def is_json_content_type(content_type: str | None) -> bool:
    value = (content_type or "").lower()
    return "json" in value


def decode_body(body: bytes, content_type: str | None) -> Any:
    """Decode a fully read success body.

    JSON content types must parse; text content is returned as ``str`` and
    anything else as ``bytes``. An empty body is ``None``.
    """
    if not body:
        return None
    if is_json_content_type(content_type):
        try:
            return json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise FormatError(f"Invalid JSON response: {exc}") from exc
    if (content_type or "").lower().startswith("application/octet-stream"):
        return body
    return body.decode("utf-8", errors="replace")


def decode_error_body(body: bytes) -> Any:
    """Decode a failure body without ever failing: JSON if possible, else text."""
    if not body:
        return None
    text = body.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text.strip()


def extract_error_message(body: Any) -> str:
    if not body:
        return "Error occurred"
    if isinstance(body, dict) and "message" in body:
        return str(body["message"])
    if isinstance(body, bytes):
        return body.decode("utf-8", errors="replace").strip() or "Error occurred"
    return str(body).strip() or "Error occurred"


class _ValueScanner:
    """Finds where a JSON object, array or string that starts the buffer ends.

    The scan position survives between reads, so each character of a
    document is looked at once however many reads the document spans.
    """

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.pos = 0
        self.depth = 0
        self.in_string = False

    def complete(self, text: str) -> bool:
        while True:
            pattern = _STRING_SPECIAL if self.in_string else _STRUCTURAL
            match = pattern.search(text, self.pos)
            if match is None:
                # pos may sit past the end after a trailing backslash
                self.pos = max(self.pos, len(text))
                return False
            char = match.group()
            self.pos = match.end()
            if char == "\\":
                self.pos += 1
            elif char == '"':
                self.in_string = not self.in_string
                if not self.in_string and self.depth == 0:
                    return True
            elif char in "{[":
                self.depth += 1
            else:
                self.depth -= 1
                if self.depth <= 0:
                    return True


def _next_document(buffer: str, scanner: _ValueScanner, eof: bool) -> tuple[Any, int] | None:
    if buffer[0] in '{["':
        if not scanner.complete(buffer):
            if eof:
                raise FormatError("JSON stream ended inside a document")
            return None
        try:
            return _decoder.raw_decode(buffer[: scanner.pos])
        except json.JSONDecodeError as exc:
            raise FormatError(f"Invalid JSON document in stream: {exc}") from exc

    try:
        document, end = _decoder.raw_decode(buffer)
    except json.JSONDecodeError as exc:
        if eof:
            raise FormatError(f"Invalid JSON document in stream: {exc}") from exc
        return None
    # a number at the end of the buffer may still be growing
    if end == len(buffer) and not eof and isinstance(document, (int, float)):
        return None
    return document, end


def iter_json_documents(stream: BinaryIO, *, read_size: int = READ_SIZE) -> Iterator[Any]:
    """Lazily yield JSON documents from a newline- or concatenation-delimited stream.

    Progress output of build and pull, and the engine's search results, arrive
    as a sequence of JSON values written back to back. The stream is read in
    ``read_size`` pieces only as far as the consumer iterates and is closed
    when the generator finishes or is closed.
    """
    text_decoder = codecs.getincrementaldecoder("utf-8")()
    scanner = _ValueScanner()
    buffer = ""
    eof = False
    try:
        while True:
            if not scanner.pos:
                buffer = buffer.lstrip()
            if buffer:
                parsed = _next_document(buffer, scanner, eof)
                if parsed is not None:
                    document, end = parsed
                    buffer = buffer[end:]
                    scanner.reset()
                    yield document
                    continue
            elif eof:
                return

            chunk = stream.read(read_size)
            if not chunk:
                eof = True
                buffer += text_decoder.decode(b"", final=True)
            else:
                buffer += text_decoder.decode(chunk)
    except UnicodeDecodeError as exc:
        raise FormatError(f"JSON stream is not valid UTF-8: {exc}") from exc
    finally:
        stream.close()


__all__ = [
    "decode_body",
    "decode_error_body",
    "extract_error_message",
    "is_json_content_type",
    "iter_json_documents",
]
