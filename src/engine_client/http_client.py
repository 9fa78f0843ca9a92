"""Request building, transport dispatch and response interpretation."""

from __future__ import annotations

import json
from typing import Any, Mapping
from urllib.parse import urlencode

from .endpoint import Endpoint, EndpointResolver, EndpointSettings
from .errors import OperationError
from .logger import BoundLogger, create_logger
from .parser import decode_body, decode_error_body, extract_error_message, iter_json_documents
from .transport import TransportFactory, create_transport
from .transport.base import RawResponse
from .types import BodyEncoding, HttpMethod, PreparedRequest, Request, Response, ResponseShape


class HttpEngineClient:
    """Sends requests to the engine over the transport its endpoint implies.

    The endpoint is resolved on first use and kept for the lifetime of the
    client; it is the only state shared between calls. Every call gets a
    transport connection of its own.
    """

    def __init__(
        self,
        settings: EndpointSettings,
        *,
        transport_factory: TransportFactory | None = None,
        default_headers: Mapping[str, str] | None = None,
        default_cert_dir: str | None = None,
        logger: BoundLogger | None = None,
    ) -> None:
        self._logger = logger or create_logger()
        self._resolver = EndpointResolver(settings, default_cert_dir=default_cert_dir, logger=self._logger)
        self._transport_factory = transport_factory or create_transport
        self._default_headers = dict(default_headers or {})
        self._endpoint: Endpoint | None = None

    @property
    def endpoint(self) -> Endpoint:
        if self._endpoint is None:
            self._endpoint = self._resolver.resolve()
            self._logger.info("using docker at '%s'", self._endpoint.socket_path or self._endpoint.base_url)
        return self._endpoint

    def get(self, path: str, **kwargs: Any) -> Response:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> Response:
        return self.request("POST", path, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> Response:
        return self.request("DELETE", path, **kwargs)

    def request(
        self,
        method: HttpMethod,
        path: str,
        *,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        body: Any = None,
        body_encoding: BodyEncoding | None = None,
        expect: ResponseShape = "json",
        multiplexed: bool = False,
    ) -> Response:
        request = Request(
            method=method,
            path=path,
            query=dict(query or {}),
            headers={**self._default_headers, **(headers or {})},
            body=body,
            body_encoding=body_encoding,
            expect=expect,
        )
        return self.send(request, multiplexed=multiplexed)

    def send(self, request: Request, *, multiplexed: bool = False) -> Response:
        prepared = prepare_request(request)
        transport = self._transport_factory(self.endpoint, self._logger)
        raw = transport.send(prepared)
        return interpret_response(raw, request.expect, multiplexed=multiplexed)


def encode_query(query: Mapping[str, Any]) -> list[tuple[str, str]]:
    """Flatten a query mapping into ordered key/value pairs.

    Nested structures such as ``filters`` travel as JSON strings, booleans
    as ``true``/``false`` and lists as repeated keys.
    """
    pairs: list[tuple[str, str]] = []
    for key, value in query.items():
        if value is None:
            continue
        if key == "filters" and not isinstance(value, str):
            pairs.append((key, json.dumps(value)))
        elif isinstance(value, dict):
            pairs.append((key, json.dumps(value)))
        elif isinstance(value, bool):
            pairs.append((key, "true" if value else "false"))
        elif isinstance(value, (list, tuple)):
            pairs.extend((key, _scalar(item)) for item in value)
        else:
            pairs.append((key, str(value)))
    return pairs


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def prepare_request(request: Request) -> PreparedRequest:
    target = request.path
    pairs = encode_query(request.query)
    if pairs:
        target = f"{target}?{urlencode(pairs)}"

    headers = dict(request.headers)
    body = request.body
    encoded: Any = None
    if body is not None:
        if request.body_encoding == "json" or (
            request.body_encoding is None and not isinstance(body, (bytes, bytearray)) and not hasattr(body, "read")
        ):
            encoded = json.dumps(body).encode("utf-8")
            headers.setdefault("Content-Type", "application/json")
        else:
            encoded = bytes(body) if isinstance(body, bytearray) else body
            headers.setdefault("Content-Type", "application/octet-stream")
    elif request.body_encoding == "json":
        headers.setdefault("Content-Type", "application/json")

    return PreparedRequest(method=request.method, target=target, headers=headers, body=encoded)


def interpret_response(raw: RawResponse, expect: ResponseShape, *, multiplexed: bool = False) -> Response:
    content_type = raw.headers.get("content-type")
    response = Response(status=raw.status, headers=raw.headers, multiplexed=multiplexed)

    if not response.ok:
        response.content = decode_error_body(raw.read_all())
        return response

    if expect == "raw":
        response.raw_stream = raw.body
    elif expect == "json-stream":
        # closing an unstarted generator skips its finally block
        response._body = raw.body
        response.content = iter_json_documents(raw.body)
    else:
        response.content = decode_body(raw.read_all(), content_type)
    return response


def ensure_successful_response(response: Response, context_error: Exception | str) -> None:
    """Raise :class:`OperationError` unless ``response.status`` is within 200..399."""
    if response.ok:
        return
    if isinstance(context_error, str):
        context_error = RuntimeError(context_error)
    raise OperationError(
        f"{context_error}: {extract_error_message(response.content)}",
        status=response.status,
        body=response.content,
        context=context_error,
    ) from context_error


__all__ = [
    "HttpEngineClient",
    "encode_query",
    "ensure_successful_response",
    "interpret_response",
    "prepare_request",
]
