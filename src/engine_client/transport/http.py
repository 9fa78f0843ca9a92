"""TCP and TLS transport built on top of httpx."""

from __future__ import annotations

import ssl
from pathlib import Path
from typing import BinaryIO, Callable, Iterator

import httpx

from ..errors import ProtocolError, TransportError
from ..logger import BoundLogger, create_logger
from ..types import PreparedRequest
from .base import RawResponse, Transport
from .body import ResponseBody

ClientFactory = Callable[[], httpx.Client]

CHUNK_SIZE = 64 * 1024


def tls_context(cert_path: str | None) -> ssl.SSLContext:
    """Build an SSL context from the engine's ``ca.pem``/``cert.pem``/``key.pem``."""
    cert_dir = Path(cert_path) if cert_path else None
    ca_file = cert_dir / "ca.pem" if cert_dir else None
    context = ssl.create_default_context(
        cafile=str(ca_file) if ca_file is not None and ca_file.is_file() else None
    )
    if cert_dir is not None:
        cert_file = cert_dir / "cert.pem"
        key_file = cert_dir / "key.pem"
        if cert_file.is_file() and key_file.is_file():
            context.load_cert_chain(str(cert_file), str(key_file))
    return context


class HttpxBody(ResponseBody):
    """Adapts a streamed httpx response to the file-like body interface."""

    def __init__(self, response: httpx.Response, client: httpx.Client) -> None:
        def release() -> None:
            try:
                response.close()
            finally:
                client.close()

        super().__init__(None, release)  # type: ignore[arg-type]
        self._chunks: Iterator[bytes] = response.iter_bytes()
        self._pending = b""

    def readinto(self, buffer) -> int:  # type: ignore[no-untyped-def]
        if len(buffer) == 0:
            return 0
        while not self._pending:
            try:
                self._pending = next(self._chunks)
            except StopIteration:
                return 0
            except httpx.RemoteProtocolError as exc:
                raise ProtocolError(f"malformed response body: {exc}") from exc
            except httpx.HTTPError as exc:
                raise TransportError(f"reading response body failed: {exc}") from exc
        size = min(len(buffer), len(self._pending))
        buffer[:size] = self._pending[:size]
        self._pending = self._pending[size:]
        return size


class HttpTransport:
    """Sends one request per fresh httpx client; nothing is pooled between calls."""

    kind: Transport.Kind = "http"

    def __init__(
        self,
        base_url: str,
        *,
        verify: ssl.SSLContext | bool = True,
        client_factory: ClientFactory | None = None,
        logger: BoundLogger | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._verify = verify
        self._client_factory = client_factory or self._default_client
        self._logger = (logger or create_logger()).child("http")

    @property
    def base_url(self) -> str:
        return self._base_url

    def send(self, request: PreparedRequest) -> RawResponse:
        url = f"{self._base_url}{request.target}"
        client = self._client_factory()
        try:
            self._logger.debug("HTTP %s %s", request.method, url)
            built = client.build_request(
                request.method,
                url,
                headers=request.headers,
                content=_content_of(request.body),
            )
            response = client.send(built, stream=True)
        except httpx.RemoteProtocolError as exc:
            client.close()
            raise ProtocolError(f"Malformed response from {url}: {exc}") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            client.close()
            raise TransportError(f"Cannot reach {url}: {exc}") from exc

        self._logger.debug("HTTP <- %s status=%s", url, response.status_code)
        return RawResponse(
            status=response.status_code,
            reason=response.reason_phrase,
            headers={k.lower(): v for k, v in response.headers.items()},
            body=HttpxBody(response, client),
        )

    def _default_client(self) -> httpx.Client:
        return httpx.Client(verify=self._verify, timeout=httpx.Timeout(None))


def _content_of(body: bytes | BinaryIO | None) -> bytes | Iterator[bytes] | None:
    if body is None or isinstance(body, (bytes, bytearray)):
        return body
    return iter(lambda: body.read(CHUNK_SIZE), b"")


__all__ = ["HttpTransport", "HttpxBody", "tls_context"]
