"""Resolution of the engine address and the TLS decision."""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping
from urllib.parse import urlsplit

from .errors import ConfigurationError
from .logger import BoundLogger, create_logger

DEFAULT_TLS_PORT = 2376
DEFAULT_PLAIN_PORT = 2375
TLS_VERIFY_FALSY = frozenset({"0", "no", "false"})
TLS_VERIFY_TRUTHY = frozenset({"1", "yes", "true"})


def default_cert_path() -> Path:
    return Path.home() / ".docker"


class EndpointKind(str, enum.Enum):
    TCP = "tcp"
    TLS = "tls"
    UNIX_SOCKET = "unix"


@dataclass(frozen=True)
class Endpoint:
    kind: EndpointKind
    scheme: str = "http"
    host: str = ""
    port: int = 0
    socket_path: str = ""
    cert_path: str | None = None

    @property
    def base_url(self) -> str:
        if self.kind is EndpointKind.UNIX_SOCKET:
            return "http://localhost"
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{self.scheme}://{host}:{self.port}"


@dataclass(frozen=True)
class EndpointSettings:
    docker_host: str | None = None
    tls_verify: str | None = None
    cert_path: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "EndpointSettings":
        env = os.environ if environ is None else environ
        return cls(
            docker_host=env.get("DOCKER_HOST") or None,
            tls_verify=env.get("DOCKER_TLS_VERIFY") or None,
            cert_path=env.get("DOCKER_CERT_PATH") or None,
        )

    def override(
        self,
        *,
        docker_host: str | None = None,
        tls_verify: str | None = None,
        cert_path: str | None = None,
    ) -> "EndpointSettings":
        return EndpointSettings(
            docker_host=docker_host if docker_host is not None else self.docker_host,
            tls_verify=tls_verify if tls_verify is not None else self.tls_verify,
            cert_path=cert_path if cert_path is not None else self.cert_path,
        )


class EndpointResolver:
    """Turns a host specification plus TLS settings into an :class:`Endpoint`.

    ``tcp``, ``http`` and ``https`` specs are rewritten to ``https`` or
    ``http`` by :meth:`should_use_tls`. That decision is a best-effort guess
    when TLS verification is neither enabled nor disabled explicitly: TLS is
    picked when a cert directory exists and the port is the engine's default
    TLS port.
    """

    def __init__(
        self,
        settings: EndpointSettings,
        *,
        default_cert_dir: str | os.PathLike[str] | None = None,
        logger: BoundLogger | None = None,
    ) -> None:
        self._settings = settings
        self._default_cert_dir = Path(default_cert_dir) if default_cert_dir is not None else default_cert_path()
        self._logger = (logger or create_logger()).child("endpoint")

    def resolve(self) -> Endpoint:
        host_spec = self._settings.docker_host
        if not host_spec:
            raise ConfigurationError("docker host must be set (DOCKER_HOST or docker_host=...)")
        if "://" not in host_spec:
            raise ConfigurationError(f"docker host '{host_spec}' has no scheme")

        scheme, remainder = host_spec.split("://", 1)
        if scheme in {"tcp", "http", "https"}:
            endpoint = self._resolve_network(remainder)
        elif scheme == "unix":
            endpoint = self._resolve_unix(remainder)
        else:
            self._logger.warn("protocol '%s' not supported, using '%s' as given", scheme, host_spec)
            endpoint = self._passthrough(scheme, host_spec)
        self._logger.debug("selected docker host %s", endpoint)
        return endpoint

    def should_use_tls(self, candidate_url: str) -> bool:
        tls_verify = self._settings.tls_verify
        if tls_verify in TLS_VERIFY_FALSY:
            self._logger.debug("tls verify disabled (%s)", tls_verify)
            return False

        cert_dir = self._existing_cert_dir()
        certs_path_exists = cert_dir is not None

        if tls_verify in TLS_VERIFY_TRUTHY:
            if not certs_path_exists:
                raise ConfigurationError(
                    f"tlsverify={tls_verify} requested but cert path {self._settings.cert_path} is missing"
                )
            return True

        port = _port_of(candidate_url)
        is_tls_port = port == DEFAULT_TLS_PORT
        self._logger.debug("certs path exists=%s, tls port=%s", certs_path_exists, is_tls_port)
        return certs_path_exists and is_tls_port

    def _existing_cert_dir(self) -> Path | None:
        explicit = self._settings.cert_path
        if explicit and Path(explicit).is_dir():
            self._logger.debug("cert path %s", explicit)
            return Path(explicit)
        if self._default_cert_dir.is_dir():
            self._logger.debug("cert path %s", self._default_cert_dir)
            return self._default_cert_dir
        return None

    def _resolve_network(self, remainder: str) -> Endpoint:
        use_tls = self.should_use_tls(f"https://{remainder}")
        scheme = "https" if use_tls else "http"
        parsed = urlsplit(f"{scheme}://{remainder}")
        if not parsed.hostname:
            raise ConfigurationError(f"docker host '{remainder}' has no host name")
        try:
            port = parsed.port
        except ValueError as exc:
            raise ConfigurationError(f"docker host '{remainder}' has an invalid port") from exc
        if port is None:
            port = DEFAULT_TLS_PORT if use_tls else DEFAULT_PLAIN_PORT

        cert_dir = self._existing_cert_dir() if use_tls else None
        return Endpoint(
            kind=EndpointKind.TLS if use_tls else EndpointKind.TCP,
            scheme=scheme,
            host=parsed.hostname,
            port=port,
            cert_path=str(cert_dir) if cert_dir is not None else None,
        )

    def _resolve_unix(self, socket_path: str) -> Endpoint:
        if not socket_path or "\x00" in socket_path:
            raise ConfigurationError(f"could not use the 'unix' protocol to connect to '{socket_path}'")
        return Endpoint(kind=EndpointKind.UNIX_SOCKET, scheme="unix", socket_path=socket_path)

    def _passthrough(self, scheme: str, host_spec: str) -> Endpoint:
        parsed = urlsplit(host_spec)
        try:
            port = parsed.port or 0
        except ValueError as exc:
            raise ConfigurationError(f"docker host '{host_spec}' has an invalid port") from exc
        return Endpoint(kind=EndpointKind.TCP, scheme=scheme, host=parsed.hostname or "", port=port)


def resolve_endpoint(
    host_spec: str | None,
    tls_verify: str | None = None,
    cert_path: str | None = None,
    *,
    default_cert_dir: str | os.PathLike[str] | None = None,
    logger: BoundLogger | None = None,
) -> Endpoint:
    settings = EndpointSettings(docker_host=host_spec, tls_verify=tls_verify, cert_path=cert_path)
    return EndpointResolver(settings, default_cert_dir=default_cert_dir, logger=logger).resolve()


def _port_of(url: str) -> int | None:
    try:
        return urlsplit(url).port
    except ValueError:
        return None


__all__ = [
    "DEFAULT_TLS_PORT",
    "Endpoint",
    "EndpointKind",
    "EndpointResolver",
    "EndpointSettings",
    "resolve_endpoint",
]
