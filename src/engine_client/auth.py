"""Registry credentials: the ``.dockercfg`` store and the X-Registry-Auth blob."""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import asdict, dataclass
from pathlib import Path

from .errors import FormatError
from .logger import BoundLogger, create_logger

DEFAULT_INDEX_SERVER = "https://index.docker.io/v1/"
ANONYMOUS_AUTH = "."


def default_config_path() -> Path:
    return Path.home() / ".dockercfg"


@dataclass
class AuthConfig:
    username: str = "UNKNOWN-USERNAME"
    password: str = "UNKNOWN-PASSWORD"
    email: str = "UNKNOWN-EMAIL"
    serveraddress: str = DEFAULT_INDEX_SERVER


def encode_auth(username: str, password: str) -> str:
    """Build the store's ``auth`` value: base64 of ``username:password``."""
    return base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")


def decode_auth(auth: str) -> tuple[str, str]:
    try:
        decoded = base64.b64decode(auth.encode("ascii"), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeError) as exc:
        raise FormatError(f"invalid auth value in credential store: {exc}") from exc
    username, sep, password = decoded.partition(":")
    if not sep:
        raise FormatError("auth value in credential store is not 'username:password'")
    return username, password


def encode_auth_config(config: AuthConfig) -> str:
    """Encode credentials as the base64 JSON blob sent in ``X-Registry-Auth``."""
    return base64.b64encode(json.dumps(asdict(config)).encode("utf-8")).decode("ascii")


class AuthConfigStore:
    """Reads registry credentials keyed by registry host."""

    def __init__(self, path: str | Path | None = None, *, logger: BoundLogger | None = None) -> None:
        self.path = Path(path) if path is not None else default_config_path()
        self._logger = (logger or create_logger()).child("auth")

    def read(self, hostname: str | None = None) -> AuthConfig | None:
        if not self.path.exists():
            self._logger.warn("%s doesn't exist", self.path)
            return None
        self._logger.debug("reading auth info from %s", self.path)
        try:
            entries = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise FormatError(f"credential store {self.path} is not valid JSON: {exc}") from exc

        if not isinstance(entries, dict):
            raise FormatError(f"credential store {self.path} is not a JSON object")

        hostname = hostname or DEFAULT_INDEX_SERVER
        entry = entries.get(hostname)
        if not entry:
            return None
        if not isinstance(entry, dict):
            raise FormatError(f"credential store entry for '{hostname}' is not a JSON object")

        username, password = decode_auth(str(entry.get("auth", "")))
        return AuthConfig(
            username=username,
            password=password,
            email=entry.get("email", AuthConfig.email),
            serveraddress=hostname,
        )


__all__ = [
    "ANONYMOUS_AUTH",
    "AuthConfig",
    "AuthConfigStore",
    "DEFAULT_INDEX_SERVER",
    "decode_auth",
    "encode_auth",
    "encode_auth_config",
]
