from __future__ import annotations

from pathlib import Path

import pytest

from engine_client import ConfigurationError, EndpointKind, EndpointSettings, resolve_endpoint
from engine_client.endpoint import EndpointResolver


@pytest.fixture
def missing_dir(tmp_path: Path) -> Path:
    return tmp_path / "does-not-exist"


@pytest.mark.parametrize(
    ("tls_verify", "certs_exist", "port", "expected"),
    [
        (None, True, 2376, True),
        (None, False, 2376, False),
        (None, True, 2375, False),
        (None, False, 2375, False),
        ("false", True, 2376, False),
        ("0", True, 2376, False),
        ("no", True, 2376, False),
        ("true", True, 2375, True),
        ("1", True, 2376, True),
        ("yes", True, 2375, True),
        ("maybe", True, 2376, True),
        ("maybe", True, 2375, False),
    ],
)
def test_tls_decision_follows_heuristic(
    tmp_path: Path,
    missing_dir: Path,
    tls_verify: str | None,
    certs_exist: bool,
    port: int,
    expected: bool,
) -> None:
    default_dir = tmp_path if certs_exist else missing_dir
    endpoint = resolve_endpoint(f"tcp://engine.local:{port}", tls_verify, None, default_cert_dir=default_dir)
    assert (endpoint.kind is EndpointKind.TLS) is expected
    assert endpoint.scheme == ("https" if expected else "http")
    assert endpoint.host == "engine.local"
    assert endpoint.port == port


def test_explicit_cert_path_counts_as_existing(tmp_path: Path, missing_dir: Path) -> None:
    endpoint = resolve_endpoint("tcp://engine.local:2376", None, str(tmp_path), default_cert_dir=missing_dir)
    assert endpoint.kind is EndpointKind.TLS
    assert endpoint.cert_path == str(tmp_path)
    assert endpoint.base_url == "https://engine.local:2376"


def test_tls_verify_without_certs_is_a_configuration_error(missing_dir: Path) -> None:
    with pytest.raises(ConfigurationError):
        resolve_endpoint("tcp://engine.local:2376", "1", str(missing_dir), default_cert_dir=missing_dir)


def test_tls_verify_false_ignores_missing_certs(missing_dir: Path) -> None:
    endpoint = resolve_endpoint("https://engine.local:2376", "false", None, default_cert_dir=missing_dir)
    assert endpoint.kind is EndpointKind.TCP
    assert endpoint.base_url == "http://engine.local:2376"


def test_unix_socket_endpoint(missing_dir: Path) -> None:
    endpoint = resolve_endpoint("unix:///var/run/engine.sock", default_cert_dir=missing_dir)
    assert endpoint.kind is EndpointKind.UNIX_SOCKET
    assert endpoint.socket_path == "/var/run/engine.sock"
    assert endpoint.host == ""
    assert endpoint.port == 0


@pytest.mark.parametrize("host_spec", ["unix://", "unix://bad\x00path"])
def test_malformed_unix_path(host_spec: str, missing_dir: Path) -> None:
    with pytest.raises(ConfigurationError):
        resolve_endpoint(host_spec, default_cert_dir=missing_dir)


@pytest.mark.parametrize("host_spec", [None, "", "engine.local:2375"])
def test_missing_or_schemeless_host(host_spec: str | None, missing_dir: Path) -> None:
    with pytest.raises(ConfigurationError):
        resolve_endpoint(host_spec, default_cert_dir=missing_dir)


def test_invalid_port_is_rejected(missing_dir: Path) -> None:
    with pytest.raises(ConfigurationError):
        resolve_endpoint("tcp://engine.local:notaport", default_cert_dir=missing_dir)


def test_missing_port_defaults_by_scheme(tmp_path: Path, missing_dir: Path) -> None:
    plain = resolve_endpoint("tcp://engine.local", default_cert_dir=missing_dir)
    assert plain.port == 2375
    tls = resolve_endpoint("tcp://engine.local", "1", default_cert_dir=tmp_path)
    assert tls.kind is EndpointKind.TLS
    assert tls.port == 2376


def test_unknown_scheme_passes_through(missing_dir: Path) -> None:
    endpoint = resolve_endpoint("npipe://pipe-host:1234", default_cert_dir=missing_dir)
    assert endpoint.kind is EndpointKind.TCP
    assert endpoint.scheme == "npipe"
    assert endpoint.host == "pipe-host"
    assert endpoint.port == 1234


def test_settings_from_env_and_override() -> None:
    settings = EndpointSettings.from_env(
        {"DOCKER_HOST": "tcp://a:2375", "DOCKER_TLS_VERIFY": "", "DOCKER_CERT_PATH": "/certs"}
    )
    assert settings.docker_host == "tcp://a:2375"
    assert settings.tls_verify is None
    assert settings.cert_path == "/certs"

    overridden = settings.override(docker_host="unix:///run/engine.sock")
    assert overridden.docker_host == "unix:///run/engine.sock"
    assert overridden.cert_path == "/certs"


def test_should_use_tls_is_exposed_on_resolver(tmp_path: Path) -> None:
    resolver = EndpointResolver(EndpointSettings(docker_host="tcp://a:2376"), default_cert_dir=tmp_path)
    assert resolver.should_use_tls("https://a:2376") is True
    assert resolver.should_use_tls("https://a:4243") is False
