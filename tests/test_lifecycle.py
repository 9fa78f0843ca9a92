from __future__ import annotations

import io
import json

import pytest

from engine_client import (
    ConfigurationError,
    ContainerLifecycle,
    EndpointSettings,
    HttpEngineClient,
    OperationError,
    parse_repository_tag,
)
from engine_client.transport.base import RawResponse, Transport
from engine_client.types import PreparedRequest


class ScriptedTransport:
    kind: Transport.Kind = "unix"

    def __init__(self, *responses: tuple[int, dict | None]) -> None:
        self._responses = list(responses)
        self.requests: list[PreparedRequest] = []

    def send(self, request: PreparedRequest) -> RawResponse:
        self.requests.append(request)
        status, payload = self._responses.pop(0)
        body = json.dumps(payload).encode("utf-8") if payload is not None else b""
        return RawResponse(status=status, body=io.BytesIO(body), headers={"content-type": "application/json"})

    def paths(self) -> list[str]:
        return [request.target for request in self.requests]


class RecordingPuller:
    def __init__(self, error: Exception | None = None) -> None:
        self.calls: list[tuple[str, str]] = []
        self._error = error

    def __call__(self, repository: str, tag: str) -> str:
        self.calls.append((repository, tag))
        if self._error is not None:
            raise self._error
        return "sha256:pulled"


def lifecycle_for(transport: ScriptedTransport, puller: RecordingPuller) -> ContainerLifecycle:
    http = HttpEngineClient(
        EndpointSettings(docker_host="unix:///var/run/engine.sock"),
        transport_factory=lambda endpoint, logger: transport,
    )
    return ContainerLifecycle(http, puller)


def test_create_succeeds_without_pull() -> None:
    transport = ScriptedTransport((201, {"Id": "c1"}))
    puller = RecordingPuller()
    response = lifecycle_for(transport, puller).create_container({"Image": "busybox:latest"}, {"name": "web"})
    assert response.content == {"Id": "c1"}
    assert puller.calls == []
    assert transport.paths() == ["/containers/create?name=web"]
    assert json.loads(transport.requests[0].body) == {"Image": "busybox:latest"}


def test_missing_image_is_pulled_once_and_create_retried() -> None:
    transport = ScriptedTransport((404, {"message": "no such image"}), (201, {"Id": "c2"}))
    puller = RecordingPuller()
    response = lifecycle_for(transport, puller).create_container({"Image": "registry:5000/app:1.2"})
    assert response.content == {"Id": "c2"}
    assert puller.calls == [("registry:5000/app", "1.2")]
    assert transport.paths() == ["/containers/create", "/containers/create"]


def test_failed_retry_is_fatal_and_not_retried_again() -> None:
    transport = ScriptedTransport(
        (404, {"message": "no such image"}),
        (500, {"message": "still broken"}),
        (201, {"Id": "never"}),
    )
    puller = RecordingPuller()
    with pytest.raises(OperationError) as excinfo:
        lifecycle_for(transport, puller).create_container({"Image": "busybox"})
    assert len(puller.calls) == 1
    assert len(transport.requests) == 2
    assert excinfo.value.status == 500
    assert excinfo.value.context["first"]["status"] == 404
    assert excinfo.value.context["retry"]["body"] == {"message": "still broken"}


def test_non_404_failure_skips_pull() -> None:
    transport = ScriptedTransport((409, {"message": "name in use"}))
    puller = RecordingPuller()
    with pytest.raises(OperationError) as excinfo:
        lifecycle_for(transport, puller).create_container({"Image": "busybox"})
    assert excinfo.value.status == 409
    assert puller.calls == []
    assert len(transport.requests) == 1


def test_pull_failure_propagates_without_retry() -> None:
    transport = ScriptedTransport((404, {"message": "no such image"}))
    puller = RecordingPuller(error=OperationError("docker pull failed", status=500))
    with pytest.raises(OperationError, match="docker pull failed"):
        lifecycle_for(transport, puller).create_container({"Image": "busybox"})
    assert len(transport.requests) == 1


def test_missing_image_without_image_name_fails_before_pull() -> None:
    transport = ScriptedTransport((404, {"message": "no such image"}))
    puller = RecordingPuller()
    with pytest.raises(ConfigurationError) as excinfo:
        lifecycle_for(transport, puller).create_container({"Cmd": ["true"]})
    assert puller.calls == []
    assert len(transport.requests) == 1
    assert excinfo.value.context["status"] == 404


def test_try_create_returns_tagged_outcome() -> None:
    from engine_client.types import CreateFailed, Created, ImageMissing

    transport = ScriptedTransport((201, {"Id": "a"}), (404, None), (500, None))
    lifecycle = lifecycle_for(transport, RecordingPuller())
    assert isinstance(lifecycle.try_create({"Image": "x"}), Created)
    assert isinstance(lifecycle.try_create({"Image": "x"}), ImageMissing)
    assert isinstance(lifecycle.try_create({"Image": "x"}), CreateFailed)


def test_run_creates_and_starts() -> None:
    transport = ScriptedTransport((201, {"Id": "c3"}), (204, None))
    result = lifecycle_for(transport, RecordingPuller()).run("busybox", {"Cmd": ["true"]}, tag="1.36", name="job")
    assert result.container.content == {"Id": "c3"}
    assert result.status.status == 204
    assert transport.paths() == ["/containers/create?name=job", "/containers/c3/start"]
    assert json.loads(transport.requests[0].body) == {"Cmd": ["true"], "Image": "busybox:1.36"}


def test_run_returns_failed_start_without_cleanup() -> None:
    transport = ScriptedTransport((201, {"Id": "c4"}), (500, {"message": "cannot start"}))
    result = lifecycle_for(transport, RecordingPuller()).run("busybox", {})
    assert result.container.content == {"Id": "c4"}
    assert not result.status.ok
    assert result.status.content == {"message": "cannot start"}
    assert len(transport.requests) == 2


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("busybox", ("busybox", "")),
        ("busybox:latest", ("busybox", "latest")),
        ("localhost.localdomain:5000/samalba/hipache", ("localhost.localdomain:5000/samalba/hipache", "")),
        ("localhost.localdomain:5000/samalba/hipache:latest", ("localhost.localdomain:5000/samalba/hipache", "latest")),
    ],
)
def test_parse_repository_tag(name: str, expected: tuple[str, str]) -> None:
    assert parse_repository_tag(name) == expected


def test_parse_repository_tag_rejects_trailing_colon() -> None:
    with pytest.raises(ConfigurationError):
        parse_repository_tag("busybox:")
