"""High-level client exposing the engine's container and image operations."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, BinaryIO, Callable, Mapping

from .archive import extract_single_entry
from .auth import ANONYMOUS_AUTH, AuthConfig, AuthConfigStore
from .endpoint import Endpoint, EndpointSettings
from .errors import FormatError, OperationError
from .http_client import HttpEngineClient, ensure_successful_response
from .lifecycle import ContainerLifecycle, parse_repository_tag
from .logger import LogLevel, create_logger
from .transport import TransportFactory
from .types import Response, RunResult, TarEntryResult

BUILD_SUCCESS_PREFIX = "Successfully built "


@dataclass
class ClientOptions:
    docker_host: str | None = None
    tls_verify: str | None = None
    cert_path: str | None = None
    default_cert_dir: str | None = None
    transport_factory: TransportFactory | None = None
    default_headers: Mapping[str, str] | None = None
    environ: Mapping[str, str] | None = None
    logger: object | None = None
    log_level: LogLevel = "info"


class DockerClient:
    """Primary entry point for talking to a container engine.

    Settings not passed explicitly come from ``DOCKER_HOST``,
    ``DOCKER_TLS_VERIFY`` and ``DOCKER_CERT_PATH``. Nothing touches the
    network until the first call.
    """

    def __init__(
        self,
        *,
        docker_host: str | None = None,
        tls_verify: str | None = None,
        cert_path: str | None = None,
        default_cert_dir: str | None = None,
        transport_factory: TransportFactory | None = None,
        default_headers: Mapping[str, str] | None = None,
        environ: Mapping[str, str] | None = None,
        logger: object | None = None,
        log_level: LogLevel = "info",
    ) -> None:
        options = ClientOptions(
            docker_host=docker_host,
            tls_verify=tls_verify,
            cert_path=cert_path,
            default_cert_dir=default_cert_dir,
            transport_factory=transport_factory,
            default_headers=default_headers,
            environ=environ,
            logger=logger,
            log_level=log_level,
        )
        self._logger = create_logger(logger=options.logger, level=options.log_level)
        settings = EndpointSettings.from_env(options.environ).override(
            docker_host=options.docker_host,
            tls_verify=options.tls_verify,
            cert_path=options.cert_path,
        )
        self.http = HttpEngineClient(
            settings,
            transport_factory=options.transport_factory,
            default_headers=options.default_headers,
            default_cert_dir=options.default_cert_dir,
            logger=self._logger,
        )
        self.lifecycle = ContainerLifecycle(self.http, self.pull, logger=self._logger)

    @property
    def endpoint(self) -> Endpoint:
        return self.http.endpoint

    # -- system ---------------------------------------------------------

    def ping(self) -> Response:
        self._logger.info("docker ping")
        return self.http.get("/_ping")

    def info(self) -> Response:
        self._logger.info("docker info")
        return self.http.get("/info")

    def version(self) -> Response:
        self._logger.info("docker version")
        return self.http.get("/version")

    def auth(self, auth_details: AuthConfig | Mapping[str, Any]) -> Response:
        self._logger.info("docker login")
        body = asdict(auth_details) if isinstance(auth_details, AuthConfig) else dict(auth_details)
        return self.http.post("/auth", body=body, body_encoding="json")

    def read_auth_config(self, hostname: str | None = None, path: str | None = None) -> AuthConfig | None:
        return AuthConfigStore(path, logger=self._logger).read(hostname)

    def cleanup_storage(self, should_keep_container: Callable[[dict], bool]) -> None:
        """Remove exited containers the predicate does not keep, then dangling images."""
        for container in self.ps({"filters": {"status": ["exited"]}}).content:
            if should_keep_container(container):
                continue
            names = container.get("Names") or [""]
            self._logger.info("docker rm %s (%s)", container["Id"], names[0])
            self.rm(container["Id"])
        for image in self.images({"filters": {"dangling": ["true"]}}).content:
            self._logger.info("docker rmi %s", image["Id"])
            self.rmi(image["Id"])

    # -- images ---------------------------------------------------------

    def build(self, build_context: BinaryIO | bytes, query: Mapping[str, Any] | None = None) -> str:
        self._logger.info("docker build")
        response = self.http.post(
            "/build",
            query=query if query is not None else {"rm": True},
            body=build_context,
            body_encoding="octet-stream",
            expect="json-stream",
        )
        ensure_successful_response(response, "docker build failed")
        last: dict = {}
        with response:
            for chunk in response.content:
                _raise_stream_error(chunk, "docker build failed")
                last = chunk
        message = str(last.get("stream", "")).strip()
        if not message.startswith(BUILD_SUCCESS_PREFIX):
            raise FormatError(f"docker build finished without an image id: {message!r}")
        return message[len(BUILD_SUCCESS_PREFIX):]

    def tag(self, image_id: str, repository: str, force: bool = False) -> Response:
        self._logger.info("docker tag")
        repo, tag = parse_repository_tag(repository)
        return self.http.post(
            f"/images/{image_id}/tag",
            query={"repo": repo, "tag": tag, "force": force},
        )

    def push(self, image_name: str, auth_base64: str = ANONYMOUS_AUTH, registry: str = "") -> Response:
        self._logger.info("docker push '%s'", image_name)
        actual_name = image_name
        if registry:
            actual_name = f"{registry}/{image_name}"
            self.tag(image_name, actual_name, True)
        repo, tag = parse_repository_tag(actual_name)
        response = self.http.post(
            f"/images/{repo}/push",
            query={"tag": tag},
            headers={"X-Registry-Auth": auth_base64 or ANONYMOUS_AUTH},
            expect="json-stream",
        )
        ensure_successful_response(response, "docker push failed")
        return response

    def pull(self, image_name: str, tag: str = "", auth_base64: str = ANONYMOUS_AUTH, registry: str = "") -> str:
        """Pull an image and return the id reported by the last progress message."""
        self._logger.info("docker pull '%s:%s'", image_name, tag)
        actual_name = f"{registry}/{image_name}" if registry else image_name
        response = self.http.post(
            "/images/create",
            query={"fromImage": actual_name, "tag": tag, "registry": registry},
            headers={"X-Registry-Auth": auth_base64 or ANONYMOUS_AUTH},
            expect="json-stream",
        )
        ensure_successful_response(response, "docker pull failed")
        last_id = None
        with response:
            for chunk in response.content:
                _raise_stream_error(chunk, "docker pull failed")
                if chunk.get("id"):
                    last_id = chunk["id"]
        if last_id is None:
            raise FormatError("cannot find 'id' in pull response")
        return last_id

    def images(self, query: Mapping[str, Any] | None = None) -> Response:
        self._logger.info("docker images")
        response = self.http.get("/images/json", query={"all": False, **(query or {})})
        ensure_successful_response(response, "docker images failed")
        return response

    def inspect_image(self, image_id: str) -> Response:
        self._logger.info("docker inspect image")
        return self.http.get(f"/images/{image_id}/json")

    def history(self, image_id: str) -> Response:
        self._logger.info("docker history")
        return self.http.get(f"/images/{image_id}/history")

    def search(self, term: str) -> Response:
        self._logger.info("docker search")
        return self.http.get("/images/search", query={"term": term}, expect="json-stream")

    def rmi(self, image_id: str) -> Response:
        self._logger.info("docker rmi")
        return self.http.delete(f"/images/{image_id}")

    # -- containers -----------------------------------------------------

    def create_container(self, config: Mapping[str, Any], query: Mapping[str, Any] | None = None) -> Response:
        return self.lifecycle.create_container(config, query)

    def start_container(self, container_id: str) -> Response:
        return self.lifecycle.start_container(container_id)

    def run(self, image: str, config: Mapping[str, Any], tag: str = "", name: str = "") -> RunResult:
        return self.lifecycle.run(image, config, tag=tag, name=name)

    def restart(self, container_id: str) -> Response:
        self._logger.info("docker restart")
        return self.http.post(f"/containers/{container_id}/restart", query={"t": 10})

    def stop(self, container_id: str) -> Response:
        self._logger.info("docker stop")
        return self.http.post(f"/containers/{container_id}/stop")

    def kill(self, container_id: str) -> Response:
        self._logger.info("docker kill")
        return self.http.post(f"/containers/{container_id}/kill")

    def wait(self, container_id: str) -> Response:
        self._logger.info("docker wait")
        return self.http.post(f"/containers/{container_id}/wait")

    def pause(self, container_id: str) -> Response:
        self._logger.info("docker pause")
        return self.http.post(f"/containers/{container_id}/pause")

    def unpause(self, container_id: str) -> Response:
        self._logger.info("docker unpause")
        return self.http.post(f"/containers/{container_id}/unpause")

    def rm(self, container_id: str) -> Response:
        self._logger.info("docker rm")
        return self.http.delete(f"/containers/{container_id}")

    def rename(self, container_id: str, new_name: str) -> Response:
        self._logger.info("docker rename")
        return self.http.post(f"/containers/{container_id}/rename", query={"name": new_name})

    def ps(self, query: Mapping[str, Any] | None = None) -> Response:
        self._logger.info("docker ps")
        response = self.http.get("/containers/json", query={"all": True, "size": False, **(query or {})})
        ensure_successful_response(response, "docker ps failed")
        return response

    def inspect_container(self, container_id: str) -> Response:
        self._logger.info("docker inspect container")
        response = self.http.get(f"/containers/{container_id}/json")
        ensure_successful_response(response, "docker inspect failed")
        return response

    def diff(self, container_id: str) -> Response:
        self._logger.info("docker diff")
        return self.http.get(f"/containers/{container_id}/changes")

    # -- streams --------------------------------------------------------

    def create_exec(self, container_id: str, exec_config: Mapping[str, Any]) -> Response:
        self._logger.info("docker create exec on '%s'", container_id)
        response = self.http.post(f"/containers/{container_id}/exec", body=dict(exec_config), body_encoding="json")
        if response.status == 404:
            self._logger.error("no such container '%s'", container_id)
        ensure_successful_response(response, "docker exec create failed")
        return response

    def start_exec(self, exec_id: str, exec_config: Mapping[str, Any]) -> Response:
        """Start an exec instance; unless detached, output stays on ``raw_stream``."""
        self._logger.info("docker start exec '%s'", exec_id)
        detached = bool(exec_config.get("Detach"))
        response = self.http.post(
            f"/exec/{exec_id}/start",
            body=dict(exec_config),
            body_encoding="json",
            expect="json" if detached else "raw",
            multiplexed=not exec_config.get("Tty", False),
        )
        if response.status == 404:
            self._logger.error("no such exec '%s'", exec_id)
        ensure_successful_response(response, "docker exec start failed")
        return response

    def exec(self, container_id: str, command: list[str] | str, exec_config: Mapping[str, Any] | None = None) -> Response:
        self._logger.info("docker exec '%s' '%s'", container_id, command)
        exec_config = exec_config or {}
        actual_config = {
            "AttachStdin": bool(exec_config.get("AttachStdin", False)),
            "AttachStdout": True,
            "AttachStderr": True,
            "Detach": bool(exec_config.get("Detach", False)),
            "Tty": bool(exec_config.get("Tty", False)),
            "Cmd": command,
        }
        created = self.create_exec(container_id, actual_config)
        return self.start_exec(created.content["Id"], actual_config)

    def attach(self, container_id: str, query: Mapping[str, Any] | None = None) -> Response:
        self._logger.info("docker attach")
        tty = self._has_tty(container_id)
        return self.http.post(
            f"/containers/{container_id}/attach",
            query=query if query is not None else {"logs": True, "stream": True, "stdout": True, "stderr": True},
            expect="raw",
            multiplexed=not tty,
        )

    def logs(self, container_id: str, query: Mapping[str, Any] | None = None) -> Response:
        self._logger.info("docker logs")
        tty = self._has_tty(container_id)
        response = self.http.get(
            f"/containers/{container_id}/logs",
            query={"stdout": True, "stderr": True, **(query or {})},
            expect="raw",
            multiplexed=not tty,
        )
        ensure_successful_response(response, "docker logs failed")
        return response

    def copy(self, container_id: str, resource_body: Mapping[str, Any]) -> Response:
        self._logger.info("docker cp %s %s", container_id, resource_body)
        response = self.http.post(
            f"/containers/{container_id}/copy",
            body=dict(resource_body),
            body_encoding="json",
            expect="raw",
        )
        if response.status == 404:
            self._logger.error("no such container %s", container_id)
        ensure_successful_response(response, "docker cp failed")
        return response

    def copy_file(self, container_id: str, filename: str) -> TarEntryResult:
        self._logger.info("copy '%s' from '%s'", filename, container_id)
        with self.copy(container_id, {"Resource": filename}) as response:
            assert response.raw_stream is not None
            return extract_single_entry(response.raw_stream, filename, logger=self._logger)

    def _has_tty(self, container_id: str) -> bool:
        container = self.inspect_container(container_id).content or {}
        return bool((container.get("Config") or {}).get("Tty"))


def _raise_stream_error(chunk: Any, message: str) -> None:
    if isinstance(chunk, dict) and chunk.get("error"):
        raise OperationError(f"{message}: {chunk['error']}", status=200, body=chunk)


__all__ = ["ClientOptions", "DockerClient"]
