"""Container creation with implicit image pull, and ``run``."""

from __future__ import annotations

from typing import Any, Callable, Mapping

from .errors import ConfigurationError, OperationError
from .http_client import HttpEngineClient, ensure_successful_response
from .logger import BoundLogger, create_logger
from .parser import extract_error_message
from .types import Created, CreateFailed, CreateOutcome, ImageMissing, Response, RunResult

Puller = Callable[[str, str], Any]


def parse_repository_tag(name: str) -> tuple[str, str]:
    """Split an image name into repository and tag.

    A colon followed by a path segment belongs to a registry port, as in
    ``localhost.localdomain:5000/samalba/hipache``, not to a tag.
    """
    if name.endswith(":"):
        raise ConfigurationError(f"image name '{name}' should not end with a ':'")
    repo, sep, tag = name.rpartition(":")
    if not sep or "/" in tag:
        return name, ""
    return repo, tag


class ContainerLifecycle:
    """Composes create, pull and start into the engine's ``run`` workflow.

    A create that fails with 404 means the image is missing locally; the
    image is then pulled once and the create retried once. Nothing that was
    created is removed again when a later step fails.
    """

    def __init__(
        self,
        http: HttpEngineClient,
        pull: Puller,
        *,
        logger: BoundLogger | None = None,
    ) -> None:
        self._http = http
        self._pull = pull
        self._logger = (logger or create_logger()).child("lifecycle")

    def try_create(self, config: Mapping[str, Any], query: Mapping[str, Any] | None = None) -> CreateOutcome:
        response = self._http.post(
            "/containers/create",
            query=query,
            body=dict(config),
            body_encoding="json",
        )
        if response.ok:
            return Created(response)
        if response.status == 404:
            return ImageMissing(response)
        return CreateFailed(response)

    def create_container(self, config: Mapping[str, Any], query: Mapping[str, Any] | None = None) -> Response:
        self._logger.info("docker create")
        outcome = self.try_create(config, query)
        if isinstance(outcome, Created):
            return outcome.response
        if isinstance(outcome, CreateFailed):
            ensure_successful_response(outcome.response, "docker create failed")

        image = config.get("Image")
        if not image:
            raise ConfigurationError(
                "docker create failed and the config names no image to pull",
                context={"status": outcome.response.status, "body": outcome.response.content},
            )
        repo, tag = parse_repository_tag(str(image))
        self._logger.warn("'%s:%s' not found, pulling", repo, tag)
        self._pull(repo, tag)

        retry = self.try_create(config, query)
        if isinstance(retry, Created):
            return retry.response
        first, second = outcome.response, retry.response
        raise OperationError(
            f"docker create failed after retry: {extract_error_message(second.content)}",
            status=second.status,
            body=second.content,
            context={
                "first": {"status": first.status, "body": first.content},
                "retry": {"status": second.status, "body": second.content},
            },
        )

    def start_container(self, container_id: str) -> Response:
        self._logger.info("docker start")
        return self._http.post(f"/containers/{container_id}/start", body_encoding="json")

    def run(
        self,
        image: str,
        config: Mapping[str, Any],
        tag: str = "",
        name: str = "",
    ) -> RunResult:
        """Create and start a container from ``image``.

        The start response is returned as is, so a failed start leaves a
        created container behind for the caller to deal with.
        """
        self._logger.info("docker run")
        config_with_image = dict(config)
        config_with_image["Image"] = f"{image}:{tag}" if tag else image

        query = {"name": name} if name else None
        created = self.create_container(config_with_image, query)
        started = self.start_container(created.content["Id"])
        return RunResult(container=created, status=started)


__all__ = ["ContainerLifecycle", "parse_repository_tag"]
