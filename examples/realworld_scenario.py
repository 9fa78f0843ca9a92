"""End-to-end scenario against a running engine: run, exec, logs, copy and cleanup."""

from __future__ import annotations

import logging
import os
import random
import string
from typing import Any

from engine_client import DockerClient, OperationError, collect_output, demultiplex_response

IMAGE = os.getenv("ENGINE_DEMO_IMAGE", "busybox")
TAG = os.getenv("ENGINE_DEMO_TAG", "latest")
LABEL = "engine-client-demo"


def log_section(title: str) -> None:
    print("\n" + "=" * 80)
    print(title)
    print("=" * 80)


def pretty_rows(rows: list[dict[str, Any]]) -> None:
    if not rows:
        print("  (no data)")
        return
    for row in rows:
        print("  " + repr(row))


def main() -> None:
    log_level = os.getenv("ENGINE_CLIENT_LOG", "info")
    logging.basicConfig(level=logging.DEBUG)
    client = DockerClient(log_level=log_level)

    log_section("Engine Python Client: Real-World Scenario")
    if not client.ping().ok:
        raise SystemExit("engine did not answer /_ping")
    version = client.version().content
    print(f"Connected to {client.endpoint.socket_path or client.endpoint.base_url} (API {version.get('ApiVersion')})")

    name = "demo_" + "".join(random.choices(string.ascii_lowercase, k=6))

    log_section("Step 1: Run a container (pulls the image when missing)")
    config = {
        "Cmd": ["sh", "-c", "echo to-stdout; echo to-stderr >&2; echo hello > /tmp/greeting; sleep 30"],
        "Labels": {LABEL: "true"},
    }
    result = client.run(IMAGE, config, tag=TAG, name=name)
    container_id = result.container.content["Id"]
    if not result.status.ok:
        raise OperationError("container did not start", status=result.status.status, body=result.status.content)
    print(f"→ Started {name} ({container_id[:12]})")

    log_section("Step 2: Exec inside the container")
    with client.exec(container_id, ["cat", "/etc/hostname"]) as response:
        stdout, stderr = collect_output(demultiplex_response(response))
    print(f"→ hostname: {stdout.decode().strip()} (stderr: {stderr!r})")

    log_section("Step 3: Read logs split by stream")
    with client.logs(container_id) as response:
        stdout, stderr = collect_output(demultiplex_response(response))
    print(f"→ stdout: {stdout!r}")
    print(f"→ stderr: {stderr!r}")

    log_section("Step 4: Copy a file out of the container")
    entry = client.copy_file(container_id, "/tmp/greeting")
    print(f"→ {entry.name}: {entry.size} bytes, {entry.content!r}")

    log_section("Step 5: Stop and clean up")
    client.stop(container_id)
    pretty_rows(client.ps({"filters": {"label": [LABEL]}}).content)
    client.cleanup_storage(lambda container: LABEL not in (container.get("Labels") or {}))
    print("→ Scenario complete")


if __name__ == "__main__":
    main()
