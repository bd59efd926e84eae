"""Docker operations for vibecode.

Thin adapter over the ``docker`` CLI. Every engine call made by the
orchestrator, the lister and the image builder goes through
``safe_docker_run`` so that a missing CLI, an unreachable daemon and
timeouts are reported uniformly.
"""

from __future__ import annotations

import json
import subprocess
from typing import TYPE_CHECKING, Any

from .constants import DOCKER_COMMAND_TIMEOUT, DOCKER_REMOVE_TIMEOUT
from .errors import (
    ContainerConflictError,
    EngineTimeoutError,
    EngineUnavailableError,
    StartError,
)
from .logging import get_logger

logger = get_logger(__name__)

if TYPE_CHECKING:
    from collections.abc import Sequence

ENGINE_HINT = (
    "Make sure the Docker daemon is running and you have permission to use it.\n"
    "You may need to add your user to the docker group: sudo usermod -aG docker $USER"
)

# stderr fragments the docker CLI prints when it cannot reach the daemon
_UNREACHABLE_MARKERS = (
    "cannot connect to the docker daemon",
    "is the docker daemon running",
    "permission denied while trying to connect to the docker daemon",
    "error during connect",
)
_NO_SUCH_CONTAINER = ("no such container", "no such object")
_NAME_CONFLICT = ("is already in use", "conflict. the container name")

__all__ = [
    "ENGINE_HINT",
    "safe_docker_run",
    "check_docker_status",
    "ensure_engine_available",
    "inspect_container",
    "inspect_containers",
    "list_labelled_container_ids",
    "image_exists",
    "create_container",
    "start_container",
    "unpause_container",
    "exec_succeeds",
    "remove_container",
    "get_image_id",
    "remove_image",
]


def _short(cmd: Sequence[str]) -> str:
    return " ".join(cmd[:4]) + ("..." if len(cmd) > 4 else "")


def _stderr_has(result: subprocess.CompletedProcess[str], markers: Sequence[str]) -> bool:
    stderr = (result.stderr or "").lower()
    return any(marker in stderr for marker in markers)


def safe_docker_run(
    cmd: Sequence[str],
    *,
    timeout: int = DOCKER_COMMAND_TIMEOUT,
    capture_output: bool = True,
    check: bool = False,
    detect_unreachable: bool = True,
) -> subprocess.CompletedProcess[str]:
    """Run a Docker command with consistent error handling.

    Args:
        cmd: Command to run (should start with 'docker').
        timeout: Command timeout in seconds.
        capture_output: Capture stdout/stderr if True.
        check: Raise CalledProcessError on non-zero exit.
        detect_unreachable: Treat daemon connection errors on stderr as an
            unreachable engine. Off for ``docker exec``, whose stderr is the
            containerized command's.

    Returns:
        CompletedProcess with command result.

    Raises:
        EngineUnavailableError: If docker is not installed or the daemon
            cannot be reached.
        EngineTimeoutError: If command times out.
        subprocess.CalledProcessError: If check=True and command fails.
    """
    cmd_str = _short(cmd)
    logger.debug("Running Docker command: %s", cmd_str)
    try:
        result = subprocess.run(
            list(cmd),
            capture_output=capture_output,
            text=True,
            check=check,
            timeout=timeout,
        )
    except FileNotFoundError as e:
        logger.error("Docker not found in PATH: %s", cmd_str)
        raise EngineUnavailableError(
            "docker CLI not found in PATH",
            hint="Install Docker first: https://docs.docker.com/get-docker/",
        ) from e
    except subprocess.TimeoutExpired as e:
        logger.error("Docker command timed out after %ds: %s", timeout, cmd_str)
        raise EngineTimeoutError(
            f"Docker command timed out after {timeout}s. Command: {cmd_str}"
        ) from e

    logger.debug("Docker command completed: exit=%d", result.returncode)
    if (
        result.returncode != 0
        and capture_output
        and detect_unreachable
        and _stderr_has(result, _UNREACHABLE_MARKERS)
    ):
        raise EngineUnavailableError(
            f"cannot reach the Docker daemon ({(result.stderr or '').strip()})",
            hint=ENGINE_HINT,
        )
    return result


def check_docker_status() -> bool:
    """Check if Docker daemon is responsive.

    Returns:
        True if Docker is running and responsive, False otherwise.
    """
    try:
        result = safe_docker_run(["docker", "info", "--format", "{{.ServerVersion}}"])
        return result.returncode == 0
    except (EngineUnavailableError, EngineTimeoutError):
        return False


def ensure_engine_available() -> None:
    """Fail fast when the engine is unreachable.

    A missing engine is not transient: no retry, immediate error.

    Raises:
        EngineUnavailableError: With a remediation hint.
    """
    if not check_docker_status():
        raise EngineUnavailableError("Docker is not running or not accessible", hint=ENGINE_HINT)


def inspect_containers(ids: Sequence[str]) -> list[dict[str, Any]]:
    """Return ``docker inspect`` documents for the given containers.

    Containers removed between listing and inspection are silently absent
    from the result (``docker inspect`` still prints the ones it found).
    """
    if not ids:
        return []
    result = safe_docker_run(["docker", "container", "inspect", *ids])
    if result.returncode != 0 and not (result.stdout or "").strip():
        if _stderr_has(result, _NO_SUCH_CONTAINER):
            return []
        raise StartError(f"docker inspect failed: {(result.stderr or '').strip()}")
    try:
        documents = json.loads(result.stdout or "[]")
    except json.JSONDecodeError as e:
        raise StartError(f"unreadable docker inspect output: {e}") from e
    return [doc for doc in documents if isinstance(doc, dict)]


def inspect_container(name: str) -> dict[str, Any] | None:
    """Inspect one container by name.

    Returns:
        The inspect document, or None if no container has that name.
    """
    documents = inspect_containers([name])
    return documents[0] if documents else None


def list_labelled_container_ids(label: str) -> list[str]:
    """List IDs of all containers (any state) carrying ``label``."""
    result = safe_docker_run(
        ["docker", "ps", "-a", "-q", "--no-trunc", "--filter", f"label={label}"]
    )
    if result.returncode != 0:
        raise StartError(f"docker ps failed: {(result.stderr or '').strip()}")
    return [line for line in result.stdout.strip().split("\n") if line]


def image_exists(tag: str) -> bool:
    """Check if an image with this tag exists locally."""
    result = safe_docker_run(["docker", "image", "inspect", tag])
    return result.returncode == 0


def create_container(cmd: Sequence[str]) -> str:
    """Run a prepared ``docker create`` command.

    Args:
        cmd: Full command, see ``orchestrator.build_create_cmd``.

    Returns:
        ID of the new container.

    Raises:
        ContainerConflictError: If the name is already taken (lost race).
        StartError: For any other engine-side failure.
    """
    result = safe_docker_run(cmd)
    if result.returncode == 0:
        return result.stdout.strip()
    if _stderr_has(result, _NAME_CONFLICT):
        raise ContainerConflictError((result.stderr or "").strip())
    raise StartError(f"failed to create container: {(result.stderr or '').strip()}")


def start_container(name: str) -> None:
    """Start a created or stopped container (no-op if already running).

    Raises:
        StartError: With the engine's diagnostic.
    """
    result = safe_docker_run(["docker", "start", name])
    if result.returncode != 0:
        raise StartError(f"failed to start container {name}: {(result.stderr or '').strip()}")


def unpause_container(name: str) -> None:
    """Resume a paused container; ``docker start`` refuses those.

    Raises:
        StartError: With the engine's diagnostic.
    """
    result = safe_docker_run(["docker", "unpause", name])
    if result.returncode != 0:
        raise StartError(f"failed to unpause container {name}: {(result.stderr or '').strip()}")


def exec_succeeds(name: str, probe: Sequence[str]) -> bool:
    """Run ``probe`` inside the container and report whether it exited 0."""
    try:
        result = safe_docker_run(["docker", "exec", name, *probe], detect_unreachable=False)
    except EngineTimeoutError:
        return False
    return result.returncode == 0


def remove_container(container_name: str, *, force: bool = True) -> bool:
    """Remove a Docker container.

    Args:
        container_name: Container name or ID to remove.
        force: Force removal if True.

    Returns:
        True if container was removed (or was already gone), False otherwise.
    """
    cmd = ["docker", "rm"]
    if force:
        cmd.append("-f")
    cmd.append(container_name)
    result = safe_docker_run(cmd, timeout=DOCKER_REMOVE_TIMEOUT)
    if result.returncode == 0:
        return True
    # --rm containers may already be gone by the time we get here
    return _stderr_has(result, _NO_SUCH_CONTAINER)


def get_image_id(tag: str) -> str | None:
    """Return the ID of the image currently carrying ``tag``, if any."""
    result = safe_docker_run(["docker", "image", "inspect", "--format", "{{.Id}}", tag])
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def remove_image(image_id: str, *, force: bool = True) -> bool:
    """Remove a Docker image.

    Returns:
        True if image was removed, False otherwise.
    """
    try:
        cmd = ["docker", "rmi"]
        if force:
            cmd.append("-f")
        cmd.append(image_id)
        result = safe_docker_run(cmd)
        return result.returncode == 0
    except (EngineUnavailableError, EngineTimeoutError):
        return False
