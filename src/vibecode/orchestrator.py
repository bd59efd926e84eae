"""Container lifecycle orchestration.

State machine per container name, with the engine as the only source of
truth (no lock file, no local database):

    absent  -> build image if missing -> create -> start -> ready
    stopped -> start (mounts are NOT reconciled) -> ready
    paused  -> unpause -> ready
    running -> ready (no-op)

Concurrent invocations racing to create the same name are safe: the engine
rejects the second ``docker create`` with a name conflict, which is treated
as success and followed by a normal attach.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any

from rich.console import Console

from . import docker, images
from .config import get_image_tag
from .constants import (
    LABEL_KEY,
    LABEL_MODE,
    LABEL_MOUNTS,
    LABEL_SESSION,
    LABEL_WORKDIR,
    READINESS_INTERVAL,
)
from .errors import ConfigurationError, ContainerConflictError, EngineError, StartError
from .logging import get_logger
from .mounts import fingerprint, mount_args
from .paths import is_within

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path

    from .config import Config, HostIdentity
    from .mounts import MountSpec
    from .session import Session

console = Console(stderr=True)
logger = get_logger(__name__)


class ContainerState(str, Enum):
    """Engine-visible state, collapsed to what the orchestrator acts on."""

    ABSENT = "absent"
    STOPPED = "stopped"  # created, exited or dead
    PAUSED = "paused"
    RUNNING = "running"


@dataclass(frozen=True)
class ContainerRecord:
    """The orchestrator's view of one container."""

    id: str
    name: str
    state: ContainerState
    image: str
    labels: dict[str, str] = field(default_factory=dict)
    created: str = ""
    mount_targets: tuple[str, ...] = ()

    @classmethod
    def from_inspect(cls, doc: dict[str, Any]) -> ContainerRecord:
        """Build a record from a ``docker inspect`` document."""
        state = doc.get("State") or {}
        config = doc.get("Config") or {}
        if state.get("Running") and state.get("Paused"):
            status = ContainerState.PAUSED
        elif state.get("Running"):
            status = ContainerState.RUNNING
        else:
            status = ContainerState.STOPPED
        return cls(
            id=doc.get("Id", ""),
            name=str(doc.get("Name", "")).lstrip("/"),
            state=status,
            image=config.get("Image", ""),
            labels=dict(config.get("Labels") or {}),
            created=doc.get("Created", ""),
            mount_targets=tuple(
                m["Destination"] for m in doc.get("Mounts") or [] if m.get("Destination")
            ),
        )

    @property
    def key(self) -> str:
        return self.labels.get(LABEL_KEY, "")


def get_record(name: str) -> ContainerRecord | None:
    """Look up a container by exact name; None means ``absent``."""
    doc = docker.inspect_container(name)
    if doc is None:
        return None
    record = ContainerRecord.from_inspect(doc)
    # inspect also resolves ID prefixes; only an exact name match counts
    if record.name != name:
        return None
    return record


def build_create_cmd(
    session: Session,
    mounts: Sequence[MountSpec],
    *,
    image: str,
    workdir: Path,
    config: Config,
) -> list[str]:
    """Compose the ``docker create`` command for a new session container.

    No command is given: the image entrypoint starts the nested daemon and
    idles, and every tool run is a ``docker exec`` into it.
    """
    labels = {
        **session.labels(),
        LABEL_WORKDIR: str(workdir),
        LABEL_MOUNTS: fingerprint(mounts),
    }
    cmd = ["docker", "create", "--name", session.container_name]
    if session.ephemeral:
        cmd.append("--rm")
    for key, value in labels.items():
        cmd.extend(["--label", f"{key}={value}"])
    cmd.extend(
        [
            # Nested dockerd needs it
            "--privileged",
            "--network",
            config.network,
            "--workdir",
            str(workdir),
            "-e",
            f"HOME={config.container_home}",
            "-e",
            f"USER={config.container_user}",
        ]
    )
    cmd.extend(mount_args(mounts))
    cmd.append(image)
    return cmd


def _check_ownership(record: ContainerRecord, session: Session) -> None:
    """Refuse to attach to a container that belongs to another session."""
    labels = record.labels
    if labels.get(LABEL_SESSION) != "true":
        raise ConfigurationError(
            f"container '{record.name}' exists but was not created by vibecode",
            hint="Rename or remove it, or use a different --session name.",
        )
    if labels.get(LABEL_KEY) != session.key or labels.get(LABEL_MODE) != session.mode.value:
        raise ConfigurationError(
            f"container '{record.name}' belongs to session "
            f"'{labels.get(LABEL_KEY)}' ({labels.get(LABEL_MODE)}), not '{session.key}'",
            hint="Use a different --session name.",
        )


def _warn_divergence(record: ContainerRecord, mounts: Sequence[MountSpec], image: str) -> None:
    stored = record.labels.get(LABEL_MOUNTS)
    if stored and stored != fingerprint(mounts):
        console.print(
            f"[yellow]Warning: mounts of '{record.name}' differ from this invocation's plan; "
            "existing mounts are kept.[/yellow]"
        )
        console.print(f"[dim]To apply new mounts: docker rm -f {record.name}[/dim]")
    if record.image and record.image != image:
        console.print(
            f"[yellow]Warning: '{record.name}' runs image {record.image}, expected {image}[/yellow]"
        )


def wait_until_ready(
    name: str,
    probe: Sequence[str],
    *,
    timeout: float,
    interval: float = READINESS_INTERVAL,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """Poll the container until ``probe`` succeeds inside it.

    Mirrors the entrypoint's own wait for the nested daemon: fixed interval,
    fixed timeout. Failures inside the window are transient.

    Raises:
        StartError: If the container stops or the window elapses.
    """
    deadline = clock() + timeout
    attempts = 0
    while True:
        attempts += 1
        if docker.exec_succeeds(name, probe):
            logger.debug("Container %s ready after %d probe(s)", name, attempts)
            return
        record = get_record(name)
        if record is None or record.state is not ContainerState.RUNNING:
            raise StartError(
                f"container '{name}' stopped while starting",
                hint=f"Inspect its output with: docker logs {name}",
            )
        if clock() >= deadline:
            raise StartError(
                f"container '{name}' not ready after {timeout:.0f}s",
                hint=f"Inspect its output with: docker logs {name}",
            )
        sleep(interval)


def _create(
    session: Session,
    mounts: Sequence[MountSpec],
    *,
    image: str,
    workdir: Path,
    config: Config,
) -> ContainerRecord:
    cmd = build_create_cmd(session, mounts, image=image, workdir=workdir, config=config)
    try:
        container_id = docker.create_container(cmd)
        logger.debug("Created container %s (%s)", session.container_name, container_id[:12])
    except ContainerConflictError:
        # Another invocation won the race for this name; attach to theirs
        logger.info("Container %s created concurrently, attaching", session.container_name)

    record = get_record(session.container_name)
    if record is None:
        raise StartError(f"container '{session.container_name}' vanished right after creation")
    _check_ownership(record, session)
    return record


def ensure_container(
    session: Session,
    mounts: Sequence[MountSpec],
    *,
    config: Config,
    identity: HostIdentity,
    workdir: Path,
) -> ContainerRecord:
    """Make sure a running, ready container exists for ``session``.

    Idempotent: calling it again against a running container creates
    nothing and changes no mounts.

    Returns:
        Record of the running container.

    Raises:
        ConfigurationError: Name taken by a different session or by a
            container vibecode did not create.
        BuildError: Image build failed.
        StartError: Create/start failed, or readiness window elapsed.
        EngineUnavailableError: Engine went away mid-way.
    """
    name = session.container_name
    record = get_record(name)
    state = record.state if record else ContainerState.ABSENT
    logger.debug("Container %s is %s", name, state.value)

    if record is None:
        image = images.ensure_image(config, identity)
        console.print(f"[dim]Creating container {name}[/dim]")
        record = _create(session, mounts, image=image, workdir=workdir, config=config)
    else:
        _check_ownership(record, session)
        _warn_divergence(record, mounts, get_image_tag(config, identity))

    if record.state is ContainerState.PAUSED:
        console.print(f"[dim]Unpausing container {name}[/dim]")
        docker.unpause_container(name)
    elif record.state is not ContainerState.RUNNING:
        if state is ContainerState.STOPPED:
            console.print(f"[dim]Starting stopped container {name}[/dim]")
        docker.start_container(name)

    wait_until_ready(name, config.readiness_probe, timeout=config.readiness_timeout)

    current = get_record(name)
    if current is None:
        raise StartError(f"container '{name}' disappeared after start")
    return current


def exec_workdir(record: ContainerRecord, cwd: Path) -> str:
    """Directory to run the tool in.

    The caller's directory when the container mounts it; otherwise (a named
    session used from another directory) the directory it was created from.
    """
    target = PurePosixPath(cwd.as_posix())
    if any(is_within(target, PurePosixPath(m)) for m in record.mount_targets):
        return str(target)
    fallback = record.labels.get(LABEL_WORKDIR) or "/"
    console.print(
        f"[yellow]Warning: {target} is not mounted in '{record.name}', "
        f"running in {fallback}[/yellow]"
    )
    return fallback


def release(session: Session) -> None:
    """Remove the container of an ephemeral session; no-op otherwise.

    Named and path-derived containers are left running on purpose. Runs
    on exit paths, so engine failures only warn and never replace the
    outcome being reported.
    """
    if not session.ephemeral:
        return
    logger.debug("Removing ephemeral container %s", session.container_name)
    try:
        removed = docker.remove_container(session.container_name, force=True)
    except EngineError as e:
        logger.warning("Removing %s failed: %s", session.container_name, e)
        removed = False
    if not removed:
        console.print(
            f"[yellow]Warning: could not remove ephemeral container "
            f"{session.container_name}[/yellow]"
        )
