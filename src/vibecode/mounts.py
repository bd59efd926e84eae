"""Mount planning for vibecode containers.

Builds the ordered bind-mount list for one invocation:

1. Reserved mounts (not user-overridable):
   - host engine socket, read-write, so Docker-in-Docker can reach it
   - AI-tool credential paths, read-only
2. User ``--volume`` mounts, in command-line order
3. The working directory at the same path inside the container, unless a
   user mount already covers it

Everything is validated before the first engine call.
"""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from .constants import CONTAINER_DOCKER_SOCKET
from .errors import MountError
from .logging import get_logger
from .paths import expand_host_path, is_within, normalize_container_path

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .config import Config
    from .invocation import VolumeSpec

logger = get_logger(__name__)


@dataclass(frozen=True)
class MountSpec:
    """One bind mount."""

    host_path: Path
    container_path: PurePosixPath
    read_only: bool = False
    reserved: bool = False

    @property
    def mode(self) -> str:
        return "ro" if self.read_only else "rw"

    def to_volume_arg(self) -> str:
        """Render as a ``docker -v`` value."""
        return f"{self.host_path}:{self.container_path}:{self.mode}"


def _check_expressible(path: str, origin: str) -> None:
    # `-v` splits on ':', a path containing one cannot be expressed
    if ":" in path:
        raise MountError(f"{origin}: path '{path}' contains ':' and cannot be bind-mounted")


def _socket_mount(config: Config) -> MountSpec:
    host = Path(os.path.expanduser(config.docker_socket))
    if not host.exists():
        raise MountError(
            f"engine socket '{host}' does not exist",
            hint="Set VIBECODE_DOCKER_SOCKET to the Docker socket path.",
        )
    return MountSpec(
        host_path=host,
        container_path=PurePosixPath(CONTAINER_DOCKER_SOCKET),
        reserved=True,
    )


def _credential_container_path(host: Path, home: Path, container_home: str) -> PurePosixPath:
    try:
        relative = host.relative_to(home)
    except ValueError:
        return normalize_container_path(host.as_posix())
    return PurePosixPath(container_home) / relative.as_posix()


def _credential_mounts(config: Config) -> list[MountSpec]:
    home = Path.home()
    mounts = []
    for raw in config.credential_paths:
        host = expand_host_path(raw, home)
        if not host.exists():
            logger.debug("Credential path %s not present on host, skipping", host)
            continue
        mounts.append(
            MountSpec(
                host_path=host,
                container_path=_credential_container_path(host, home, config.container_home),
                read_only=True,
                reserved=True,
            )
        )
    return mounts


def _user_mount(spec: VolumeSpec, cwd: Path) -> MountSpec:
    host = expand_host_path(spec.source, cwd)
    if not host.exists():
        raise MountError(f"host path '{host}' for --volume '{spec.raw}' does not exist")
    return MountSpec(
        host_path=host,
        container_path=normalize_container_path(spec.target),
        read_only=spec.read_only,
    )


def _describe(mount: MountSpec) -> str:
    kind = "reserved mount" if mount.reserved else "mount"
    return f"{kind} {mount.host_path}"


def plan_mounts(volumes: Sequence[VolumeSpec], cwd: Path, config: Config) -> list[MountSpec]:
    """Build the mount plan for one invocation.

    Args:
        volumes: Parsed ``--volume`` values, in command-line order.
        cwd: Caller's absolute working directory.
        config: Loaded configuration (socket and credential paths).

    Returns:
        Ordered list: reserved mounts, user mounts, working directory.

    Raises:
        MountError: Missing host path, inexpressible path, or two mounts
            targeting the same container path.
    """
    mounts = [_socket_mount(config), *_credential_mounts(config)]
    user_mounts = [_user_mount(spec, cwd) for spec in volumes]
    mounts.extend(user_mounts)

    workdir = PurePosixPath(cwd.as_posix())
    if any(is_within(workdir, m.container_path) for m in user_mounts):
        logger.debug("Working directory %s covered by a --volume, no default mount", workdir)
    else:
        mounts.append(MountSpec(host_path=cwd, container_path=workdir))

    seen: dict[PurePosixPath, MountSpec] = {}
    for mount in mounts:
        _check_expressible(str(mount.host_path), _describe(mount))
        _check_expressible(str(mount.container_path), _describe(mount))
        previous = seen.get(mount.container_path)
        if previous is not None:
            raise MountError(
                f"{_describe(mount)} and {_describe(previous)} both target "
                f"'{mount.container_path}'"
            )
        seen[mount.container_path] = mount

    return mounts


def mount_args(mounts: Sequence[MountSpec]) -> list[str]:
    """Flatten a mount plan into ``docker create`` arguments."""
    args: list[str] = []
    for mount in mounts:
        args.extend(["-v", mount.to_volume_arg()])
    return args


def fingerprint(mounts: Sequence[MountSpec]) -> str:
    """Stable digest of a mount plan, stored as a container label.

    Lets a later invocation notice that its plan differs from the one the
    container was created with (mounts cannot change after creation).
    """
    text = "\n".join(m.to_volume_arg() for m in mounts)
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]
