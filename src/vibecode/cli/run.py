"""Run workflow for vibecode.

invocation -> session -> mount plan -> container -> exec -> exit code
"""

from __future__ import annotations

from pathlib import Path

from .. import docker, images
from ..config import Config, HostIdentity, get_host_identity, load_config
from ..errors import RemoteExecError
from ..forwarder import build_exec_cmd, forward, wants_tty
from ..invocation import Invocation
from ..logging import get_logger
from ..mounts import plan_mounts
from ..orchestrator import ensure_container, exec_workdir, release
from ..paths import resolve_working_dir
from ..session import resolve_session

logger = get_logger(__name__)


def run(
    invocation: Invocation,
    *,
    cwd: Path | None = None,
    config: Config | None = None,
    identity: HostIdentity | None = None,
) -> int:
    """Run the invocation's tool in its session container.

    Configuration and mount problems are detected before the first engine
    call. Ephemeral containers are removed on every exit path.

    Returns:
        0 when the remote command succeeded.

    Raises:
        RemoteExecError: The remote command exited non-zero (code attached).
        VibecodeError: Any wrapper-side failure.
    """
    config = config or load_config()
    identity = identity or get_host_identity()
    cwd = cwd or resolve_working_dir()
    flags = invocation.flags
    logger.info("Starting run workflow: tool=%s cwd=%s", invocation.tool, cwd)

    session = resolve_session(flags, cwd, identity)
    mounts = plan_mounts(flags.volumes, cwd, config)

    docker.ensure_engine_available()
    if flags.rebuild:
        images.rebuild_image(config, identity)

    try:
        record = ensure_container(
            session,
            mounts,
            config=config,
            identity=identity,
            workdir=cwd,
        )
        cmd = build_exec_cmd(
            record.name,
            invocation.argv,
            workdir=exec_workdir(record, cwd),
            identity=identity,
            config=config,
            tty=wants_tty(),
        )
        returncode = forward(cmd)
    finally:
        release(session)

    logger.debug("Remote command exited with %d", returncode)
    if returncode != 0:
        raise RemoteExecError(returncode)
    return 0
