"""Execution forwarding into a session container.

The tool runs through ``docker exec`` with the caller's standard streams
inherited as-is, so piped output (``vibecode claude -p ... | jq``) stays
byte-exact. The command is always an argument vector; nothing is joined into
a shell string.
"""

from __future__ import annotations

import contextlib
import os
import signal
import subprocess
import sys
import threading
import time
from typing import IO, TYPE_CHECKING, Any

from .constants import SIGNAL_GRACE_PERIOD
from .errors import EngineUnavailableError
from .logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .config import Config, HostIdentity

logger = get_logger(__name__)

DEFAULT_TERM = "xterm-256color"
FORWARDED_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGINT", "SIGTERM", "SIGHUP") if hasattr(signal, name)
)
_WAIT_SLICE = 0.2


def _isatty(stream: IO[Any] | None) -> bool:
    try:
        return bool(stream is not None and stream.isatty())
    except (AttributeError, ValueError):
        return False


def wants_tty(stdin: IO[Any] | None = None, stdout: IO[Any] | None = None) -> bool:
    """Request a pseudo-terminal only when both ends are terminals."""
    stdin = sys.stdin if stdin is None else stdin
    stdout = sys.stdout if stdout is None else stdout
    return _isatty(stdin) and _isatty(stdout)


def build_exec_cmd(
    container: str,
    argv: Sequence[str],
    *,
    workdir: str,
    identity: HostIdentity,
    config: Config,
    tty: bool,
) -> list[str]:
    """Compose the ``docker exec`` command for the forwarded tool.

    Runs as the host UID/GID (the image's ``developer`` user has the same
    IDs) so files written into mounted directories keep host ownership.
    """
    term = os.environ.get("TERM") or DEFAULT_TERM
    if term == "dumb":
        term = DEFAULT_TERM
    cmd = ["docker", "exec", "-i"]
    if tty:
        cmd.append("-t")
    cmd.extend(
        [
            "--user",
            f"{identity.uid}:{identity.gid}",
            "--workdir",
            workdir,
            "-e",
            f"HOME={config.container_home}",
            "-e",
            f"TERM={term}",
        ]
    )
    if colorterm := os.environ.get("COLORTERM"):
        cmd.extend(["-e", f"COLORTERM={colorterm}"])
    cmd.append(container)
    cmd.extend(argv)
    return cmd


class SignalRelay:
    """Forward termination signals received by the wrapper to a child process.

    Usage:
        with SignalRelay(proc) as relay:
            ...
            if relay.grace_expired():
                proc.kill()

    Handlers are only installed from the main thread (Python restriction);
    elsewhere the relay is inert.
    """

    def __init__(
        self,
        proc: subprocess.Popen[bytes],
        grace_period: float = SIGNAL_GRACE_PERIOD,
        signals: Sequence[int] = FORWARDED_SIGNALS,
    ) -> None:
        self.proc = proc
        self.grace_period = grace_period
        self.signals = tuple(signals)
        self.received: int | None = None
        self._deadline: float | None = None
        self._previous: dict[int, Any] = {}

    def __enter__(self) -> SignalRelay:
        if threading.current_thread() is threading.main_thread():
            for signum in self.signals:
                self._previous[signum] = signal.signal(signum, self._handle)
        return self

    def __exit__(self, *exc: object) -> None:
        for signum, handler in self._previous.items():
            signal.signal(signum, handler)
        self._previous.clear()

    def _handle(self, signum: int, frame: object) -> None:
        logger.debug("Forwarding signal %d to exec client", signum)
        self.received = signum
        if self._deadline is None:
            self._deadline = time.monotonic() + self.grace_period
        with contextlib.suppress(ProcessLookupError):
            self.proc.send_signal(signum)

    def grace_expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline


def forward(cmd: Sequence[str], *, grace_period: float = SIGNAL_GRACE_PERIOD) -> int:
    """Run the exec command with inherited streams and return its exit code.

    A signal received meanwhile is relayed to the exec client; if the client
    is still alive once the grace period elapses it is killed and the
    conventional ``128 + signum`` code is returned. A client killed by a
    signal is reported the same way.

    Raises:
        EngineUnavailableError: If the docker CLI is missing.
    """
    logger.debug("Exec: %s", " ".join(cmd[:6]) + (" ..." if len(cmd) > 6 else ""))
    try:
        proc = subprocess.Popen(list(cmd))
    except FileNotFoundError as e:
        raise EngineUnavailableError("docker CLI not found in PATH") from e

    with SignalRelay(proc, grace_period=grace_period) as relay:
        while True:
            try:
                returncode = proc.wait(timeout=_WAIT_SLICE)
            except subprocess.TimeoutExpired:
                if relay.grace_expired():
                    logger.warning("Exec client ignored signal, killing it")
                    proc.kill()
                    proc.wait()
                    return 128 + (relay.received or signal.SIGTERM)
                continue
            # Popen reports death by signal as -signum; shells use 128 + signum
            return 128 - returncode if returncode < 0 else returncode
