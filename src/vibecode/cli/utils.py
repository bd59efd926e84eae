"""CLI utilities for vibecode.

Console setup, error rendering and signal setup. Everything user-facing goes
to stderr; stdout belongs to the forwarded tool.
"""

from __future__ import annotations

import contextlib
import signal
import threading
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape

from ..errors import VibecodeError

if TYPE_CHECKING:
    from collections.abc import Iterator

console = Console(stderr=True, legacy_windows=False)

TERMINATION_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGTERM", "SIGHUP") if hasattr(signal, name)
)


def print_error(error: VibecodeError) -> None:
    """Render an error as ``<Category> error: message`` plus its hint."""
    console.print(f"[red]{error.category} error:[/red] {escape(str(error))}", highlight=False)
    if error.hint:
        for line in error.hint.splitlines():
            console.print(f"[dim]{escape(line)}[/dim]", highlight=False)


def _raise_interrupt(signum: int, frame: object) -> None:
    raise KeyboardInterrupt


@contextlib.contextmanager
def terminate_as_interrupt() -> Iterator[None]:
    """Treat SIGTERM/SIGHUP like Ctrl+C while the block runs.

    Orchestration steps then unwind through ``finally`` blocks (ephemeral
    container removal) instead of the process dying mid-way. The exec
    forwarder installs its own relay on top while the tool runs.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return
    previous = {signum: signal.signal(signum, _raise_interrupt) for signum in TERMINATION_SIGNALS}
    try:
        yield
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)
