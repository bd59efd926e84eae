"""CLI package for vibecode.

This package contains the command-line entry point and its supporting modules:
- run: Session resolution, container lifecycle and exec forwarding
- sessions: Read-only listing of session containers
- utils: Console and error rendering

The run workflow is imported lazily so ``--help`` and ``--version`` stay fast.
"""

from __future__ import annotations

import sys

import click

from .. import __version__
from ..constants import EXIT_INTERRUPTED
from ..errors import ConfigurationError, RemoteExecError, VibecodeError
from ..invocation import WrapperFlags, classify
from ..logging import set_debug
from .utils import console, print_error, terminate_as_interrupt

EPILOG = """\b
Examples:
  vibecode claude                      Session keyed by the current directory
  vibecode --session work claude       Named session, reusable from anywhere
  vibecode --volume ~/data:/data:ro qwen
  vibecode --rm gemini -p "hello"      Throwaway container
  vibecode --list                      Show session containers

Everything after the tool name is passed to the tool unmodified.
"""


@click.command(
    epilog=EPILOG,
    context_settings={
        "allow_interspersed_args": False,
        "ignore_unknown_options": True,
    },
)
@click.option("--session", "-s", metavar="NAME", help="Named session (shared across directories)")
@click.option(
    "--volume",
    "-v",
    "volumes",
    multiple=True,
    metavar="SRC:DST[:ro|rw]",
    help="Extra bind mount (repeatable)",
)
@click.option("--list", "list_only", is_flag=True, help="List session containers and exit")
@click.option("--rm", is_flag=True, help="Use a throwaway container, removed on exit")
@click.option("--rebuild", is_flag=True, help="Rebuild the image before running")
@click.option("--debug", is_flag=True, help="Enable debug logging (stderr)")
@click.version_option(version=__version__, prog_name="vibecode")
@click.argument("command", nargs=-1, type=click.UNPROCESSED)
def cli(
    session: str | None,
    volumes: tuple[str, ...],
    list_only: bool,
    rm: bool,
    rebuild: bool,
    debug: bool,
    command: tuple[str, ...],
) -> None:
    """Run an AI coding tool inside a per-session Docker container.

    TOOL is started in a container keyed by the session name, or by the
    current directory when no --session is given. The container is created
    on first use and reused afterwards.
    """
    if debug:
        set_debug(True)

    try:
        if list_only:
            _list(command)
            return
        flags = WrapperFlags.from_cli(
            session=session,
            volumes=volumes,
            rm=rm,
            rebuild=rebuild,
            debug=debug,
        )
        invocation = classify(flags, command)

        from .run import run

        with terminate_as_interrupt():
            run(invocation)
    except RemoteExecError as e:
        # The tool already reported its own failure
        sys.exit(e.exit_code)
    except VibecodeError as e:
        print_error(e)
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(EXIT_INTERRUPTED)


def _list(command: tuple[str, ...]) -> None:
    if command:
        raise ConfigurationError("--list takes no tool")

    from .sessions import list_sessions

    for row in list_sessions():
        click.echo(row.format())


__all__ = ["cli"]
