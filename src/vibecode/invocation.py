"""Invocation model for vibecode.

Splits a command line into wrapper-level flags, the target tool name and the
opaque argument tail handed to the tool unmodified. Parsing is pure: nothing
here touches the filesystem or the engine, so a malformed ``--volume`` fails
before any side effect.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import ConfigurationError

USAGE_HINT = "Usage: vibecode [--session NAME] [--volume SRC:DST ...] TOOL [ARGS...]"

_MODES = {"ro": True, "rw": False}


@dataclass(frozen=True)
class VolumeSpec:
    """One ``--volume SRC:DST[:ro|rw]`` value, as written by the user.

    The source is not resolved or checked here; see ``mounts.plan_mounts``.
    """

    source: str
    target: str
    read_only: bool = False
    raw: str = ""

    @classmethod
    def parse(cls, raw: str) -> VolumeSpec:
        """Parse a volume value.

        Raises:
            ConfigurationError: If the value has no ``:``, an empty side, a
                relative target or an unknown mode suffix.
        """
        if ":" not in raw:
            raise ConfigurationError(
                f"--volume '{raw}' must be SRC:DST",
                hint="Example: vibecode --volume ~/data:/data claude",
            )
        parts = raw.split(":")
        read_only = False
        if len(parts) == 3:
            mode = parts.pop()
            if mode not in _MODES:
                raise ConfigurationError(
                    f"--volume '{raw}': mode must be 'ro' or 'rw', got '{mode}'"
                )
            read_only = _MODES[mode]
        elif len(parts) != 2:
            raise ConfigurationError(f"--volume '{raw}' has too many ':' separators")

        source, target = parts
        if not source or not target:
            raise ConfigurationError(
                f"--volume '{raw}': source and destination must be non-empty"
            )
        if not target.startswith("/"):
            raise ConfigurationError(
                f"--volume '{raw}': destination '{target}' must be absolute"
            )
        return cls(source=source, target=target, read_only=read_only, raw=raw)


@dataclass(frozen=True)
class WrapperFlags:
    """Wrapper-level flags recognised before the tool name.

    Immutable so a classified invocation can be passed around (and hashed)
    without accidental mutation.
    """

    session: str | None = None
    volumes: tuple[VolumeSpec, ...] = ()
    ephemeral: bool = False
    rebuild: bool = False
    debug: bool = False

    @classmethod
    def from_cli(
        cls,
        *,
        session: str | None = None,
        volumes: tuple[str, ...] | list[str] = (),
        rm: bool = False,
        rebuild: bool = False,
        debug: bool = False,
    ) -> WrapperFlags:
        """Create WrapperFlags from CLI option values, validating them.

        Raises:
            ConfigurationError: For empty session names, malformed volumes,
                or ``--session`` combined with ``--rm``.
        """
        if session is not None:
            session = session.strip()
            if not session:
                raise ConfigurationError("--session name cannot be empty")
            if rm:
                raise ConfigurationError(
                    "--session and --rm cannot be combined",
                    hint="Named sessions persist; drop --rm or --session.",
                )
        return cls(
            session=session,
            volumes=tuple(VolumeSpec.parse(v) for v in volumes),
            ephemeral=rm,
            rebuild=rebuild,
            debug=debug,
        )


@dataclass(frozen=True)
class Invocation:
    """A classified command line: flags, tool and opaque tail."""

    flags: WrapperFlags
    tool: str
    tool_args: tuple[str, ...] = ()

    @property
    def argv(self) -> list[str]:
        """Argument vector to execute inside the container."""
        return [self.tool, *self.tool_args]


def classify(flags: WrapperFlags, command: tuple[str, ...] | list[str]) -> Invocation:
    """Split the positional remainder into tool name and argument tail.

    Args:
        flags: Already parsed wrapper flags.
        command: Everything from the first non-wrapper token onwards.

    Raises:
        ConfigurationError: If no tool was given.
    """
    if not command:
        raise ConfigurationError("no tool given", hint=USAGE_HINT)
    tool, *tool_args = command
    if tool.startswith("-"):
        raise ConfigurationError(f"unknown option '{tool}'", hint=USAGE_HINT)
    return Invocation(flags=flags, tool=tool, tool_args=tuple(tool_args))
