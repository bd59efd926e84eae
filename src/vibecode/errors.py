"""Unified exception hierarchy for vibecode.

All custom exceptions inherit from VibecodeError for consistent error handling.
The CLI catches these and renders them as ``<Category> error: message`` on
stderr, followed by the optional remediation hint.

Dependency direction:
    This module has NO internal dependencies (leaf module).
    It may be imported by: all other vibecode modules.
    It should NOT import from any other vibecode modules.
"""

from __future__ import annotations


class VibecodeError(Exception):
    """Base exception for all vibecode errors.

    Attributes:
        category: Human-readable prefix used when reporting the error.
        hint: Optional remediation text shown below the message.
    """

    category = "Vibecode"

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(VibecodeError):
    """Bad wrapper flags or volume specs.

    User-fixable and raised before any side effect is attempted.

    Examples:
        - ``--volume`` value without a ``:`` separator
        - Empty ``--session`` name
        - Container name already owned by a different session
    """

    category = "Configuration"


class MountError(VibecodeError):
    """Invalid or colliding mount in the mount plan.

    Always raised before any engine call.

    Examples:
        - Host path does not exist
        - Two mounts target the same container path
    """

    category = "Mount"


class EngineError(VibecodeError):
    """Container engine errors.

    Base class for all Docker-related exceptions.
    """

    category = "Engine"


class EngineUnavailableError(EngineError):
    """Raised when the Docker CLI is missing or the daemon is unreachable."""

    category = "Engine unavailable"


class EngineTimeoutError(EngineError):
    """Raised when a Docker operation times out."""


class BuildError(EngineError):
    """Raised when the image build fails."""

    category = "Build"


class StartError(EngineError):
    """Raised when a container cannot be created, started or made ready."""

    category = "Start"


class ContainerConflictError(EngineError):
    """Raised when ``docker create`` reports the name is already in use.

    The orchestrator treats this as a lost creation race, not a failure.
    """


class RemoteExecError(VibecodeError):
    """The forwarded command itself exited non-zero.

    Not a wrapper failure: the exit code is relayed verbatim.
    """

    category = "Remote"

    def __init__(self, exit_code: int) -> None:
        super().__init__(f"remote command exited with code {exit_code}")
        self.exit_code = exit_code
