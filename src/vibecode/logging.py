"""Diagnostic logging for vibecode.

Two output channels, both on stderr so that stdout stays byte-exact for the
forwarded tool (``vibecode claude -p ... | jq`` must keep working):

- ``console.print()`` (Rich) for user-facing status and errors
- the ``logging`` module for debugging engine calls and decisions

Usage:
    from vibecode.logging import get_logger
    logger = get_logger(__name__)
    logger.debug("Resolved container name: %s", name)

Enable verbose logging via:
    - CLI flag: vibecode --debug TOOL ...
    - Environment: VIBECODE_DEBUG=1
"""

from __future__ import annotations

import logging
import os
import sys

ROOT_LOGGER = "vibecode"
DEBUG_ENV_VAR = "VIBECODE_DEBUG"
_TRUTHY = frozenset({"1", "true", "yes"})

LOG_FORMAT = "[vibecode] %(levelname)s %(name)s: %(message)s"
LOG_FORMAT_DEBUG = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s"
DATE_FORMAT = "%H:%M:%S"

_configured = False


def _env_level() -> int:
    """Log level requested through the environment."""
    if os.environ.get(DEBUG_ENV_VAR, "").strip().lower() in _TRUTHY:
        return logging.DEBUG
    return logging.WARNING


def _formatter(level: int) -> logging.Formatter:
    fmt = LOG_FORMAT_DEBUG if level <= logging.DEBUG else LOG_FORMAT
    return logging.Formatter(fmt, datefmt=DATE_FORMAT)


def _configure() -> None:
    """Attach the stderr handler to the package logger (once per process)."""
    global _configured
    if _configured:
        return

    level = _env_level()
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)

    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        handler.setFormatter(_formatter(level))
        root.addHandler(handler)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger inside the ``vibecode`` namespace.

    Args:
        name: Module name (typically ``__name__``). Names outside the
            package namespace are nested under it.
    """
    _configure()
    if name != ROOT_LOGGER and not name.startswith(f"{ROOT_LOGGER}."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def set_debug(enabled: bool = True) -> None:
    """Switch the package logger between DEBUG and WARNING.

    Called by the CLI when ``--debug`` is given.
    """
    _configure()
    level = logging.DEBUG if enabled else logging.WARNING
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    for handler in root.handlers:
        handler.setLevel(level)
        handler.setFormatter(_formatter(level))
