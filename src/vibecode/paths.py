"""Path utilities shared by the identity resolver and the mount planner.

Host paths are handled with ``pathlib.Path``; container paths are always
POSIX (``PurePosixPath``) since the sandbox is a Linux container.
"""

from __future__ import annotations

import os
import posixpath
from pathlib import Path, PurePosixPath

# Exported by the installed wrapper script before it changes into the build context
ORIGINAL_PWD_ENV = "ORIGINAL_PWD"


def resolve_working_dir() -> Path:
    """Return the caller's absolute working directory.

    The one-line installer's shim ``cd``s into the build context and exports
    the user's directory as ``ORIGINAL_PWD``; prefer it when it points at an
    existing directory.

    Returns:
        Absolute, normalized path (symlinks are kept so the container sees
        the same path the user typed).
    """
    original = os.environ.get(ORIGINAL_PWD_ENV)
    if original and os.path.isabs(original) and os.path.isdir(original):
        return Path(os.path.normpath(original))
    return Path(os.path.normpath(os.getcwd()))


def expand_host_path(raw: str, cwd: Path) -> Path:
    """Expand ``~`` and resolve relative paths against the working directory.

    Args:
        raw: Path as given by the user or the configuration.
        cwd: Working directory relative paths are anchored at.

    Returns:
        Absolute, normalized host path.
    """
    expanded = os.path.expanduser(raw)
    if not os.path.isabs(expanded):
        expanded = os.path.join(str(cwd), expanded)
    return Path(os.path.normpath(expanded))


def normalize_container_path(raw: str) -> PurePosixPath:
    """Normalize a container path (collapse ``//``, ``.`` and ``..``).

    Examples:
        >>> normalize_container_path("/work//src/../app/")
        PurePosixPath('/work/app')
    """
    normalized = posixpath.normpath(raw)
    # posixpath keeps a leading '//' as-is; Docker does not care, we do
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return PurePosixPath(normalized)


def is_within(path: PurePosixPath, root: PurePosixPath) -> bool:
    """True if ``path`` equals ``root`` or lies below it (component-wise).

    ``/work/app`` is within ``/work``; ``/workspace`` is not.
    """
    if path == root:
        return True
    return root in path.parents
