"""Session identity resolution.

Maps an invocation to a stable container name:

- ``--session NAME``  -> ``vibecode-NAME-<uid>-<gid>``
- working directory   -> ``vibecode-p-<path-slug>-<digest>-<uid>-<gid>``
- ``--rm``            -> ``vibecode-rm-<random>-<uid>-<gid>``

The UID/GID suffix means a different invoking user never reuses a container
whose files it would not own. Path-derived names keep a readable slug of the
directory, but the slug alone is lossy (``/a/b-c`` and ``/a/b/c`` share it),
so the SHA-256 digest of the literal path is always appended. The ``p`` and
``rm`` segments keep the three modes apart: a session name starting with
either is never used verbatim.
"""

from __future__ import annotations

import hashlib
import re
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .constants import (
    DIGEST_LENGTH,
    EPHEMERAL_MARKER,
    LABEL_KEY,
    LABEL_MODE,
    LABEL_SESSION,
    MAX_CONTAINER_NAME,
    MAX_SLUG_LENGTH,
    NAME_PREFIX,
    PATH_MARKER,
)
from .logging import get_logger

if TYPE_CHECKING:
    from pathlib import Path

    from .config import HostIdentity
    from .invocation import WrapperFlags

logger = get_logger(__name__)

# Docker container names: [a-zA-Z0-9][a-zA-Z0-9_.-]*
_LEGAL_NAME = re.compile(r"[a-zA-Z0-9][a-zA-Z0-9_.-]*")
_ILLEGAL_RUN = re.compile(r"[^a-zA-Z0-9_.-]+")
_RESERVED_SEGMENTS = (EPHEMERAL_MARKER, PATH_MARKER)


class SessionMode(str, Enum):
    """How the session key was obtained."""

    NAMED = "named"  # --session NAME
    PATH = "path"  # derived from the working directory
    EPHEMERAL = "ephemeral"  # --rm one-off, removed after the run


@dataclass(frozen=True)
class Session:
    """One logical sandbox, mapped to exactly one container."""

    key: str
    container_name: str
    mode: SessionMode
    label: str = LABEL_SESSION

    @property
    def ephemeral(self) -> bool:
        return self.mode is SessionMode.EPHEMERAL

    def labels(self) -> dict[str, str]:
        """Labels identifying this session on its container."""
        return {
            self.label: "true",
            LABEL_KEY: self.key,
            LABEL_MODE: self.mode.value,
        }


def digest(value: str) -> str:
    """Short, deterministic content hash used to disambiguate slugs."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:DIGEST_LENGTH]


def slugify(value: str, max_length: int = MAX_SLUG_LENGTH) -> str:
    """Readable, engine-legal rendering of an arbitrary string.

    Runs of illegal characters (including ``/``) collapse to a single ``-``.
    Long values keep their tail, which for paths is the project directory.

    Examples:
        >>> slugify("/home/me/My Project")
        'home-me-My-Project'
    """
    slug = _ILLEGAL_RUN.sub("-", value).strip("-._")
    if len(slug) > max_length:
        slug = slug[-max_length:].lstrip("-._")
    return slug


def _compose(*parts: str) -> str:
    return "-".join(part for part in parts if part)


def _is_reserved(name: str) -> bool:
    head = name.split("-", 1)[0]
    return head in _RESERVED_SEGMENTS


def _named_container_name(name: str, identity: HostIdentity) -> str:
    suffix = (str(identity.uid), str(identity.gid))
    plain = _compose(NAME_PREFIX, name, *suffix)
    if (
        _LEGAL_NAME.fullmatch(name)
        and not _is_reserved(name)
        and len(plain) <= MAX_CONTAINER_NAME
    ):
        return plain
    # Not usable verbatim: keep what is readable and pin identity with a digest
    logger.debug("Session name %r cannot be used verbatim, hashing", name)
    return _compose(NAME_PREFIX, slugify(name), digest(name), *suffix)


def _path_container_name(path: str, identity: HostIdentity) -> str:
    slug = slugify(path) or "root"
    return _compose(
        NAME_PREFIX, PATH_MARKER, slug, digest(path), str(identity.uid), str(identity.gid)
    )


def resolve_session(
    flags: WrapperFlags,
    cwd: Path,
    identity: HostIdentity,
    *,
    token: str | None = None,
) -> Session:
    """Resolve the session targeted by an invocation.

    Total: every input yields a session.

    Args:
        flags: Classified wrapper flags.
        cwd: Caller's absolute working directory.
        identity: Invoking user's UID/GID.
        token: Ephemeral token override (tests); random otherwise.
    """
    if flags.session is not None:
        session = Session(
            key=flags.session,
            container_name=_named_container_name(flags.session, identity),
            mode=SessionMode.NAMED,
        )
    elif flags.ephemeral:
        token = token or uuid.uuid4().hex[:12]
        session = Session(
            key=token,
            container_name=_compose(
                NAME_PREFIX, EPHEMERAL_MARKER, token, str(identity.uid), str(identity.gid)
            ),
            mode=SessionMode.EPHEMERAL,
        )
    else:
        key = str(cwd)
        session = Session(
            key=key,
            container_name=_path_container_name(key, identity),
            mode=SessionMode.PATH,
        )

    logger.debug(
        "Resolved session: mode=%s key=%s container=%s",
        session.mode.value,
        session.key,
        session.container_name,
    )
    return session
