"""Session listing for vibecode.

Read-only view of every container carrying the session label. Removing a
session stays an explicit ``docker rm`` by the operator.
"""

from __future__ import annotations

from dataclasses import dataclass

from .. import docker
from ..constants import LABEL_SESSION
from ..orchestrator import ContainerRecord


@dataclass(frozen=True)
class SessionRow:
    """One line of ``vibecode --list`` output."""

    name: str
    state: str
    key: str
    created: str

    def format(self) -> str:
        return "\t".join((self.name, self.state, self.key, self.created))


def _format_created(raw: str) -> str:
    """Trim Docker's nanosecond timestamp to whole seconds.

    Examples:
        >>> _format_created("2026-10-19T08:15:02.123456789Z")
        '2026-10-19T08:15:02Z'
    """
    head, dot, tail = raw.partition(".")
    if not dot:
        return raw
    return head + ("Z" if tail.endswith("Z") else "")


def list_sessions() -> list[SessionRow]:
    """Enumerate session containers, sorted by name.

    Raises:
        EngineUnavailableError: If the engine cannot be reached.
    """
    ids = docker.list_labelled_container_ids(LABEL_SESSION)
    rows = []
    for doc in docker.inspect_containers(ids):
        record = ContainerRecord.from_inspect(doc)
        rows.append(
            SessionRow(
                name=record.name,
                state=record.state.value,
                key=record.key,
                created=_format_created(record.created),
            )
        )
    return sorted(rows, key=lambda row: row.name)
