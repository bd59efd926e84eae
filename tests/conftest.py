"""Pytest configuration and fixtures for vibecode tests.

This module ensures the vibecode package is importable during tests
without requiring installation, and provides ``FakeEngine``: an in-memory
stand-in for the ``docker`` CLI that is patched in place of
``subprocess.run`` so orchestration code runs end to end without a daemon.
"""

from __future__ import annotations

import json
import subprocess
import sys
import threading
import uuid
from pathlib import Path
from typing import Any

import pytest

# Add src directory to path for development testing
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from vibecode.config import Config, HostIdentity

CREATED = "2026-10-19T08:15:02.123456789Z"


def _result(cmd: list[str], returncode: int = 0, stdout: str = "", stderr: str = ""):
    return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)


class FakeEngine:
    """Minimal, thread-safe model of the docker CLI.

    Only the subcommands vibecode uses are understood. Every call is
    recorded in ``calls``.

    Args:
        images: Tags that exist locally.
        create_barrier: Parties that must reach ``docker create`` before any
            of them proceeds (simulates a creation race).
        not_ready: Number of readiness probes that fail before succeeding.
    """

    def __init__(
        self,
        *,
        images: tuple[str, ...] = ("vibecode:1000-1000",),
        create_barrier: int = 0,
        not_ready: int = 0,
    ) -> None:
        self.containers: dict[str, dict[str, Any]] = {}
        self.images = {tag: f"sha256:{uuid.uuid4().hex}" for tag in images}
        self.calls: list[list[str]] = []
        self.not_ready = not_ready
        self.stop_on_start = False
        self._lock = threading.Lock()
        self._barrier = threading.Barrier(create_barrier) if create_barrier else None

    def __call__(self, cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        cmd = list(cmd)
        with self._lock:
            self.calls.append(cmd)
        verb, *args = cmd[1:]
        if verb == "create" and self._barrier is not None:
            self._barrier.wait(timeout=5)
        with self._lock:
            handler = getattr(self, f"_{verb}", None)
            if handler is None:
                return _result(cmd, 1, stderr=f"unknown command: {verb}")
            return handler(cmd, args)

    # Helpers for tests

    def verbs(self) -> list[str]:
        return [c[1] for c in self.calls]

    def add_container(
        self,
        name: str,
        *,
        labels: dict[str, str] | None = None,
        running: bool = True,
        paused: bool = False,
        image: str = "vibecode:1000-1000",
        mounts: tuple[str, ...] = (),
    ) -> dict[str, Any]:
        doc = {
            "Id": uuid.uuid4().hex * 2,
            "Name": f"/{name}",
            "Created": CREATED,
            "State": {"Running": running or paused, "Paused": paused},
            "Config": {"Image": image, "Labels": dict(labels or {})},
            "Mounts": [{"Destination": m} for m in mounts],
        }
        self.containers[name] = doc
        return doc

    def _find(self, ref: str) -> dict[str, Any] | None:
        if ref in self.containers:
            return self.containers[ref]
        for doc in self.containers.values():
            if doc["Id"].startswith(ref):
                return doc
        return None

    # docker subcommands

    def _info(self, cmd: list[str], args: list[str]):
        return _result(cmd, stdout="27.3.1\n")

    def _container(self, cmd: list[str], args: list[str]):
        ids = args[1:]
        found = [doc for doc in map(self._find, ids) if doc is not None]
        if len(found) != len(ids):
            missing = next(i for i in ids if self._find(i) is None)
            return _result(
                cmd, 1, stdout=json.dumps(found), stderr=f"Error: No such container: {missing}"
            )
        return _result(cmd, stdout=json.dumps(found))

    def _ps(self, cmd: list[str], args: list[str]):
        label = args[args.index("--filter") + 1].removeprefix("label=")
        ids = [
            doc["Id"]
            for doc in self.containers.values()
            if label in doc["Config"]["Labels"]
        ]
        return _result(cmd, stdout="".join(f"{i}\n" for i in ids))

    def _image(self, cmd: list[str], args: list[str]):
        tag = args[-1]
        if tag not in self.images:
            return _result(cmd, 1, stdout="[]", stderr=f"Error: No such image: {tag}")
        if "--format" in args:
            return _result(cmd, stdout=self.images[tag] + "\n")
        return _result(cmd, stdout=json.dumps([{"Id": self.images[tag]}]))

    def _create(self, cmd: list[str], args: list[str]):
        name = args[args.index("--name") + 1]
        if name in self.containers:
            existing = self.containers[name]["Id"]
            return _result(
                cmd,
                1,
                stderr=(
                    "Error response from daemon: Conflict. The container name "
                    f'"/{name}" is already in use by container "{existing}".'
                ),
            )
        labels = {}
        mounts = []
        for flag, value in zip(args, args[1:]):
            if flag == "--label":
                key, _, val = value.partition("=")
                labels[key] = val
            elif flag == "-v":
                mounts.append(value.split(":")[1])
        doc = self.add_container(
            name, labels=labels, running=False, image=args[-1], mounts=tuple(mounts)
        )
        doc["AutoRemove"] = "--rm" in args
        return _result(cmd, stdout=doc["Id"] + "\n")

    def _start(self, cmd: list[str], args: list[str]):
        doc = self._find(args[0])
        if doc is None:
            return _result(cmd, 1, stderr=f"Error: No such container: {args[0]}")
        if doc["State"]["Paused"]:
            return _result(
                cmd,
                1,
                stderr="Error response from daemon: cannot start a paused container, "
                "try unpause instead",
            )
        doc["State"]["Running"] = not self.stop_on_start
        return _result(cmd, stdout=args[0] + "\n")

    def _unpause(self, cmd: list[str], args: list[str]):
        doc = self._find(args[0])
        if doc is None or not doc["State"]["Paused"]:
            return _result(cmd, 1, stderr=f"Error response from daemon: {args[0]} is not paused")
        doc["State"]["Paused"] = False
        return _result(cmd, stdout=args[0] + "\n")

    def _exec(self, cmd: list[str], args: list[str]):
        doc = self._find(args[0])
        if doc is None or not doc["State"]["Running"] or doc["State"]["Paused"]:
            return _result(cmd, 1, stderr="Error response from daemon: container not running")
        if self.not_ready > 0:
            self.not_ready -= 1
            return _result(
                cmd,
                1,
                stderr="Cannot connect to the Docker daemon at unix:///var/run/docker.sock. "
                "Is the docker daemon running?",
            )
        return _result(cmd)

    def _rm(self, cmd: list[str], args: list[str]):
        name = args[-1]
        doc = self._find(name)
        if doc is None:
            return _result(cmd, 1, stderr=f"Error response from daemon: No such container: {name}")
        del self.containers[doc["Name"].lstrip("/")]
        return _result(cmd, stdout=name + "\n")

    def _rmi(self, cmd: list[str], args: list[str]):
        image_id = args[-1]
        for tag, value in list(self.images.items()):
            if value == image_id:
                del self.images[tag]
        return _result(cmd)


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def identity() -> HostIdentity:
    return HostIdentity(uid=1000, gid=1000)


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Config with a fake engine socket and no credential paths."""
    socket = tmp_path / "docker.sock"
    socket.touch()
    return Config(docker_socket=str(socket), credential_paths=[])


@pytest.fixture
def project(tmp_path: Path) -> Path:
    path = tmp_path / "work" / "app"
    path.mkdir(parents=True)
    return path
