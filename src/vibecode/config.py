"""Configuration management for vibecode."""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path

from rich.console import Console

from .constants import (
    CONFIG_DIR_NAME,
    CONTAINER_HOME,
    CONTAINER_USER,
    DEFAULT_BUILD_CONTEXT,
    DEFAULT_CREDENTIAL_PATHS,
    DEFAULT_DOCKER_SOCKET,
    DEFAULT_NETWORK,
    IMAGE_REPOSITORY,
    READINESS_PROBE,
    READINESS_TIMEOUT,
)
from .errors import ConfigurationError

console = Console(stderr=True)

# Environment overrides (applied on top of the config file)
ENV_BUILD_CONTEXT = "VIBECODE_HOME"
ENV_IMAGE = "VIBECODE_IMAGE"
ENV_DOCKER_SOCKET = "VIBECODE_DOCKER_SOCKET"


@dataclass
class Config:
    """vibecode configuration model."""

    version: str = "1.0.0"

    # Image: <image_repository>:<uid>-<gid>, built from build_context/Dockerfile
    image_repository: str = IMAGE_REPOSITORY
    build_context: str = DEFAULT_BUILD_CONTEXT

    # Host engine socket, bound into every container
    docker_socket: str = DEFAULT_DOCKER_SOCKET

    # Unprivileged user created by the image
    container_user: str = CONTAINER_USER
    container_home: str = CONTAINER_HOME

    # AI-tool credential/config paths on the host, mounted read-only
    credential_paths: list[str] = field(default_factory=lambda: list(DEFAULT_CREDENTIAL_PATHS))

    # Readiness probe run through `docker exec` after a start
    readiness_probe: list[str] = field(default_factory=lambda: list(READINESS_PROBE))
    readiness_timeout: int = READINESS_TIMEOUT

    network: str = DEFAULT_NETWORK


@dataclass(frozen=True)
class HostIdentity:
    """UID/GID of the invoking user, baked into image tag and container name."""

    uid: int
    gid: int


def get_host_identity() -> HostIdentity:
    """Return the caller's UID/GID.

    Platforms without ``os.getuid`` fall back to 1000:1000, the Dockerfile
    default for ``USER_UID``/``USER_GID``.
    """
    getuid = getattr(os, "getuid", None)
    getgid = getattr(os, "getgid", None)
    return HostIdentity(
        uid=getuid() if getuid else 1000,
        gid=getgid() if getgid else 1000,
    )


def get_config_dir() -> Path:
    """Get the vibecode configuration directory."""
    return Path.home() / CONFIG_DIR_NAME


def get_config_path() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def _apply_env_overrides(config: Config) -> Config:
    if value := os.environ.get(ENV_BUILD_CONTEXT):
        config.build_context = value
    if value := os.environ.get(ENV_IMAGE):
        config.image_repository = value
    if value := os.environ.get(ENV_DOCKER_SOCKET):
        config.docker_socket = value
    return config


def load_config() -> Config:
    """Load configuration from file and environment, or return defaults.

    Unknown keys in the file are ignored so older wrappers can read configs
    written by newer ones.
    """
    config_path = get_config_path()
    config = Config()

    if config_path.exists():
        try:
            data = json.loads(config_path.read_text(encoding="utf-8"))
            known = {f.name for f in fields(Config)}
            config = Config(**{k: v for k, v in data.items() if k in known})
        except (json.JSONDecodeError, TypeError, ValueError, AttributeError) as e:
            console.print(f"[yellow]Warning: Failed to load config ({e}), using defaults[/yellow]")
            config = Config()

    return _apply_env_overrides(config)


def save_config(config: Config) -> None:
    """Save configuration to file."""
    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)

    config_path = get_config_path()
    config_path.write_text(
        json.dumps(asdict(config), indent=2, ensure_ascii=False),
        encoding="utf-8",
    )


def get_build_context(config: Config) -> Path:
    """Get the expanded image build context.

    Raises:
        ConfigurationError: If the directory has no Dockerfile.
    """
    context = Path(os.path.expanduser(config.build_context)).resolve()
    if not (context / "Dockerfile").is_file():
        raise ConfigurationError(
            f"no Dockerfile found in build context '{context}'",
            hint=f"Reinstall vibecode or point {ENV_BUILD_CONTEXT} at the repository checkout.",
        )
    return context


def get_image_tag(config: Config, identity: HostIdentity) -> str:
    """Image tag embedding UID/GID so mismatched images are never reused."""
    return f"{config.image_repository}:{identity.uid}-{identity.gid}"
