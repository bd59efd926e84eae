"""Image building for vibecode.

One image per host identity: ``vibecode:<uid>-<gid>``, built from the
repository checkout with ``USER_UID``/``USER_GID`` build arguments so the
container's ``developer`` user owns files the same way the host user does.
"""

from __future__ import annotations

import os
import subprocess
import sys

from rich.console import Console

from . import docker
from .config import Config, HostIdentity, get_build_context, get_image_tag
from .constants import DOCKER_BUILD_TIMEOUT
from .errors import BuildError, EngineUnavailableError
from .logging import get_logger

console = Console(stderr=True)
logger = get_logger(__name__)


def build_image(config: Config, identity: HostIdentity, *, no_cache: bool = False) -> str:
    """Build the image for this UID/GID.

    Build output is streamed to stderr so stdout stays reserved for the
    forwarded tool.

    Returns:
        The built image tag.

    Raises:
        ConfigurationError: If the build context has no Dockerfile.
        BuildError: If ``docker build`` fails or times out.
        EngineUnavailableError: If the docker CLI is missing.
    """
    tag = get_image_tag(config, identity)
    context = get_build_context(config)
    console.print(f"[bold]Building {tag}...[/bold]")

    cmd = [
        "docker",
        "build",
        "--build-arg",
        f"USER_UID={identity.uid}",
        "--build-arg",
        f"USER_GID={identity.gid}",
        "-t",
        tag,
    ]
    if no_cache:
        cmd.append("--no-cache")
    cmd.append(str(context))

    # BuildKit for faster, cache-friendly builds
    env = os.environ.copy()
    env["DOCKER_BUILDKIT"] = "1"

    logger.debug("Building image %s from %s", tag, context)
    try:
        subprocess.run(
            cmd,
            check=True,
            env=env,
            timeout=DOCKER_BUILD_TIMEOUT,
            stdout=sys.stderr,
            stderr=subprocess.STDOUT,
        )
    except FileNotFoundError as e:
        raise EngineUnavailableError(
            "docker CLI not found in PATH",
            hint="Install Docker first: https://docs.docker.com/get-docker/",
        ) from e
    except subprocess.TimeoutExpired as e:
        raise BuildError(f"building {tag} timed out after {DOCKER_BUILD_TIMEOUT}s") from e
    except subprocess.CalledProcessError as e:
        raise BuildError(
            f"docker build for {tag} failed with exit code {e.returncode}",
            hint="See the build output above.",
        ) from e

    console.print(f"[green]✓ Built {tag}[/green]")
    return tag


def ensure_image(config: Config, identity: HostIdentity) -> str:
    """Return the image tag, building it first if it is not present locally."""
    tag = get_image_tag(config, identity)
    if docker.image_exists(tag):
        logger.debug("Image %s present", tag)
        return tag
    console.print(
        f"[dim]Image {tag} not found, building it for UID/GID "
        f"{identity.uid}/{identity.gid}[/dim]"
    )
    return build_image(config, identity)


def rebuild_image(config: Config, identity: HostIdentity) -> str:
    """Force a fresh build and drop the image it replaces.

    The replaced image is removed without ``-f``: if an existing session
    container still uses it, Docker refuses and the image stays.
    """
    tag = get_image_tag(config, identity)
    previous = docker.get_image_id(tag)
    build_image(config, identity, no_cache=True)

    current = docker.get_image_id(tag)
    if previous and previous != current:
        if docker.remove_image(previous, force=False):
            console.print("[dim]Removed previous image[/dim]")
        else:
            logger.debug("Previous image %s still in use, kept", previous)
    return tag
