"""Constants module for vibecode.

All timeout values and shared constants are defined here (SSOT).
"""

from __future__ import annotations

# === Docker Timeouts (seconds) ===
DOCKER_COMMAND_TIMEOUT = 30  # Quick docker commands (info, inspect, ps, create, start)
DOCKER_BUILD_TIMEOUT = 1800  # Image builds install docker-ce + node, allow 30 min
DOCKER_REMOVE_TIMEOUT = 60  # rm -f waits for the container to stop

# === Readiness (mirrors the entrypoint's dockerd wait) ===
READINESS_TIMEOUT = 30  # Seconds the entrypoint waits for the nested daemon
READINESS_INTERVAL = 1.0  # Fixed poll interval, no backoff
READINESS_PROBE = ("docker", "info")  # Succeeds once the nested daemon answers

# === Exec forwarding ===
SIGNAL_GRACE_PERIOD = 10.0  # Seconds to wait after forwarding a signal before kill
EXIT_INTERRUPTED = 130  # Standard Ctrl+C code

# === Naming ===
NAME_PREFIX = "vibecode"  # Container name prefix
IMAGE_REPOSITORY = "vibecode"  # Image repository, tag is <uid>-<gid>
EPHEMERAL_MARKER = "rm"  # vibecode-rm-<token>-<uid>-<gid>
PATH_MARKER = "p"  # vibecode-p-<slug>-<digest>-<uid>-<gid>
MAX_CONTAINER_NAME = 128
MAX_SLUG_LENGTH = 64
DIGEST_LENGTH = 8

# === Labels ===
LABEL_SESSION = "vibecode.session"  # Fixed marker for enumeration
LABEL_KEY = "vibecode.key"
LABEL_MODE = "vibecode.mode"
LABEL_WORKDIR = "vibecode.workdir"
LABEL_MOUNTS = "vibecode.mounts"  # Fingerprint of the mount plan at create time

# === Path Constants ===
# Host paths
CONFIG_DIR_NAME = ".vibecode"
DEFAULT_BUILD_CONTEXT = "~/.cache/vibecode"  # Where install.sh clones the repo
DEFAULT_DOCKER_SOCKET = "/var/run/docker.sock"
DEFAULT_CREDENTIAL_PATHS = ("~/.claude", "~/.claude.json", "~/.qwen", "~/.gemini")

# Container paths
CONTAINER_USER = "developer"  # Created by the Dockerfile with USER_UID/USER_GID
CONTAINER_HOME = "/home/developer"
CONTAINER_DOCKER_SOCKET = "/var/run/docker.sock"

# Network
DEFAULT_NETWORK = "bridge"
