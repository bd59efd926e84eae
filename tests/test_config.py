"""Tests for vibecode.config module."""

from __future__ import annotations

import json
import os
from dataclasses import asdict
from pathlib import Path
from unittest.mock import patch

import pytest

from vibecode.config import (
    Config,
    HostIdentity,
    get_build_context,
    get_config_dir,
    get_config_path,
    get_host_identity,
    get_image_tag,
    load_config,
    save_config,
)
from vibecode.errors import ConfigurationError


class TestConfig:
    """Tests for configuration model."""

    def test_config_defaults(self) -> None:
        config = Config()
        assert config.image_repository == "vibecode"
        assert config.docker_socket == "/var/run/docker.sock"
        assert config.container_home == "/home/developer"
        assert config.readiness_probe == ["docker", "info"]
        assert config.readiness_timeout == 30
        assert "~/.claude" in config.credential_paths

    def test_lists_not_shared(self) -> None:
        a, b = Config(), Config()
        a.credential_paths.append("~/.other")
        assert "~/.other" not in b.credential_paths


class TestConfigFunctions:
    """Tests for config utility functions."""

    def test_get_config_dir(self) -> None:
        assert get_config_dir() == Path.home() / ".vibecode"

    def test_get_config_path(self) -> None:
        assert get_config_path().name == "config.json"

    def test_save_and_load_config(self, tmp_path: Path) -> None:
        with (
            patch("vibecode.config.get_config_dir", return_value=tmp_path),
            patch.dict(os.environ, {}, clear=True),
        ):
            save_config(Config(network="host", readiness_timeout=60))
            loaded = load_config()
        assert loaded.network == "host"
        assert loaded.readiness_timeout == 60

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        with (
            patch("vibecode.config.get_config_dir", return_value=tmp_path),
            patch.dict(os.environ, {}, clear=True),
        ):
            assert asdict(load_config()) == asdict(Config())

    def test_unknown_keys_ignored(self, tmp_path: Path) -> None:
        (tmp_path / "config.json").write_text(json.dumps({"network": "none", "future": 1}))
        with (
            patch("vibecode.config.get_config_dir", return_value=tmp_path),
            patch.dict(os.environ, {}, clear=True),
        ):
            assert load_config().network == "none"

    def test_load_config_invalid_json(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """A corrupt file falls back to defaults with a warning on stderr."""
        (tmp_path / "config.json").write_text("{ invalid json }")
        with (
            patch("vibecode.config.get_config_dir", return_value=tmp_path),
            patch.dict(os.environ, {}, clear=True),
        ):
            config = load_config()
        assert config.network == "bridge"
        captured = capsys.readouterr()
        assert "Warning" in captured.err
        assert captured.out == ""

    def test_env_overrides(self, tmp_path: Path) -> None:
        env = {
            "VIBECODE_HOME": "/opt/vibecode",
            "VIBECODE_IMAGE": "registry.local/vibecode",
            "VIBECODE_DOCKER_SOCKET": "/run/user/1000/docker.sock",
        }
        with (
            patch("vibecode.config.get_config_dir", return_value=tmp_path),
            patch.dict(os.environ, env, clear=True),
        ):
            config = load_config()
        assert config.build_context == "/opt/vibecode"
        assert config.image_repository == "registry.local/vibecode"
        assert config.docker_socket == "/run/user/1000/docker.sock"


class TestIdentityAndImage:
    """Tests for host identity, image tag and build context."""

    def test_host_identity(self) -> None:
        with (
            patch("vibecode.config.os.getuid", return_value=501, create=True),
            patch("vibecode.config.os.getgid", return_value=20, create=True),
        ):
            assert get_host_identity() == HostIdentity(uid=501, gid=20)

    def test_image_tag(self) -> None:
        assert get_image_tag(Config(), HostIdentity(uid=1000, gid=1001)) == "vibecode:1000-1001"

    def test_build_context(self, tmp_path: Path) -> None:
        (tmp_path / "Dockerfile").write_text("FROM scratch\n")
        assert get_build_context(Config(build_context=str(tmp_path))) == tmp_path.resolve()

    def test_build_context_without_dockerfile(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            get_build_context(Config(build_context=str(tmp_path)))
        assert "VIBECODE_HOME" in (exc_info.value.hint or "")
