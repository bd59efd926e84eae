"""Tests for vibecode.images module."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from vibecode.config import Config, HostIdentity
from vibecode.errors import BuildError, ConfigurationError, EngineUnavailableError
from vibecode.images import build_image, ensure_image, rebuild_image


@pytest.fixture
def build_config(config: Config, tmp_path: Path) -> Config:
    context = tmp_path / "context"
    context.mkdir()
    (context / "Dockerfile").write_text("FROM ubuntu:24.04\n")
    config.build_context = str(context)
    return config


class TestBuildImage:
    """Tests for build_image function."""

    def test_build_command(self, build_config: Config, identity: HostIdentity) -> None:
        """UID/GID are passed as build args and baked into the tag."""
        with patch("vibecode.images.subprocess.run") as mock_run:
            tag = build_image(build_config, HostIdentity(uid=1234, gid=5678))

        assert tag == "vibecode:1234-5678"
        cmd = mock_run.call_args[0][0]
        assert cmd[:2] == ["docker", "build"]
        assert "USER_UID=1234" in cmd
        assert "USER_GID=5678" in cmd
        assert cmd[cmd.index("-t") + 1] == "vibecode:1234-5678"
        assert cmd[-1] == str(Path(build_config.build_context).resolve())
        assert "--no-cache" not in cmd
        kwargs = mock_run.call_args.kwargs
        assert kwargs["env"]["DOCKER_BUILDKIT"] == "1"
        assert kwargs["check"] is True

    def test_build_output_not_on_stdout(self, build_config: Config, identity: HostIdentity) -> None:
        """Build logs go to stderr so the forwarded tool owns stdout."""
        with (
            patch("vibecode.images.subprocess.run") as mock_run,
            patch("vibecode.images.sys") as mock_sys,
        ):
            build_image(build_config, identity)
        assert mock_run.call_args.kwargs["stdout"] is mock_sys.stderr

    def test_no_cache(self, build_config: Config, identity: HostIdentity) -> None:
        with patch("vibecode.images.subprocess.run") as mock_run:
            build_image(build_config, identity, no_cache=True)
        assert "--no-cache" in mock_run.call_args[0][0]

    def test_missing_dockerfile(
        self, config: Config, identity: HostIdentity, tmp_path: Path
    ) -> None:
        config.build_context = str(tmp_path / "empty")
        with (
            patch("vibecode.images.subprocess.run") as mock_run,
            pytest.raises(ConfigurationError, match="no Dockerfile"),
        ):
            build_image(config, identity)
        mock_run.assert_not_called()

    def test_build_failure(self, build_config: Config, identity: HostIdentity) -> None:
        with patch("vibecode.images.subprocess.run") as mock_run:
            mock_run.side_effect = subprocess.CalledProcessError(returncode=1, cmd=["docker"])
            with pytest.raises(BuildError, match="exit code 1"):
                build_image(build_config, identity)

    def test_build_timeout(self, build_config: Config, identity: HostIdentity) -> None:
        with patch("vibecode.images.subprocess.run") as mock_run:
            mock_run.side_effect = subprocess.TimeoutExpired(cmd="docker", timeout=1800)
            with pytest.raises(BuildError, match="timed out"):
                build_image(build_config, identity)

    def test_docker_missing(self, build_config: Config, identity: HostIdentity) -> None:
        with patch("vibecode.images.subprocess.run") as mock_run:
            mock_run.side_effect = FileNotFoundError("docker")
            with pytest.raises(EngineUnavailableError):
                build_image(build_config, identity)


class TestEnsureImage:
    """Tests for ensure_image function."""

    def test_present(self, config: Config, identity: HostIdentity) -> None:
        with (
            patch("vibecode.images.docker.image_exists", return_value=True),
            patch("vibecode.images.build_image") as mock_build,
        ):
            assert ensure_image(config, identity) == "vibecode:1000-1000"
        mock_build.assert_not_called()

    def test_missing_builds(self, config: Config, identity: HostIdentity) -> None:
        with (
            patch("vibecode.images.docker.image_exists", return_value=False),
            patch("vibecode.images.build_image", return_value="vibecode:1000-1000") as mock_build,
        ):
            assert ensure_image(config, identity) == "vibecode:1000-1000"
        mock_build.assert_called_once_with(config, identity)


class TestRebuildImage:
    """Tests for rebuild_image function."""

    def test_removes_replaced_image(self, config: Config, identity: HostIdentity) -> None:
        """The previous image is dropped without force."""
        with (
            patch("vibecode.images.docker.get_image_id", side_effect=["sha256:old", "sha256:new"]),
            patch("vibecode.images.build_image") as mock_build,
            patch("vibecode.images.docker.remove_image", return_value=True) as mock_remove,
        ):
            rebuild_image(config, identity)
        mock_build.assert_called_once_with(config, identity, no_cache=True)
        mock_remove.assert_called_once_with("sha256:old", force=False)

    def test_first_build(self, config: Config, identity: HostIdentity) -> None:
        with (
            patch("vibecode.images.docker.get_image_id", side_effect=[None, "sha256:new"]),
            patch("vibecode.images.build_image"),
            patch("vibecode.images.docker.remove_image") as mock_remove,
        ):
            assert rebuild_image(config, identity) == "vibecode:1000-1000"
        mock_remove.assert_not_called()

    def test_unchanged_image_kept(self, config: Config, identity: HostIdentity) -> None:
        with (
            patch("vibecode.images.docker.get_image_id", return_value="sha256:same"),
            patch("vibecode.images.build_image"),
            patch("vibecode.images.docker.remove_image") as mock_remove,
        ):
            rebuild_image(config, identity)
        mock_remove.assert_not_called()
