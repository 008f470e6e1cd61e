"""Tests for environment detection module."""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from dent.docker import DockerError
from dent.proxy import ProxyStatus

from .lib import (
    DockerInfo,
    check_environment,
    detect_docker,
    detect_socket,
    parse_docker_version,
    socket_path_from_host,
)


def _completed(stdout="", returncode=0):
    return subprocess.CompletedProcess(["docker"], returncode, stdout, "")


@pytest.fixture
def no_proxy(tmp_path):
    status = ProxyStatus(socket=tmp_path / "docker.sock")
    with patch("dent.environment.lib.proxy_status", return_value=status):
        yield status


@pytest.mark.unit
class TestDockerDetection:
    """Tests for docker CLI and daemon detection."""

    def test_parse_version(self):
        assert parse_docker_version("Docker version 27.3.1, build ce12230\n") == "27.3.1"

    def test_parse_version_unrecognized(self):
        assert parse_docker_version("podman 5.0") is None

    @patch("dent.environment.lib.is_daemon_available", return_value=True)
    @patch(
        "dent.environment.lib.run_docker",
        return_value=_completed("Docker version 24.0.7, build afdd53b\n"),
    )
    def test_available(self, _mock_run, _mock_daemon):
        info = detect_docker()
        assert info.available is True
        assert info.version == "24.0.7"
        assert info.daemon_reachable is True
        assert info.summary == "Docker 24.0.7 (daemon reachable)"

    @patch(
        "dent.environment.lib.run_docker",
        side_effect=DockerError("docker not found", returncode=127),
    )
    def test_missing_cli(self, _mock_run):
        info = detect_docker()
        assert info.available is False
        assert info.summary == "Docker CLI not available"

    @patch("dent.environment.lib.is_daemon_available", return_value=False)
    @patch("dent.environment.lib.run_docker", return_value=_completed("Docker version 25.0.0\n"))
    def test_daemon_down(self, _mock_run, _mock_daemon):
        info = detect_docker()
        assert info.available is True
        assert info.daemon_reachable is False


@pytest.mark.unit
class TestSocketDetection:
    """Tests for daemon socket checks."""

    def test_missing(self, tmp_path):
        info = detect_socket(tmp_path / "docker.sock")
        assert info.exists is False
        assert "missing" in info.summary

    def test_accessible(self, tmp_path):
        path = tmp_path / "docker.sock"
        path.write_text("")
        info = detect_socket(path)
        assert info.accessible is True

    def test_not_accessible(self, tmp_path):
        path = tmp_path / "docker.sock"
        path.write_text("")
        with patch("dent.environment.lib.os.access", return_value=False):
            info = detect_socket(path)
        assert info.exists is True
        assert info.accessible is False
        assert "no read/write access" in info.summary

    def test_path_from_docker_host(self):
        assert socket_path_from_host("unix:///run/user/1000/docker.sock") == Path(
            "/run/user/1000/docker.sock"
        )

    def test_path_default(self, monkeypatch):
        monkeypatch.delenv("DOCKER_SOCKET", raising=False)
        assert socket_path_from_host(None) == Path("/var/run/docker.sock")


@pytest.mark.unit
class TestEnvironmentCheck:
    """Tests for full environment validation."""

    def test_usable(self, monkeypatch, no_proxy):
        monkeypatch.delenv("DOCKER_HOST", raising=False)
        info = DockerInfo(available=True, version="27.0.0", daemon_reachable=True)
        with patch("dent.environment.lib.detect_docker", return_value=info):
            report = check_environment()
        assert report.docker_usable is True
        assert report.warnings == []

    def test_suggests_proxy_when_socket_denied(self, tmp_path, monkeypatch, no_proxy):
        sock = tmp_path / "docker.sock"
        sock.write_text("")
        monkeypatch.delenv("DOCKER_HOST", raising=False)
        monkeypatch.setenv("DOCKER_SOCKET", str(sock))
        info = DockerInfo(available=True, version="27.0.0", daemon_reachable=False)
        with patch("dent.environment.lib.detect_docker", return_value=info), patch(
            "dent.environment.lib.os.access", return_value=False
        ), patch("dent.environment.lib.shutil.which", side_effect=lambda n: f"/usr/bin/{n}"):
            report = check_environment()

        assert report.docker_usable is False
        assert any("proxy start" in s for s in report.suggestions)

    def test_missing_cli(self, monkeypatch, no_proxy):
        monkeypatch.delenv("DOCKER_HOST", raising=False)
        with patch("dent.environment.lib.detect_docker", return_value=DockerInfo()):
            report = check_environment()
        assert report.docker_usable is False
        assert any("docker CLI" in w for w in report.warnings)

    def test_print_report(self, monkeypatch, no_proxy, capsys):
        monkeypatch.delenv("DOCKER_HOST", raising=False)
        with patch("dent.environment.lib.detect_docker", return_value=DockerInfo()):
            check_environment().print_report()
        out = capsys.readouterr().out
        assert "Docker:" in out
        assert "Socket:" in out
        assert "socat:" in out
        assert "Status: docker commands will fail" in out
