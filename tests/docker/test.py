"""Live tests against the docker daemon.

Each test drives `python . enter` as a subprocess, the way a user would,
and inspects the resulting containers with the docker CLI. Images come
from DENT_TEST_IMAGES.
"""

from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

import pytest

from dent.config import get_test_images
from dent.docker import inspect_container, run_docker

REPO_ROOT = Path(__file__).resolve().parents[2]

IMAGES = get_test_images()


def dent(*args: str, timeout: int = 300, env: dict | None = None) -> subprocess.CompletedProcess:
    """Run `python . enter ...` without a terminal."""
    return subprocess.run(
        [sys.executable, str(REPO_ROOT), "enter", *args],
        stdin=subprocess.DEVNULL,
        capture_output=True,
        text=True,
        timeout=timeout,
        cwd=REPO_ROOT,
        env=env,
    )


@pytest.mark.docker
@pytest.mark.parametrize("image", IMAGES)
class TestEnter:
    """Enter, re-enter and clean up containers."""

    def test_runs_command(self, image, container_name):
        result = dent("--name", container_name, "-T", image, "--", "echo", "hello")
        assert result.returncode == 0, result.stderr
        assert result.stdout.strip() == "hello"

        state = inspect_container(container_name)
        assert state is not None
        assert state.running is True

    def test_exit_code_propagates(self, image, container_name):
        result = dent("--name", container_name, "-T", image, "sh", "-c", "exit 3")
        assert result.returncode == 3

    def test_reenters_stopped_container(self, image, container_name):
        first = dent("--name", container_name, "-T", image, "touch", "/tmp/marker")
        assert first.returncode == 0, first.stderr

        run_docker(["stop", "--time", "1", container_name])
        state = inspect_container(container_name)
        assert state is not None and state.is_stopped

        # Same container: the marker survives the restart
        second = dent("--name", container_name, "-T", image, "ls", "/tmp/marker")
        assert second.returncode == 0, second.stderr
        assert "/tmp/marker" in second.stdout

    def test_rm_removes_container(self, image, container_name):
        result = dent("--name", container_name, "--rm", "-T", image, "true")
        assert result.returncode == 0, result.stderr
        assert inspect_container(container_name) is None

    def test_ls_and_rm(self, image, container_name):
        assert dent("--name", container_name, "-T", image, "true").returncode == 0

        listing = dent("ls")
        assert listing.returncode == 0
        assert container_name in listing.stdout

        removed = dent("rm", container_name)
        assert removed.returncode == 0
        assert inspect_container(container_name) is None

    def test_mount_current_directory(self, image, container_name):
        result = dent("--name", container_name, "--mount", "-T", image, "ls", "/work/pyproject.toml")
        assert result.returncode == 0, result.stderr

    def test_enter_as_host_user(self, image, container_name):
        result = dent("--name", container_name, "--user", "-T", image, "id", "-u")
        assert result.returncode == 0, result.stderr
        assert result.stdout.strip() == str(os.getuid())


@pytest.mark.docker
def test_dry_run_changes_nothing(container_name):
    result = dent("--name", container_name, "--dry-run", "-T", IMAGES[0], "true")
    assert result.returncode == 0, result.stderr
    assert "Would run" in result.stderr
    assert inspect_container(container_name) is None


@pytest.mark.socat
def test_proxy_forwards_daemon(tmp_path):
    socket = tmp_path / "docker.sock"
    proxy = [sys.executable, str(REPO_ROOT), "proxy", "--socket", str(socket)]
    start_args = ["start"] if os.geteuid() != 0 else ["start", "--no-sudo"]

    started = subprocess.run(
        [*proxy, *start_args], capture_output=True, text=True, timeout=30, cwd=REPO_ROOT
    )
    assert started.returncode == 0, started.stderr
    assert f"unix://{socket}" in started.stdout

    try:
        env = {**os.environ, "DOCKER_HOST": f"unix://{socket}"}
        info = subprocess.run(
            ["docker", "info", "--format", "{{.ServerVersion}}"],
            capture_output=True,
            text=True,
            timeout=30,
            env=env,
        )
        assert info.returncode == 0, info.stderr
        assert info.stdout.strip()

        status = subprocess.run([*proxy, "status"], capture_output=True, text=True, timeout=30)
        assert status.returncode == 0
        assert "Proxy running" in status.stdout
    finally:
        stopped = subprocess.run([*proxy, "stop"], capture_output=True, text=True, timeout=30)

    assert stopped.returncode == 0, stopped.stderr
    assert not socket.exists()
