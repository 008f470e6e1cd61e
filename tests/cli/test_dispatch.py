"""Tests for the `python .` command dispatcher."""

import os
import subprocess
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]


def run_cli(*args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, str(REPO_ROOT), *args],
        capture_output=True,
        text=True,
        cwd=REPO_ROOT,
        timeout=30,
    )


@pytest.mark.integration
def test_help_lists_commands():
    result = run_cli("--help")
    assert result.returncode == 0
    for command in ("enter", "proxy", "env", "test"):
        assert command in result.stdout


@pytest.mark.integration
def test_unknown_command_fails():
    result = run_cli("frobnicate")
    assert result.returncode == 1
    assert "Unknown command" in result.stderr


@pytest.mark.integration
def test_enter_help():
    result = run_cli("enter", "--help")
    assert result.returncode == 0
    for subcommand in ("build", "ls", "rm"):
        assert subcommand in result.stdout


@pytest.mark.integration
def test_enter_subcommand_help_shows_options():
    result = run_cli("enter", "enter", "--help")
    assert result.returncode == 0
    assert "--mount" in result.stdout
    assert "--rm" in result.stdout


@pytest.mark.integration
def test_proxy_env_prints_export(tmp_path):
    socket = tmp_path / "d.sock"
    result = run_cli("proxy", "--socket", str(socket), "env")
    assert result.returncode == 0
    assert result.stdout.strip() == f"export DOCKER_HOST=unix://{socket}"


@pytest.mark.integration
def test_env_check_prints_report():
    result = run_cli("env", "check")
    # 0 with a usable daemon, 1 otherwise; never a crash
    assert result.returncode in (0, 1)
    assert "Environment Report" in result.stdout
    assert "Docker:" in result.stdout


@pytest.mark.integration
def test_env_vars_lists_configuration():
    result = run_cli("env", "vars", "proxy")
    assert result.returncode == 0
    assert "DENT_PROXY_SOCKET" in result.stdout
    assert "DOCKER_TIMEOUT" not in result.stdout


@pytest.mark.integration
def test_unit_tier_runs_mocked_docker_tests_without_daemon():
    # dent/docker/test.py lives in a package named "docker"; only the docker
    # marker may trigger the no-daemon skip
    env = {**os.environ, "DOCKER_BIN": "/nonexistent/docker"}
    result = subprocess.run(
        [sys.executable, str(REPO_ROOT), "test", "--unit", "-q", "-rs", "dent/docker/test.py"],
        capture_output=True,
        text=True,
        cwd=REPO_ROOT,
        env=env,
        timeout=300,
    )
    assert result.returncode == 0, result.stdout
    assert "passed" in result.stdout
    assert "skipped" not in result.stdout
    assert "Docker not available" not in result.stdout
