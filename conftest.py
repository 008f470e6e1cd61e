"""Root pytest configuration and fixtures.

This module provides:
- Environment setup (loads .env)
- Auto-skipping of live docker and socat tests
- Container cleanup for live tests
"""

from __future__ import annotations

import os
import shutil
import subprocess
import uuid
from pathlib import Path
from typing import Generator

import pytest
from dotenv import load_dotenv

from dent.config import EnvVar, get_environment
from dent.docker import is_daemon_available, run_docker

# Load environment variables from .env file
load_dotenv()


# =============================================================================
# Configuration Constants
# =============================================================================

REPO_ROOT = Path(__file__).parent


# =============================================================================
# Service Detection (Private Functions)
# =============================================================================


def _is_docker_available() -> bool:
    """Check if Docker daemon is running."""
    if shutil.which(get_environment(EnvVar.DOCKER_BIN)) is None:
        return False
    return is_daemon_available(timeout=5)


def _can_run_proxy() -> bool:
    """Check if socat exists and can reach the daemon socket (root or sudo -n)."""
    if shutil.which(get_environment(EnvVar.SOCAT_BIN)) is None:
        return False
    if os.geteuid() == 0:
        return True
    if shutil.which("sudo") is None:
        return False
    try:
        result = subprocess.run(
            ["sudo", "-n", "true"],
            capture_output=True,
            timeout=5,
        )
        return result.returncode == 0
    except (subprocess.TimeoutExpired, OSError):
        return False


# =============================================================================
# Pytest Hooks
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]):
    """Modify test collection based on available services.

    Auto-skips tests marked with docker/socat when they cannot run. Markers
    are matched, not keywords: keywords also hold package names such as
    `dent.docker`.
    """
    live = [
        item
        for item in items
        if item.get_closest_marker("docker") or item.get_closest_marker("socat")
    ]
    if not live:
        return

    docker_available = _is_docker_available()
    proxy_available = docker_available and _can_run_proxy()

    skip_docker = pytest.mark.skip(reason="Docker not available")
    skip_socat = pytest.mark.skip(reason="socat with root or passwordless sudo not available")

    for item in live:
        if item.get_closest_marker("docker") and not docker_available:
            item.add_marker(skip_docker)

        if item.get_closest_marker("socat") and not proxy_available:
            item.add_marker(skip_socat)


# =============================================================================
# Docker Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def docker_available() -> bool:
    """Check if Docker is available for this test session.

    Returns:
        True if Docker daemon is running, False otherwise.
    """
    return _is_docker_available()


@pytest.fixture
def container_name() -> Generator[str, None, None]:
    """Unique container name, force-removed after the test.

    Yields:
        A name that no other test run uses.
    """
    name = f"dent-test-{uuid.uuid4().hex[:10]}"
    yield name
    run_docker(["rm", "--force", name], check=False)


@pytest.fixture(scope="session")
def repo_root() -> Path:
    """Directory holding the `python .` entry point."""
    return REPO_ROOT
