"""Host diagnostics.

Detects the docker CLI, daemon reachability, daemon socket permissions,
and the socat/sudo tools the proxy relies on, so `python . env check`
can explain why dent cannot reach docker.
"""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from dent.config import EnvVar, get_environment
from dent.core import get_logger
from dent.docker import DockerError, is_daemon_available, run_docker
from dent.proxy import ProxyConfig, ProxyStatus, proxy_status

logger = get_logger("dent.environment")


@dataclass(frozen=True)
class DockerInfo:
    """Docker availability detection results.

    Attributes:
        available: Whether the docker CLI runs.
        version: Docker CLI version string if available.
        daemon_reachable: Whether `docker info` succeeds.
    """

    available: bool = False
    version: str | None = None
    daemon_reachable: bool = False

    @property
    def summary(self) -> str:
        """Human-readable Docker summary."""
        if not self.available:
            return "Docker CLI not available"
        daemon = "daemon reachable" if self.daemon_reachable else "daemon unreachable"
        return f"Docker {self.version or 'unknown version'} ({daemon})"


@dataclass(frozen=True)
class SocketInfo:
    """Daemon socket access for the current user."""

    path: Path
    exists: bool = False
    accessible: bool = False

    @property
    def summary(self) -> str:
        if not self.exists:
            return f"{self.path} (missing)"
        if not self.accessible:
            return f"{self.path} (no read/write access)"
        return f"{self.path} (read/write)"


@dataclass(frozen=True)
class ToolInfo:
    """An executable looked up on PATH."""

    name: str
    path: str | None = None

    @property
    def available(self) -> bool:
        return self.path is not None

    @property
    def summary(self) -> str:
        return self.path or "not found"


@dataclass
class EnvironmentReport:
    """Complete environment validation report.

    Attributes:
        docker: Docker CLI and daemon results.
        socket: Access to the daemon socket.
        socat: socat lookup.
        sudo: sudo lookup.
        docker_host: DOCKER_HOST value, if set.
        proxy: Status of the dent socket proxy.
        warnings: Warning messages for the user.
        suggestions: Suggested actions.
    """

    docker: DockerInfo
    socket: SocketInfo
    socat: ToolInfo
    sudo: ToolInfo
    docker_host: str | None = None
    proxy: ProxyStatus | None = None
    warnings: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    @property
    def docker_usable(self) -> bool:
        """True if dent can run docker commands."""
        return self.docker.available and self.docker.daemon_reachable

    def print_report(self) -> None:
        """Print formatted report to stdout."""
        print("=" * 60)
        print("Environment Report")
        print("=" * 60)
        print()
        print(f"Docker: {self.docker.summary}")
        print(f"Socket: {self.socket.summary}")
        print(f"DOCKER_HOST: {self.docker_host or '(unset)'}")
        print(f"socat: {self.socat.summary}")
        print(f"sudo: {self.sudo.summary}")
        if self.proxy is not None:
            print(f"Proxy: {self.proxy.summary}")
        print()

        if self.warnings:
            print("Warnings:")
            for w in self.warnings:
                print(f"  ! {w}")
            print()

        if self.suggestions:
            print("Suggestions:")
            for s in self.suggestions:
                print(f"  > {s}")
            print()

        status = "Ready" if self.docker_usable else "docker commands will fail"
        print(f"Status: {status}")
        print()


def parse_docker_version(output: str) -> str | None:
    """Parse the version from "Docker version X.Y.Z, build abc123"."""
    parts = output.strip().split()
    for i, p in enumerate(parts):
        if p.lower() == "version" and i + 1 < len(parts):
            return parts[i + 1].rstrip(",")
    return None


def detect_docker() -> DockerInfo:
    """Detect the docker CLI and whether its daemon answers."""
    try:
        result = run_docker(["--version"], check=False, timeout=5)
    except DockerError as e:
        logger.debug(f"Docker version check failed: {e}")
        return DockerInfo()

    if result.returncode != 0:
        return DockerInfo()

    return DockerInfo(
        available=True,
        version=parse_docker_version(result.stdout),
        daemon_reachable=is_daemon_available(),
    )


def socket_path_from_host(docker_host: str | None) -> Path:
    """Socket the docker CLI talks to, given DOCKER_HOST."""
    if docker_host and docker_host.startswith("unix://"):
        return Path(docker_host[len("unix://"):])
    return get_environment(EnvVar.DOCKER_SOCKET)


def detect_socket(path: Path) -> SocketInfo:
    """Check that a socket exists and is readable and writable."""
    exists = path.exists()
    return SocketInfo(
        path=path,
        exists=exists,
        accessible=exists and os.access(path, os.R_OK | os.W_OK),
    )


def detect_tool(name: str) -> ToolInfo:
    return ToolInfo(name=name, path=shutil.which(name))


def check_environment() -> EnvironmentReport:
    """Perform complete environment validation.

    Generates warnings and suggestions based on findings.

    Returns:
        EnvironmentReport with complete validation results.
    """
    docker = detect_docker()
    docker_host = get_environment(EnvVar.DOCKER_HOST)
    remote = bool(docker_host) and not docker_host.startswith("unix://")
    socket = detect_socket(socket_path_from_host(docker_host))
    socat = detect_tool(get_environment(EnvVar.SOCAT_BIN))
    sudo = detect_tool("sudo")
    proxy = proxy_status(ProxyConfig.from_environment())

    warnings: list[str] = []
    suggestions: list[str] = []

    if not docker.available:
        warnings.append("docker CLI not found on PATH.")
        suggestions.append("Install the docker CLI or set DOCKER_BIN.")
    elif not docker.daemon_reachable:
        warnings.append("docker daemon did not answer `docker info`.")

    if not remote and docker.available and not docker.daemon_reachable:
        if not socket.exists:
            suggestions.append(f"Start the docker daemon ({socket.path} is missing).")
        elif not socket.accessible:
            if socat.available and sudo.available:
                suggestions.append(
                    'Start the socket proxy: eval "$(python . proxy start)"'
                )
            else:
                suggestions.append(
                    "Install socat and sudo to proxy the daemon socket, "
                    "or join the docker group."
                )

    if proxy.running and docker_host is None:
        suggestions.append(
            f"Proxy is running; export DOCKER_HOST=unix://{proxy.socket}"
        )
    if not proxy.running and proxy.pid is not None:
        warnings.append(f"Stale proxy pidfile (pid {proxy.pid}).")

    return EnvironmentReport(
        docker=docker,
        socket=socket,
        socat=socat,
        sudo=sudo,
        docker_host=docker_host,
        proxy=proxy,
        warnings=warnings,
        suggestions=suggestions,
    )


__all__ = [
    "DockerInfo",
    "SocketInfo",
    "ToolInfo",
    "EnvironmentReport",
    "parse_docker_version",
    "detect_docker",
    "detect_socket",
    "detect_tool",
    "socket_path_from_host",
    "check_environment",
]
