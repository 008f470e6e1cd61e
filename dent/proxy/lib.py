"""Forward a user-owned socket to the root-owned docker daemon socket.

The proxy is a single `socat` process, normally launched through
`sudo -n` so it can connect to /var/run/docker.sock while listening on a
socket owned by the invoking user. dent only launches and signals it; a
pidfile next to the socket records the process.

Pidfile format:
    line 1: pid
    line 2: "sudo" or "direct" (how the process must be signalled)
"""

from __future__ import annotations

import os
import signal
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

from dent.config import (
    EnvVar,
    default_socket_path,
    get_environment,
    get_proxy_pidfile,
    get_proxy_socket,
)
from dent.core import get_logger
from dent.docker import format_command

logger = get_logger("dent.proxy")


class ProxyError(Exception):
    """The proxy could not be started or stopped."""


@dataclass(frozen=True)
class ProxyConfig:
    """Where and how the proxy runs.

    Attributes:
        socket: User-owned socket to listen on.
        target: Daemon socket to forward to.
        pidfile: File recording the proxy process.
        use_sudo: Launch socat through `sudo -n`.
        socat: socat executable.
        uid: Owner of the listening socket.
        gid: Group of the listening socket.
    """

    socket: Path
    target: Path
    pidfile: Path
    use_sudo: bool = True
    socat: str = "socat"
    uid: int = 0
    gid: int = 0

    @classmethod
    def from_environment(
        cls,
        socket: Path | str | None = None,
        target: Path | str | None = None,
        use_sudo: bool | None = None,
    ) -> ProxyConfig:
        """Resolve a config from arguments, environment and defaults.

        sudo is never used when already running as root.
        """
        socket_path = get_proxy_socket(socket)
        if use_sudo is None:
            use_sudo = get_environment(EnvVar.DENT_PROXY_SUDO)
        return cls(
            socket=socket_path,
            target=Path(target) if target else get_environment(EnvVar.DOCKER_SOCKET),
            pidfile=get_proxy_pidfile(socket_path),
            use_sudo=bool(use_sudo) and os.geteuid() != 0,
            socat=get_environment(EnvVar.SOCAT_BIN),
            uid=os.getuid(),
            gid=os.getgid(),
        )

    @property
    def logfile(self) -> Path:
        """socat's stderr, kept for diagnosing failed starts."""
        return self.pidfile.with_suffix(".log")


@dataclass(frozen=True)
class ProxyStatus:
    """Liveness of the proxy."""

    socket: Path
    pid: int | None = None
    running: bool = False
    socket_exists: bool = False

    @property
    def summary(self) -> str:
        if self.running:
            return f"Proxy running (pid {self.pid}) on {self.socket}"
        if self.pid is not None:
            return f"Proxy not running (stale pid {self.pid})"
        return "Proxy not running"


# =============================================================================
# Helpers
# =============================================================================


def docker_host_url(socket: Path) -> str:
    """DOCKER_HOST value for a unix socket."""
    return f"unix://{socket}"


def build_socat_command(config: ProxyConfig) -> list[str]:
    """Build the socat command line.

    Raises:
        ValueError: If a socket path contains characters socat treats as
            address separators.
    """
    for path in (config.socket, config.target):
        if "," in str(path) or ":" in str(path):
            raise ValueError(f"Socket path not usable by socat: {path}")

    listen = (
        f"UNIX-LISTEN:{config.socket},fork,unlink-early,"
        f"user={config.uid},group={config.gid},mode=600"
    )
    command = [config.socat, listen, f"UNIX-CONNECT:{config.target}"]
    if config.use_sudo:
        command = ["sudo", "-n", *command]
    return command


def read_pidfile(pidfile: Path) -> tuple[int, bool] | None:
    """Read (pid, started_with_sudo) from a pidfile, None if absent or invalid."""
    try:
        lines = pidfile.read_text().split()
    except FileNotFoundError:
        return None
    try:
        pid = int(lines[0])
    except (IndexError, ValueError):
        logger.warning(f"Ignoring malformed pidfile {pidfile}")
        return None
    return pid, len(lines) > 1 and lines[1] == "sudo"


def write_pidfile(pidfile: Path, pid: int, use_sudo: bool) -> None:
    pidfile.parent.mkdir(parents=True, exist_ok=True)
    pidfile.write_text(f"{pid}\n{'sudo' if use_sudo else 'direct'}\n")


def is_pid_alive(pid: int) -> bool:
    """Check a pid; processes owned by another user (root) count as alive.

    A proxy started by this process is reaped here once it exits, otherwise
    it would linger as a zombie that still answers signal 0.
    """
    try:
        reaped, _status = os.waitpid(pid, os.WNOHANG)
    except ChildProcessError:
        reaped = 0
    if reaped == pid:
        return False

    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def _unlink(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except PermissionError:
        logger.warning(f"Cannot remove {path}: permission denied")


# =============================================================================
# Operations
# =============================================================================


def proxy_status(config: ProxyConfig) -> ProxyStatus:
    """Report whether the recorded proxy process is alive."""
    record = read_pidfile(config.pidfile)
    pid = record[0] if record else None
    return ProxyStatus(
        socket=config.socket,
        pid=pid,
        running=pid is not None and is_pid_alive(pid),
        socket_exists=config.socket.exists(),
    )


def start_proxy(
    config: ProxyConfig,
    wait: float = 5.0,
    poll_interval: float = 0.1,
) -> ProxyStatus:
    """Launch socat in the background.

    Args:
        config: Proxy configuration.
        wait: Seconds to wait for the socket to appear.
        poll_interval: Seconds between checks.

    Returns:
        Status after launch.

    Raises:
        ProxyError: If a proxy is already running, socat cannot be
            launched, or it exits before the socket appears.
    """
    status = proxy_status(config)
    if status.running:
        raise ProxyError(f"Proxy already running (pid {status.pid}) on {config.socket}")

    try:
        command = build_socat_command(config)
    except ValueError as e:
        raise ProxyError(str(e)) from e

    config.socket.parent.mkdir(parents=True, exist_ok=True)
    if status.socket_exists:
        logger.debug(f"Removing stale socket {config.socket}")
        _unlink(config.socket)

    logger.info(f"Starting: {format_command(command)}")
    config.pidfile.parent.mkdir(parents=True, exist_ok=True)
    with open(config.logfile, "wb") as log:
        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=log,
                start_new_session=True,
            )
        except FileNotFoundError as e:
            raise ProxyError(f"Cannot launch proxy: {e.filename} not found") from e

    write_pidfile(config.pidfile, process.pid, config.use_sudo)

    deadline = time.monotonic() + wait
    while time.monotonic() < deadline:
        code = process.poll()
        if code is not None:
            _unlink(config.pidfile)
            detail = config.logfile.read_text(errors="replace").strip()
            raise ProxyError(f"socat exited with status {code}: {detail or 'no output'}")
        if config.socket.exists():
            break
        time.sleep(poll_interval)
    else:
        logger.warning(f"Socket {config.socket} did not appear within {wait}s")

    return proxy_status(config)


def stop_proxy(config: ProxyConfig, wait: float = 5.0, poll_interval: float = 0.1) -> bool:
    """Terminate the recorded proxy and clean up its files.

    Returns:
        True if a running proxy was signalled, False if none was running.

    Raises:
        ProxyError: If the process cannot be signalled.
    """
    record = read_pidfile(config.pidfile)
    if record is None:
        return False

    pid, used_sudo = record
    stopped = False
    if is_pid_alive(pid):
        logger.info(f"Stopping proxy (pid {pid})")
        if used_sudo:
            result = subprocess.run(
                ["sudo", "-n", "kill", "-TERM", str(pid)],
                capture_output=True,
                text=True,
            )
            if result.returncode != 0:
                raise ProxyError(f"Cannot signal pid {pid}: {result.stderr.strip()}")
        else:
            try:
                os.kill(pid, signal.SIGTERM)
            except ProcessLookupError:
                pass
            except PermissionError as e:
                raise ProxyError(f"Cannot signal pid {pid}: {e}") from e

        deadline = time.monotonic() + wait
        while is_pid_alive(pid) and time.monotonic() < deadline:
            time.sleep(poll_interval)
        if is_pid_alive(pid):
            logger.warning(f"Proxy (pid {pid}) still alive after {wait}s")
        stopped = True
    else:
        logger.info(f"Removing stale pidfile for pid {pid}")

    _unlink(config.pidfile)
    _unlink(config.socket)
    _unlink(config.logfile)
    return stopped


__all__ = [
    "ProxyError",
    "ProxyConfig",
    "ProxyStatus",
    "default_socket_path",
    "docker_host_url",
    "build_socat_command",
    "read_pidfile",
    "write_pidfile",
    "is_pid_alive",
    "proxy_status",
    "start_proxy",
    "stop_proxy",
]
