"""Tests for the socat docker proxy."""

import os
import time
import signal
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from .cli import handle_proxy_command
from .lib import (
    ProxyConfig,
    ProxyError,
    build_socat_command,
    docker_host_url,
    is_pid_alive,
    proxy_status,
    read_pidfile,
    start_proxy,
    stop_proxy,
    write_pidfile,
)


@pytest.fixture
def config(tmp_path: Path) -> ProxyConfig:
    return ProxyConfig(
        socket=tmp_path / "docker.sock",
        target=Path("/var/run/docker.sock"),
        pidfile=tmp_path / "docker.sock.pid",
        use_sudo=False,
        uid=1000,
        gid=1000,
    )


class FakeProcess:
    """Stands in for subprocess.Popen."""

    def __init__(self, command, socket=None, exit_code=None, stderr_text=b"", **kwargs):
        self.command = command
        self.kwargs = kwargs
        self.pid = 4321
        self._socket = socket
        self._exit_code = exit_code
        if stderr_text:
            kwargs["stderr"].write(stderr_text)

    def poll(self):
        if self._exit_code is None and self._socket is not None:
            self._socket.touch()
        return self._exit_code


# =============================================================================
# Command and config
# =============================================================================


@pytest.mark.unit
class TestBuildSocatCommand:
    """Tests for build_socat_command."""

    def test_direct(self, config):
        cmd = build_socat_command(config)
        assert cmd == [
            "socat",
            f"UNIX-LISTEN:{config.socket},fork,unlink-early,user=1000,group=1000,mode=600",
            "UNIX-CONNECT:/var/run/docker.sock",
        ]

    def test_sudo(self, config):
        cmd = build_socat_command(
            ProxyConfig(
                socket=config.socket,
                target=config.target,
                pidfile=config.pidfile,
                use_sudo=True,
            )
        )
        assert cmd[:3] == ["sudo", "-n", "socat"]

    def test_rejects_separator_in_path(self, tmp_path, config):
        bad = ProxyConfig(
            socket=tmp_path / "a,b.sock", target=config.target, pidfile=config.pidfile
        )
        with pytest.raises(ValueError, match="not usable by socat"):
            build_socat_command(bad)


@pytest.mark.unit
class TestProxyConfig:
    """Tests for ProxyConfig.from_environment."""

    def test_uses_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DENT_PROXY_SOCKET", str(tmp_path / "u.sock"))
        monkeypatch.setenv("DOCKER_SOCKET", "/run/docker.sock")
        monkeypatch.setenv("SOCAT_BIN", "/opt/bin/socat")
        monkeypatch.delenv("DENT_PROXY_PIDFILE", raising=False)
        monkeypatch.delenv("DENT_PROXY_SUDO", raising=False)
        monkeypatch.setattr("dent.proxy.lib.os.geteuid", lambda: 1000)

        config = ProxyConfig.from_environment()

        assert config.socket == tmp_path / "u.sock"
        assert config.pidfile == tmp_path / "u.sock.pid"
        assert config.logfile == tmp_path / "u.sock.log"
        assert config.target == Path("/run/docker.sock")
        assert config.socat == "/opt/bin/socat"
        assert config.use_sudo is True

    def test_root_never_uses_sudo(self, tmp_path, monkeypatch):
        monkeypatch.setattr("dent.proxy.lib.os.geteuid", lambda: 0)
        config = ProxyConfig.from_environment(socket=tmp_path / "s.sock")
        assert config.use_sudo is False

    def test_sudo_disabled(self, tmp_path, monkeypatch):
        monkeypatch.setattr("dent.proxy.lib.os.geteuid", lambda: 1000)
        monkeypatch.setenv("DENT_PROXY_SUDO", "false")
        assert ProxyConfig.from_environment(socket=tmp_path / "s.sock").use_sudo is False

    def test_docker_host_url(self):
        assert docker_host_url(Path("/run/user/1000/docker.sock")) == (
            "unix:///run/user/1000/docker.sock"
        )


# =============================================================================
# Pidfile and liveness
# =============================================================================


@pytest.mark.unit
class TestPidfile:
    """Tests for pidfile handling."""

    def test_write_and_read(self, tmp_path):
        pidfile = tmp_path / "run" / "proxy.pid"
        write_pidfile(pidfile, 77, use_sudo=True)
        assert read_pidfile(pidfile) == (77, True)

    def test_direct_flag(self, tmp_path):
        pidfile = tmp_path / "proxy.pid"
        write_pidfile(pidfile, 12, use_sudo=False)
        assert read_pidfile(pidfile) == (12, False)

    def test_missing(self, tmp_path):
        assert read_pidfile(tmp_path / "nope.pid") is None

    def test_malformed(self, tmp_path):
        pidfile = tmp_path / "bad.pid"
        pidfile.write_text("not-a-pid\n")
        assert read_pidfile(pidfile) is None


@pytest.mark.unit
class TestIsPidAlive:
    """Tests for is_pid_alive."""

    def test_own_process(self):
        assert is_pid_alive(os.getpid()) is True

    def test_gone(self, monkeypatch):
        def _kill(pid, sig):
            raise ProcessLookupError

        monkeypatch.setattr("dent.proxy.lib.os.kill", _kill)
        assert is_pid_alive(1234) is False

    def test_other_users_process(self, monkeypatch):
        def _kill(pid, sig):
            raise PermissionError

        monkeypatch.setattr("dent.proxy.lib.os.kill", _kill)
        assert is_pid_alive(1) is True

    def test_exited_child_is_reaped(self, monkeypatch):
        monkeypatch.setattr("dent.proxy.lib.os.waitpid", lambda pid, flags: (pid, 0))
        with patch("dent.proxy.lib.os.kill") as mock_kill:
            assert is_pid_alive(555) is False
        mock_kill.assert_not_called()


# =============================================================================
# Start / status / stop
# =============================================================================


@pytest.mark.unit
class TestStartProxy:
    """Tests for start_proxy."""

    def test_starts_and_records_pid(self, config, monkeypatch):
        launched = []

        def _popen(command, **kwargs):
            process = FakeProcess(command, socket=config.socket, **kwargs)
            launched.append(process)
            return process

        monkeypatch.setattr("dent.proxy.lib.subprocess.Popen", _popen)
        monkeypatch.setattr("dent.proxy.lib.is_pid_alive", lambda pid: True)

        status = start_proxy(config, wait=1.0, poll_interval=0.01)

        assert status.running is True
        assert status.pid == 4321
        assert status.socket_exists is True
        assert read_pidfile(config.pidfile) == (4321, False)
        (process,) = launched
        assert process.command[0] == "socat"
        assert process.kwargs["start_new_session"] is True
        assert process.kwargs["stdin"] is subprocess.DEVNULL

    def test_refuses_when_running(self, config, monkeypatch):
        write_pidfile(config.pidfile, 4321, use_sudo=False)
        monkeypatch.setattr("dent.proxy.lib.is_pid_alive", lambda pid: True)
        with patch("dent.proxy.lib.subprocess.Popen") as mock_popen:
            with pytest.raises(ProxyError, match="already running"):
                start_proxy(config)
        mock_popen.assert_not_called()

    def test_early_exit_reports_stderr(self, config, monkeypatch):
        def _popen(command, **kwargs):
            return FakeProcess(
                command,
                exit_code=1,
                stderr_text=b"sudo: a password is required\n",
                **kwargs,
            )

        monkeypatch.setattr("dent.proxy.lib.subprocess.Popen", _popen)

        with pytest.raises(ProxyError, match="a password is required"):
            start_proxy(config, wait=1.0, poll_interval=0.01)
        assert not config.pidfile.exists()

    def test_missing_socat(self, config, monkeypatch):
        def _popen(command, **kwargs):
            raise FileNotFoundError(2, "No such file or directory", "socat")

        monkeypatch.setattr("dent.proxy.lib.subprocess.Popen", _popen)
        with pytest.raises(ProxyError, match="socat not found"):
            start_proxy(config)

    def test_stale_socket_removed(self, config, monkeypatch):
        config.socket.write_text("")
        seen = []

        def _popen(command, **kwargs):
            seen.append(config.socket.exists())
            return FakeProcess(command, socket=config.socket, **kwargs)

        monkeypatch.setattr("dent.proxy.lib.subprocess.Popen", _popen)
        monkeypatch.setattr("dent.proxy.lib.is_pid_alive", lambda pid: True)
        start_proxy(config, wait=1.0, poll_interval=0.01)
        assert seen == [False]


@pytest.mark.unit
def test_stop_reaps_child_started_in_process(config, tmp_path):
    fake_socat = tmp_path / "socat"
    fake_socat.write_text("#!/bin/sh\nexec sleep 30\n")
    fake_socat.chmod(0o755)
    child = ProxyConfig(
        socket=config.socket,
        target=config.target,
        pidfile=config.pidfile,
        use_sudo=False,
        socat=str(fake_socat),
        uid=os.getuid(),
        gid=os.getgid(),
    )

    status = start_proxy(child, wait=0.2, poll_interval=0.05)
    assert status.running is True

    started = time.monotonic()
    assert stop_proxy(child, wait=5.0, poll_interval=0.05) is True
    assert time.monotonic() - started < 2.0
    assert is_pid_alive(status.pid) is False
    assert not child.pidfile.exists()
    assert not child.logfile.exists()


@pytest.mark.unit
class TestProxyStatus:
    """Tests for proxy_status."""

    def test_not_running(self, config):
        status = proxy_status(config)
        assert status.running is False
        assert status.pid is None
        assert status.summary == "Proxy not running"

    def test_stale(self, config, monkeypatch):
        write_pidfile(config.pidfile, 99, use_sudo=False)
        monkeypatch.setattr("dent.proxy.lib.is_pid_alive", lambda pid: False)
        status = proxy_status(config)
        assert status.running is False
        assert "stale pid 99" in status.summary


@pytest.mark.unit
class TestStopProxy:
    """Tests for stop_proxy."""

    def test_nothing_running(self, config):
        assert stop_proxy(config) is False

    def test_direct_kill(self, config, monkeypatch):
        write_pidfile(config.pidfile, 4321, use_sudo=False)
        config.socket.write_text("")
        config.logfile.write_text("socat log\n")
        alive = {4321: True}
        signals = []

        def _kill(pid, sig):
            signals.append((pid, sig))
            alive[pid] = False

        monkeypatch.setattr("dent.proxy.lib.is_pid_alive", lambda pid: alive[pid])
        monkeypatch.setattr("dent.proxy.lib.os.kill", _kill)

        assert stop_proxy(config, wait=1.0, poll_interval=0.01) is True
        assert signals == [(4321, signal.SIGTERM)]
        assert not config.pidfile.exists()
        assert not config.socket.exists()
        assert not config.logfile.exists()

    def test_sudo_kill(self, config, monkeypatch):
        write_pidfile(config.pidfile, 4321, use_sudo=True)
        alive = {4321: True}

        def _run(command, **kwargs):
            alive[4321] = False
            return subprocess.CompletedProcess(command, 0, "", "")

        monkeypatch.setattr("dent.proxy.lib.is_pid_alive", lambda pid: alive[pid])
        with patch("dent.proxy.lib.subprocess.run", side_effect=_run) as mock_run:
            assert stop_proxy(config, wait=1.0, poll_interval=0.01) is True
        assert mock_run.call_args[0][0] == ["sudo", "-n", "kill", "-TERM", "4321"]

    def test_sudo_kill_denied(self, config, monkeypatch):
        write_pidfile(config.pidfile, 4321, use_sudo=True)
        monkeypatch.setattr("dent.proxy.lib.is_pid_alive", lambda pid: True)
        denied = subprocess.CompletedProcess([], 1, "", "sudo: a password is required\n")
        with patch("dent.proxy.lib.subprocess.run", return_value=denied):
            with pytest.raises(ProxyError, match="Cannot signal pid 4321"):
                stop_proxy(config)
        assert config.pidfile.exists()

    def test_stale_pidfile_cleaned(self, config, monkeypatch):
        write_pidfile(config.pidfile, 4321, use_sudo=False)
        monkeypatch.setattr("dent.proxy.lib.is_pid_alive", lambda pid: False)
        assert stop_proxy(config) is False
        assert not config.pidfile.exists()


# =============================================================================
# CLI
# =============================================================================


@pytest.mark.unit
class TestCli:
    """Tests for the docker-proxy argument handling."""

    def test_env_prints_export(self, tmp_path, capsys):
        sock = tmp_path / "d.sock"
        assert handle_proxy_command(["--socket", str(sock), "env"]) == 0
        assert capsys.readouterr().out.strip() == f"export DOCKER_HOST=unix://{sock}"

    def test_status_not_running(self, tmp_path, capsys):
        code = handle_proxy_command(["--socket", str(tmp_path / "d.sock"), "status"])
        assert code == 1
        assert "Proxy not running" in capsys.readouterr().out

    def test_stop_when_not_running(self, tmp_path):
        assert handle_proxy_command(["--socket", str(tmp_path / "d.sock"), "stop"]) == 0

    @patch("dent.proxy.cli.start_proxy", side_effect=ProxyError("boom"))
    def test_start_failure(self, _mock_start, tmp_path, capsys):
        code = handle_proxy_command(["--socket", str(tmp_path / "d.sock"), "start"])
        assert code == 1
        assert "export" not in capsys.readouterr().out

    @patch("dent.proxy.cli.start_proxy")
    def test_start_no_sudo(self, mock_start, tmp_path):
        handle_proxy_command(
            ["--socket", str(tmp_path / "d.sock"), "start", "--no-sudo", "--wait", "2"]
        )
        config = mock_start.call_args[0][0]
        assert config.use_sudo is False
        assert mock_start.call_args.kwargs["wait"] == 2.0

    def test_no_command_prints_help(self, capsys):
        assert handle_proxy_command([]) == 1
        assert "usage:" in capsys.readouterr().out
