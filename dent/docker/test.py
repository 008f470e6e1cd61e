"""Tests for the docker CLI helpers."""

import json
import subprocess
from unittest.mock import patch

import pytest

from .exec import (
    KEEPALIVE_COMMAND,
    build_exec_command,
    build_image_command,
    build_run_command,
)
from .lib import (
    ContainerState,
    DockerError,
    call_docker,
    format_command,
    image_exists,
    inspect_container,
    is_daemon_available,
    list_containers,
    remove_containers,
    run_docker,
)


def _completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(
        args=["docker"], returncode=returncode, stdout=stdout, stderr=stderr
    )


@pytest.fixture(autouse=True)
def _plain_docker(monkeypatch):
    monkeypatch.delenv("DOCKER_BIN", raising=False)
    monkeypatch.delenv("DOCKER_TIMEOUT", raising=False)


# =============================================================================
# Command builders
# =============================================================================


@pytest.mark.unit
class TestBuildRunCommand:
    """Tests for build_run_command."""

    def test_minimal(self):
        cmd = build_run_command("alpine:latest")
        assert cmd == [
            "run",
            "--detach",
            "--init",
            "alpine:latest",
            *KEEPALIVE_COMMAND,
        ]

    def test_name_labels_and_mounts(self):
        cmd = build_run_command(
            "debian:stable-slim",
            name="dent-debian-stable-slim",
            labels={"dent.managed": "true"},
            volumes={"/home/me/src": "/work"},
            workdir="/work",
            hostname="dent-debian",
        )
        assert cmd[cmd.index("--name") + 1] == "dent-debian-stable-slim"
        assert cmd[cmd.index("--label") + 1] == "dent.managed=true"
        assert cmd[cmd.index("--volume") + 1] == "/home/me/src:/work"
        assert cmd[cmd.index("--workdir") + 1] == "/work"
        assert cmd[cmd.index("--hostname") + 1] == "dent-debian"
        # Image follows all options
        assert cmd.index("debian:stable-slim") > cmd.index("--workdir")

    def test_extra_args_precede_image(self):
        cmd = build_run_command("alpine", extra_args=["--network", "host"])
        assert cmd.index("--network") < cmd.index("alpine")

    def test_custom_command(self):
        cmd = build_run_command("alpine", command=["sleep", "60"])
        assert cmd[-2:] == ["sleep", "60"]

    def test_empty_image_rejected(self):
        with pytest.raises(ValueError, match="Must specify an image"):
            build_run_command("")


@pytest.mark.unit
class TestBuildExecCommand:
    """Tests for build_exec_command."""

    def test_basic(self):
        cmd = build_exec_command("dent-alpine-latest", ["echo", "hello"])
        assert cmd == ["exec", "--interactive", "dent-alpine-latest", "echo", "hello"]

    def test_tty_user_workdir_env(self):
        cmd = build_exec_command(
            "box",
            ["bash"],
            tty=True,
            user="1000:1000",
            workdir="/work",
            env=["TERM=xterm", "LANG"],
        )
        assert "--tty" in cmd
        assert cmd[cmd.index("--user") + 1] == "1000:1000"
        assert cmd[cmd.index("--workdir") + 1] == "/work"
        assert "TERM=xterm" in cmd
        assert "LANG" in cmd
        assert cmd[-2:] == ["box", "bash"]

    def test_non_interactive(self):
        cmd = build_exec_command("box", ["true"], interactive=False)
        assert "--interactive" not in cmd

    def test_requires_container(self):
        with pytest.raises(ValueError, match="container"):
            build_exec_command("", ["true"])

    def test_requires_command(self):
        with pytest.raises(ValueError, match="command"):
            build_exec_command("box", [])


@pytest.mark.unit
class TestBuildImageCommand:
    """Tests for build_image_command."""

    def test_reads_dockerfile_from_stdin(self):
        cmd = build_image_command("dent/alpine:latest", labels={"dent.base": "alpine"})
        assert cmd[:3] == ["build", "--tag", "dent/alpine:latest"]
        assert "dent.base=alpine" in cmd
        assert cmd[-1] == "-"

    def test_pull(self):
        assert "--pull" in build_image_command("x:1", pull=True)


# =============================================================================
# Invocation
# =============================================================================


@pytest.mark.unit
class TestRunDocker:
    """Tests for run_docker."""

    @patch("dent.docker.lib.subprocess.run")
    def test_prefixes_binary_and_captures(self, mock_run, monkeypatch):
        monkeypatch.setenv("DOCKER_BIN", "/usr/local/bin/docker")
        mock_run.return_value = _completed(stdout="ok")

        result = run_docker(["ps"])

        assert result.stdout == "ok"
        args, kwargs = mock_run.call_args
        assert args[0] == ["/usr/local/bin/docker", "ps"]
        assert kwargs["capture_output"] is True
        assert kwargs["text"] is True
        assert kwargs["timeout"] == 60

    @patch("dent.docker.lib.subprocess.run")
    def test_nonzero_raises(self, mock_run):
        mock_run.return_value = _completed(returncode=125, stderr="bad flag\n")

        with pytest.raises(DockerError) as excinfo:
            run_docker(["run", "--bogus"])

        assert excinfo.value.returncode == 125
        assert excinfo.value.stderr == "bad flag"
        assert excinfo.value.command == ["docker", "run", "--bogus"]

    @patch("dent.docker.lib.subprocess.run")
    def test_nonzero_without_check(self, mock_run):
        mock_run.return_value = _completed(returncode=1)
        assert run_docker(["ps"], check=False).returncode == 1

    @patch("dent.docker.lib.subprocess.run", side_effect=FileNotFoundError)
    def test_missing_binary(self, _mock_run):
        with pytest.raises(DockerError, match="not found") as excinfo:
            run_docker(["ps"])
        assert excinfo.value.returncode == 127

    @patch(
        "dent.docker.lib.subprocess.run",
        side_effect=subprocess.TimeoutExpired(cmd="docker", timeout=3),
    )
    def test_timeout(self, _mock_run):
        with pytest.raises(DockerError, match="Timed out"):
            run_docker(["info"], timeout=3)


@pytest.mark.unit
class TestCallDocker:
    """Tests for call_docker."""

    @patch("dent.docker.lib.subprocess.call", return_value=7)
    def test_returns_exit_status(self, mock_call):
        assert call_docker(["exec", "box", "false"]) == 7
        mock_call.assert_called_once_with(["docker", "exec", "box", "false"])

    @patch("dent.docker.lib.subprocess.call")
    def test_dry_run_does_not_execute(self, mock_call, caplog):
        with caplog.at_level("INFO", logger="dent.docker"):
            assert call_docker(["rm", "--force", "box"], dry_run=True) == 0
        mock_call.assert_not_called()
        assert "Would run: docker rm --force box" in caplog.text

    @patch("dent.docker.lib.subprocess.call")
    @patch("dent.docker.lib.subprocess.run")
    def test_input_fed_on_stdin(self, mock_run, mock_call):
        mock_run.return_value = subprocess.CompletedProcess([], 0)
        assert call_docker(["build", "--tag", "t", "-"], input="FROM alpine\n") == 0
        mock_run.assert_called_once_with(
            ["docker", "build", "--tag", "t", "-"], input="FROM alpine\n", text=True
        )
        mock_call.assert_not_called()

    @patch("dent.docker.lib.subprocess.call", side_effect=KeyboardInterrupt)
    def test_interrupt(self, _mock_call):
        assert call_docker(["exec", "box", "sh"]) == 130

    @patch("dent.docker.lib.subprocess.call", side_effect=FileNotFoundError)
    def test_missing_binary(self, _mock_call):
        assert call_docker(["ps"]) == 127


@pytest.mark.unit
def test_format_command_quotes_arguments():
    assert format_command(["docker", "exec", "box", "sh", "-c", "echo hi"]) == (
        "docker exec box sh -c 'echo hi'"
    )


# =============================================================================
# Queries
# =============================================================================


@pytest.mark.unit
class TestInspectContainer:
    """Tests for inspect_container."""

    @patch("dent.docker.lib.subprocess.run")
    def test_running(self, mock_run):
        state = {"Status": "running", "Running": True, "Paused": False, "Pid": 42}
        mock_run.return_value = _completed(stdout=json.dumps(state) + "\n")

        result = inspect_container("box")

        assert isinstance(result, ContainerState)
        assert result.running is True
        assert result.pid == 42
        assert result.is_stopped is False
        assert mock_run.call_args[0][0][-1] == "box"

    @patch("dent.docker.lib.subprocess.run")
    def test_exited(self, mock_run):
        state = {"Status": "exited", "Running": False, "ExitCode": 137}
        mock_run.return_value = _completed(stdout=json.dumps(state))

        result = inspect_container("box")

        assert result.status == "exited"
        assert result.exit_code == 137
        assert result.is_stopped is True

    @patch("dent.docker.lib.subprocess.run")
    def test_paused_is_not_stopped(self, mock_run):
        state = {"Status": "paused", "Running": True, "Paused": True}
        mock_run.return_value = _completed(stdout=json.dumps(state))
        assert inspect_container("box").is_stopped is False

    @patch("dent.docker.lib.subprocess.run")
    def test_missing_container(self, mock_run):
        mock_run.return_value = _completed(
            returncode=1, stderr="Error: No such container: box"
        )
        assert inspect_container("box") is None

    @patch("dent.docker.lib.subprocess.run")
    def test_daemon_error_raises(self, mock_run):
        mock_run.return_value = _completed(
            returncode=1,
            stderr="permission denied while trying to connect to the Docker daemon socket",
        )
        with pytest.raises(DockerError, match="permission denied"):
            inspect_container("box")


@pytest.mark.unit
class TestImageExists:
    """Tests for image_exists."""

    @patch("dent.docker.lib.subprocess.run")
    def test_present(self, mock_run):
        mock_run.return_value = _completed(stdout="sha256:abc\n")
        assert image_exists("alpine:latest") is True

    @patch("dent.docker.lib.subprocess.run")
    def test_absent(self, mock_run):
        mock_run.return_value = _completed(
            returncode=1, stderr="Error: No such image: dent/alpine:latest"
        )
        assert image_exists("dent/alpine:latest") is False


@pytest.mark.unit
class TestListContainers:
    """Tests for list_containers."""

    @patch("dent.docker.lib.subprocess.run")
    def test_parses_json_lines(self, mock_run):
        rows = [
            {"ID": "a1", "Names": "dent-alpine-latest", "Image": "alpine:latest",
             "Status": "Up 2 minutes", "State": "running"},
            {"ID": "b2", "Names": "dent-debian-stable-slim", "Image": "debian:stable-slim",
             "Status": "Exited (0) 1 hour ago", "State": "exited"},
        ]
        mock_run.return_value = _completed(
            stdout="\n".join(json.dumps(r) for r in rows) + "\n"
        )

        result = list_containers()

        assert [c.name for c in result] == [
            "dent-alpine-latest",
            "dent-debian-stable-slim",
        ]
        assert result[1].state == "exited"
        assert "label=dent.managed" in mock_run.call_args[0][0]

    @patch("dent.docker.lib.subprocess.run")
    def test_empty(self, mock_run):
        mock_run.return_value = _completed(stdout="")
        assert list_containers() == []


@pytest.mark.unit
class TestRemoveContainers:
    """Tests for remove_containers."""

    @patch("dent.docker.lib.subprocess.call", return_value=0)
    def test_force_removes(self, mock_call):
        assert remove_containers(["a", "b"]) == 0
        mock_call.assert_called_once_with(["docker", "rm", "--force", "a", "b"])

    @patch("dent.docker.lib.subprocess.call")
    def test_nothing_to_remove(self, mock_call):
        assert remove_containers([]) == 0
        mock_call.assert_not_called()


@pytest.mark.unit
class TestIsDaemonAvailable:
    """Tests for is_daemon_available."""

    @patch("dent.docker.lib.subprocess.run")
    def test_available(self, mock_run):
        mock_run.return_value = _completed(stdout="27.1.1\n")
        assert is_daemon_available() is True

    @patch("dent.docker.lib.subprocess.run")
    def test_unreachable(self, mock_run):
        mock_run.return_value = _completed(returncode=1, stderr="Cannot connect")
        assert is_daemon_available() is False

    @patch("dent.docker.lib.subprocess.run", side_effect=FileNotFoundError)
    def test_no_binary(self, _mock_run):
        assert is_daemon_available() is False
