"""Tests for dent container entry."""

from unittest.mock import call, patch

import pytest

from dent.docker import ContainerState, DockerError

from .cli import _with_default_subcommand, handle_enter_command
from .lib import (
    DEFAULT_SHELL_COMMAND,
    EnterAction,
    EnterOptions,
    HostUser,
    UserImage,
    build_images,
    container_name_for,
    default_command,
    enter,
    plan_enter,
    sanitize_name,
    split_image,
    user_image_for,
)

ALICE = HostUser(name="alice", uid=1000, gid=1000)

RUNNING = ContainerState(Status="running", Running=True)
EXITED = ContainerState(Status="exited", Running=False, ExitCode=0)
CREATED = ContainerState(Status="created", Running=False)
PAUSED = ContainerState(Status="paused", Running=True, Paused=True)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("DENT_PREFIX", "DENT_SHELL", "DENT_WORKDIR", "DOCKER_BIN"):
        monkeypatch.delenv(name, raising=False)


# =============================================================================
# Naming
# =============================================================================


@pytest.mark.unit
class TestSplitImage:
    """Tests for split_image."""

    @pytest.mark.parametrize(
        ("ref", "expected"),
        [
            ("ubuntu", ("ubuntu", "latest")),
            ("ubuntu:22.04", ("ubuntu", "22.04")),
            ("library/debian:stable-slim", ("library/debian", "stable-slim")),
            ("localhost:5000/app", ("localhost:5000/app", "latest")),
            ("localhost:5000/app:v2", ("localhost:5000/app", "v2")),
            ("alpine@sha256:0123abcd", ("alpine", "latest")),
            ("alpine:3.20@sha256:0123abcd", ("alpine", "3.20")),
        ],
    )
    def test_split(self, ref, expected):
        assert split_image(ref) == expected

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            split_image("  ")

    def test_missing_repository_rejected(self):
        with pytest.raises(ValueError, match="Invalid image reference"):
            split_image(":tag")


@pytest.mark.unit
class TestSanitizeName:
    """Tests for sanitize_name."""

    def test_lowercases_and_replaces(self):
        assert sanitize_name("My Box/Test:1") == "my-box-test-1"

    def test_collapses_and_trims(self):
        assert sanitize_name("--a//b--") == "a-b"

    def test_keeps_dots_and_underscores(self):
        assert sanitize_name("ghcr.io_x") == "ghcr.io_x"

    def test_nothing_left(self):
        with pytest.raises(ValueError, match="Cannot derive a name"):
            sanitize_name("///")


@pytest.mark.unit
class TestContainerNameFor:
    """Tests for container name derivation."""

    def test_tagged_image(self):
        assert container_name_for("ubuntu:22.04") == "dent-ubuntu-22.04"

    def test_default_tag(self):
        assert container_name_for("alpine") == "dent-alpine-latest"

    def test_registry_path(self):
        assert (
            container_name_for("ghcr.io/org/tool@sha256:abc")
            == "dent-ghcr.io-org-tool-latest"
        )

    def test_user_suffix(self):
        assert container_name_for("ubuntu:22.04", user="alice") == "dent-ubuntu-22.04-alice"

    def test_prefix_from_environment(self, monkeypatch):
        monkeypatch.setenv("DENT_PREFIX", "box")
        assert container_name_for("alpine:3.20") == "box-alpine-3.20"

    def test_explicit_prefix(self):
        assert container_name_for("alpine:3.20", prefix="dev") == "dev-alpine-3.20"


@pytest.mark.unit
class TestUserImageFor:
    """Tests for user image tag derivation."""

    def test_simple(self):
        assert user_image_for("ubuntu:22.04") == "dent/ubuntu:22.04"

    def test_default_tag(self):
        assert user_image_for("debian") == "dent/debian:latest"

    def test_registry_flattened(self):
        assert user_image_for("ghcr.io/Org/Tool:v1") == "dent/ghcr.io-org-tool:v1"

    def test_registry_port(self):
        assert user_image_for("localhost:5000/app") == "dent/localhost-5000-app:latest"


# =============================================================================
# User images
# =============================================================================


@pytest.mark.unit
class TestUserImage:
    """Tests for the user image Dockerfile."""

    def test_dockerfile_starts_from_base(self):
        image = UserImage(base="debian:stable-slim", tag="dent/debian:stable-slim", user=ALICE)
        assert image.dockerfile().startswith("FROM debian:stable-slim\n")

    def test_dockerfile_handles_both_user_tools(self):
        text = UserImage(base="alpine", tag="dent/alpine:latest", user=ALICE).dockerfile()
        assert "useradd --create-home" in text
        assert "--uid 1000 --gid 1000" in text
        assert "adduser -D -u 1000" in text
        assert "addgroup -g 1000 alice" in text

    def test_labels(self):
        image = UserImage(base="alpine", tag="dent/alpine:latest", user=ALICE)
        assert image.labels == {"dent.managed": "true", "dent.base": "alpine"}

    def test_host_user_spec(self):
        assert ALICE.spec == "1000:1000"

    def test_current_user_sanitized(self, monkeypatch):
        monkeypatch.setattr("dent.enter.lib.os.getuid", lambda: 1234)
        monkeypatch.setattr("dent.enter.lib.os.getgid", lambda: 99)

        class _Entry:
            pw_name = "Bob.Smith"

        monkeypatch.setattr("pwd.getpwuid", lambda uid: _Entry())
        user = HostUser.current()
        assert user == HostUser(name="bob.smith", uid=1234, gid=99)


@pytest.mark.unit
class TestBuildImages:
    """Tests for base-image iteration."""

    @patch("dent.enter.lib.call_docker")
    def test_builds_each_base(self, mock_call):
        mock_call.return_value = 0

        results = build_images(["debian:stable-slim", "alpine:3.20"], user=ALICE)

        assert results == {"debian:stable-slim": True, "alpine:3.20": True}
        tags = [c.args[0][2] for c in mock_call.call_args_list]
        assert tags == ["dent/debian:stable-slim", "dent/alpine:3.20"]
        assert mock_call.call_args_list[0].kwargs["input"].startswith(
            "FROM debian:stable-slim"
        )

    @patch("dent.enter.lib.call_docker")
    def test_failure_does_not_stop_iteration(self, mock_call):
        mock_call.side_effect = [1, 0]

        results = build_images(["broken:1", "alpine"], user=ALICE)

        assert results == {"broken:1": False, "alpine": True}
        assert mock_call.call_count == 2

    @patch("dent.enter.lib.call_docker")
    def test_invalid_reference_skipped(self, mock_call):
        mock_call.return_value = 0
        results = build_images(["///", "alpine"], user=ALICE)
        assert results == {"///": False, "alpine": True}
        assert mock_call.call_count == 1

    @patch("dent.enter.lib.call_docker")
    def test_defaults_to_configured_bases(self, mock_call, monkeypatch):
        monkeypatch.setenv("DENT_BASE_IMAGES", "fedora:40 busybox")
        mock_call.return_value = 0
        assert list(build_images(user=ALICE)) == ["fedora:40", "busybox"]


# =============================================================================
# Planning
# =============================================================================


@pytest.mark.unit
class TestDefaultCommand:
    """Tests for the default exec command."""

    def test_bash_with_sh_fallback(self):
        assert default_command() == DEFAULT_SHELL_COMMAND

    def test_dent_shell(self, monkeypatch):
        monkeypatch.setenv("DENT_SHELL", "zsh -l")
        assert default_command() == ["zsh", "-l"]


@pytest.mark.unit
class TestPlanEnter:
    """Tests for plan_enter."""

    @patch("dent.enter.lib.image_exists", return_value=True)
    @patch("dent.enter.lib.inspect_container", side_effect=[None, None])
    def test_creates_missing_container(self, mock_inspect, _mock_image):
        plan = plan_enter(EnterOptions(target="alpine:3.20", command=["id"], tty=False))

        assert plan.action is EnterAction.CREATE
        assert plan.container == "dent-alpine-3.20"
        assert plan.image == "alpine:3.20"
        assert plan.pull is False
        # Target checked as a container name first, then the derived name
        assert mock_inspect.call_args_list == [call("alpine:3.20"), call("dent-alpine-3.20")]

        (run,) = plan.steps
        assert run[:3] == ["run", "--detach", "--init"]
        assert run[run.index("--name") + 1] == "dent-alpine-3.20"
        assert "dent.managed=true" in run
        assert "dent.image=alpine:3.20" in run
        assert plan.exec_args == ["exec", "--interactive", "dent-alpine-3.20", "id"]
        assert plan.cleanup is None

    @patch("dent.enter.lib.image_exists", return_value=False)
    @patch("dent.enter.lib.inspect_container", side_effect=[None, None])
    def test_pulls_missing_image(self, _mock_inspect, _mock_image):
        plan = plan_enter(EnterOptions(target="alpine", tty=False))
        assert plan.pull is True

    @patch("dent.enter.lib.inspect_container", return_value=RUNNING)
    def test_existing_container_by_name(self, mock_inspect):
        plan = plan_enter(EnterOptions(target="mybox", command=["ls"], tty=False))

        assert plan.action is EnterAction.EXEC
        assert plan.container == "mybox"
        assert plan.steps == []
        assert plan.image is None
        mock_inspect.assert_called_once_with("mybox")

    @patch("dent.enter.lib.inspect_container", side_effect=[None, EXITED])
    def test_starts_stopped_derived_container(self, _mock_inspect):
        plan = plan_enter(EnterOptions(target="debian:stable-slim", tty=False))

        assert plan.action is EnterAction.START
        assert plan.steps == [["start", "dent-debian-stable-slim"]]
        assert plan.exec_args[-len(DEFAULT_SHELL_COMMAND):] == DEFAULT_SHELL_COMMAND

    @patch("dent.enter.lib.inspect_container", return_value=CREATED)
    def test_starts_created_container(self, _mock_inspect):
        plan = plan_enter(EnterOptions(target="box", tty=False))
        assert plan.steps == [["start", "box"]]

    @patch("dent.enter.lib.inspect_container", return_value=PAUSED)
    def test_unpauses_paused_container(self, _mock_inspect):
        plan = plan_enter(EnterOptions(target="box", tty=False))
        assert plan.action is EnterAction.UNPAUSE
        assert plan.steps == [["unpause", "box"]]

    @patch("dent.enter.lib.image_exists", return_value=True)
    @patch("dent.enter.lib.inspect_container", return_value=None)
    def test_explicit_name(self, mock_inspect, _mock_image):
        plan = plan_enter(EnterOptions(target="alpine", name="scratch", tty=False))
        assert plan.container == "scratch"
        mock_inspect.assert_called_once_with("scratch")

    @patch("dent.enter.lib.image_exists", return_value=True)
    @patch("dent.enter.lib.inspect_container", side_effect=[None, None])
    def test_mount_and_workdir(self, _mock_inspect, _mock_image, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        plan = plan_enter(EnterOptions(target="alpine", mount=True, tty=False))

        run = plan.steps[0]
        assert run[run.index("--volume") + 1] == f"{tmp_path}:/work"
        assert run[run.index("--workdir") + 1] == "/work"
        assert plan.exec_args[plan.exec_args.index("--workdir") + 1] == "/work"

    @patch("dent.enter.lib.image_exists", return_value=True)
    @patch("dent.enter.lib.inspect_container", side_effect=[None, None])
    def test_workdir_overrides_mount_for_exec(self, _mock_inspect, _mock_image, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        plan = plan_enter(EnterOptions(target="alpine", mount=True, workdir="/src", tty=False))

        run = plan.steps[0]
        assert run[run.index("--workdir") + 1] == "/work"
        assert plan.exec_args[plan.exec_args.index("--workdir") + 1] == "/src"

    @patch("dent.enter.lib.image_exists", return_value=True)
    @patch("dent.enter.lib.inspect_container", side_effect=[None, None])
    def test_workdir_without_mount(self, _mock_inspect, _mock_image):
        plan = plan_enter(EnterOptions(target="alpine", workdir="/src", tty=False))

        assert "--workdir" not in plan.steps[0]
        assert "--volume" not in plan.steps[0]
        assert plan.exec_args[plan.exec_args.index("--workdir") + 1] == "/src"

    @patch("dent.enter.lib.image_exists", return_value=True)
    @patch("dent.enter.lib.inspect_container", side_effect=[None, None])
    def test_env_tty_and_run_args(self, _mock_inspect, _mock_image):
        plan = plan_enter(
            EnterOptions(
                target="alpine",
                env=["FOO=1"],
                run_args=["--network=host"],
                tty=True,
                rm=True,
            )
        )

        assert "--network=host" in plan.steps[0]
        assert "FOO=1" in plan.steps[0]
        assert "--tty" in plan.exec_args
        assert "FOO=1" in plan.exec_args
        assert plan.cleanup == ["rm", "--force", "dent-alpine-latest"]

    @patch("dent.enter.lib.image_exists", return_value=False)
    @patch("dent.enter.lib.inspect_container", side_effect=[None, None])
    def test_user_image_built_when_missing(self, mock_inspect, mock_image):
        plan = plan_enter(EnterOptions(target="ubuntu:22.04", as_user=True, tty=False), user=ALICE)

        assert plan.container == "dent-ubuntu-22.04-alice"
        assert plan.image == "dent/ubuntu:22.04"
        assert plan.build == UserImage(base="ubuntu:22.04", tag="dent/ubuntu:22.04", user=ALICE)
        assert plan.pull is False
        mock_image.assert_called_once_with("dent/ubuntu:22.04")
        assert plan.exec_args[plan.exec_args.index("--user") + 1] == "1000:1000"
        assert plan.steps[0][-4:] == ["dent/ubuntu:22.04", "tail", "-f", "/dev/null"]

    @patch("dent.enter.lib.image_exists", return_value=True)
    @patch("dent.enter.lib.inspect_container", side_effect=[None, None])
    def test_user_image_reused(self, _mock_inspect, _mock_image):
        plan = plan_enter(EnterOptions(target="ubuntu:22.04", as_user=True, tty=False), user=ALICE)
        assert plan.build is None

    @patch("dent.enter.lib.inspect_container", side_effect=[None, RUNNING])
    def test_mount_on_existing_container_warns(self, _mock_inspect, caplog):
        with caplog.at_level("WARNING", logger="dent.enter"):
            plan = plan_enter(EnterOptions(target="alpine", mount=True, tty=False))
        assert plan.steps == []
        assert "only apply on creation" in caplog.text


# =============================================================================
# Execution
# =============================================================================


@pytest.mark.unit
class TestEnter:
    """Tests for enter."""

    @patch("dent.enter.lib.call_docker", return_value=0)
    @patch("dent.enter.lib.run_docker")
    @patch("dent.enter.lib.image_exists", return_value=True)
    @patch("dent.enter.lib.inspect_container", side_effect=[None, None])
    def test_create_then_exec(self, _inspect, _image, mock_run, mock_call):
        code = enter(EnterOptions(target="alpine", command=["true"], tty=False))

        assert code == 0
        assert mock_run.call_args[0][0][0] == "run"
        mock_call.assert_called_once_with(
            ["exec", "--interactive", "dent-alpine-latest", "true"], dry_run=False
        )

    @patch("dent.enter.lib.call_docker", return_value=3)
    @patch("dent.enter.lib.run_docker")
    @patch("dent.enter.lib.inspect_container", return_value=RUNNING)
    def test_exit_code_propagates(self, _inspect, mock_run, _call):
        assert enter(EnterOptions(target="box", command=["false"], tty=False)) == 3
        mock_run.assert_not_called()

    @patch("dent.enter.lib.call_docker", side_effect=[5, 0])
    @patch("dent.enter.lib.run_docker")
    @patch("dent.enter.lib.inspect_container", return_value=EXITED)
    def test_rm_runs_after_failed_exec(self, _inspect, mock_run, mock_call):
        code = enter(EnterOptions(target="box", command=["x"], rm=True, tty=False))

        assert code == 5
        mock_run.assert_called_once_with(["start", "box"])
        assert mock_call.call_args_list[-1] == call(["rm", "--force", "box"], dry_run=False)

    @patch("dent.enter.lib.call_docker", return_value=0)
    @patch("dent.enter.lib.run_docker")
    @patch("dent.enter.lib.inspect_container", return_value=EXITED)
    def test_dry_run_changes_nothing(self, _inspect, mock_run, mock_call, caplog):
        with caplog.at_level("INFO", logger="dent.enter"):
            enter(EnterOptions(target="box", command=["sh"], tty=False, dry_run=True))
        mock_run.assert_not_called()
        assert "Would run: docker start box" in caplog.text
        assert mock_call.call_args.kwargs["dry_run"] is True

    @patch("dent.enter.lib.call_docker", return_value=1)
    @patch("dent.enter.lib.image_exists", return_value=False)
    @patch("dent.enter.lib.inspect_container", side_effect=[None, None])
    def test_failed_pull_raises(self, _inspect, _image, _call):
        with pytest.raises(DockerError, match="Failed to pull alpine"):
            enter(EnterOptions(target="alpine", tty=False))

    @patch("dent.enter.lib.call_docker", return_value=1)
    @patch("dent.enter.lib.image_exists", return_value=False)
    @patch("dent.enter.lib.inspect_container", side_effect=[None, None])
    def test_failed_build_raises(self, _inspect, _image, _call):
        with pytest.raises(DockerError, match="Failed to build user image"):
            enter(EnterOptions(target="alpine", as_user=True, tty=False), user=ALICE)


# =============================================================================
# CLI
# =============================================================================


@pytest.mark.unit
class TestCli:
    """Tests for the dent argument handling."""

    def test_default_subcommand_inserted(self):
        assert _with_default_subcommand(["alpine", "ls"]) == ["enter", "alpine", "ls"]
        assert _with_default_subcommand(["--rm", "alpine"]) == ["enter", "--rm", "alpine"]
        assert _with_default_subcommand(["-v", "alpine"]) == ["-v", "enter", "alpine"]

    def test_explicit_subcommand_kept(self):
        assert _with_default_subcommand(["build", "alpine"]) == ["build", "alpine"]
        assert _with_default_subcommand(["--help"]) == ["--help"]

    @patch("dent.enter.cli.enter", return_value=4)
    def test_options_and_command(self, mock_enter):
        code = handle_enter_command(
            ["-u", "--rm", "-e", "A=1", "-T", "ubuntu:22.04", "--", "ls", "-la"]
        )

        assert code == 4
        options = mock_enter.call_args[0][0]
        assert options.target == "ubuntu:22.04"
        assert options.command == ["ls", "-la"]
        assert options.as_user is True
        assert options.rm is True
        assert options.env == ["A=1"]
        assert options.tty is False

    @patch("dent.enter.cli.enter", return_value=0)
    def test_tty_auto_by_default(self, mock_enter):
        handle_enter_command(["alpine"])
        assert mock_enter.call_args[0][0].tty is None
        assert mock_enter.call_args[0][0].command == []

    @patch("dent.enter.cli.enter", side_effect=DockerError("daemon down"))
    def test_docker_error_exit_code(self, _mock_enter):
        assert handle_enter_command(["alpine"]) == 1

    @patch("dent.enter.cli.build_images", return_value={"a": True, "b": False})
    def test_build_reports_failure(self, _mock_build):
        assert handle_enter_command(["build", "a", "b"]) == 1

    @patch("dent.enter.cli.remove", return_value=0)
    def test_rm(self, mock_remove):
        assert handle_enter_command(["rm", "x", "y"]) == 0
        mock_remove.assert_called_once_with(["x", "y"], dry_run=False)

    @patch("dent.enter.cli.list_managed", return_value=[])
    def test_ls_empty(self, _mock_list, capsys):
        assert handle_enter_command(["ls"]) == 0
        assert "No dent containers" in capsys.readouterr().out

    def test_no_arguments_prints_help(self, capsys):
        assert handle_enter_command([]) == 1
        assert "usage:" in capsys.readouterr().out
