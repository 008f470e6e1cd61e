"""Docker CLI wrappers for dent.

Every operation here is a single invocation of the docker command-line
tool. Captured commands go through `run_docker()`, interactive passthrough
commands go through `call_docker()`.
"""

from __future__ import annotations

import json
import shlex
import subprocess
from typing import Sequence

from pydantic import BaseModel, ConfigDict, Field

from dent.config import EnvVar, get_docker_timeout, get_environment
from dent.core import get_logger

logger = get_logger("dent.docker")

# Label attached to every container and image dent creates
MANAGED_LABEL = "dent.managed"
IMAGE_LABEL = "dent.image"
BASE_LABEL = "dent.base"


class DockerError(Exception):
    """A docker CLI invocation failed.

    Attributes:
        command: The full argument vector that was run.
        returncode: Exit status (127 when the binary is missing).
        stderr: Captured standard error, stripped.
    """

    def __init__(
        self,
        message: str,
        command: Sequence[str] = (),
        returncode: int | None = None,
        stderr: str = "",
    ):
        super().__init__(message)
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr


# =============================================================================
# Models
# =============================================================================


class ContainerState(BaseModel):
    """The `.State` object reported by `docker container inspect`."""

    status: str = Field(alias="Status")
    running: bool = Field(default=False, alias="Running")
    paused: bool = Field(default=False, alias="Paused")
    restarting: bool = Field(default=False, alias="Restarting")
    exit_code: int = Field(default=0, alias="ExitCode")
    pid: int = Field(default=0, alias="Pid")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @property
    def is_stopped(self) -> bool:
        """True when the container exists but must be started before exec."""
        return not self.running and not self.paused


class ContainerSummary(BaseModel):
    """One row of `docker ps --format '{{json .}}'`."""

    id: str = Field(alias="ID")
    name: str = Field(alias="Names")
    image: str = Field(alias="Image")
    status: str = Field(default="", alias="Status")
    state: str = Field(default="", alias="State")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# =============================================================================
# Invocation
# =============================================================================


def docker_command(args: Sequence[str]) -> list[str]:
    """Prefix arguments with the configured docker executable."""
    return [get_environment(EnvVar.DOCKER_BIN), *args]


def format_command(command: Sequence[str]) -> str:
    """Render an argument vector as a copy-pasteable shell line."""
    return " ".join(shlex.quote(part) for part in command)


def run_docker(
    args: Sequence[str],
    check: bool = True,
    input: str | None = None,
    timeout: int | None = None,
) -> subprocess.CompletedProcess:
    """Run a docker command with captured output.

    Args:
        args: Arguments following the docker executable.
        check: Raise DockerError on a non-zero exit status.
        input: Text passed on standard input.
        timeout: Seconds before giving up. Defaults to DOCKER_TIMEOUT.

    Returns:
        The completed process (text mode).

    Raises:
        DockerError: If the binary is missing, the command times out, or
            it exits non-zero while `check` is set.
    """
    command = docker_command(args)
    logger.debug(f"Running: {format_command(command)}")

    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            input=input,
            timeout=timeout or get_docker_timeout(),
        )
    except FileNotFoundError as e:
        raise DockerError(
            f"Docker executable not found: {command[0]}",
            command=command,
            returncode=127,
        ) from e
    except subprocess.TimeoutExpired as e:
        raise DockerError(
            f"Timed out after {e.timeout}s: {format_command(command)}",
            command=command,
        ) from e

    if check and result.returncode != 0:
        stderr = (result.stderr or "").strip()
        raise DockerError(
            f"docker {args[0] if args else ''} failed ({result.returncode}): {stderr}",
            command=command,
            returncode=result.returncode,
            stderr=stderr,
        )
    return result


def call_docker(
    args: Sequence[str],
    dry_run: bool = False,
    input: str | None = None,
) -> int:
    """Run a docker command attached to the current terminal.

    Args:
        args: Arguments following the docker executable.
        dry_run: Log the command without running it.
        input: Text fed to standard input instead of the terminal.

    Returns:
        The command's exit status (0 for dry runs, 127 if docker is
        missing, 130 when interrupted).
    """
    command = docker_command(args)

    if dry_run:
        logger.info(f"Would run: {format_command(command)}")
        return 0

    logger.debug(f"Running: {format_command(command)}")
    try:
        if input is not None:
            return subprocess.run(command, input=input, text=True).returncode
        return subprocess.call(command)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130
    except FileNotFoundError:
        logger.error(f"Docker executable not found: {command[0]}")
        return 127


# =============================================================================
# Queries
# =============================================================================


def _is_missing(stderr: str) -> bool:
    return "no such" in stderr.lower()


def inspect_container(name: str) -> ContainerState | None:
    """Get the state of a container.

    Args:
        name: Container name or ID.

    Returns:
        The container state, or None if no such container exists.

    Raises:
        DockerError: For failures other than a missing container.
    """
    result = run_docker(
        ["container", "inspect", "--format", "{{json .State}}", name],
        check=False,
    )
    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        if _is_missing(stderr):
            return None
        raise DockerError(
            f"Cannot inspect container {name}: {stderr}",
            command=docker_command(["container", "inspect", name]),
            returncode=result.returncode,
            stderr=stderr,
        )
    return ContainerState.model_validate(json.loads(result.stdout))


def image_exists(ref: str) -> bool:
    """Check whether an image is present locally."""
    result = run_docker(["image", "inspect", "--format", "{{.Id}}", ref], check=False)
    if result.returncode == 0:
        return True
    stderr = (result.stderr or "").strip()
    if _is_missing(stderr):
        return False
    raise DockerError(
        f"Cannot inspect image {ref}: {stderr}",
        command=docker_command(["image", "inspect", ref]),
        returncode=result.returncode,
        stderr=stderr,
    )


def list_containers(label: str = MANAGED_LABEL) -> list[ContainerSummary]:
    """List all containers, running or not, carrying a label.

    Args:
        label: Label key (or key=value) to filter on.

    Returns:
        Container summaries in docker's order.
    """
    result = run_docker(
        ["ps", "--all", "--filter", f"label={label}", "--format", "{{json .}}"]
    )
    return [
        ContainerSummary.model_validate_json(line)
        for line in result.stdout.splitlines()
        if line.strip()
    ]


def remove_containers(names: Sequence[str], dry_run: bool = False) -> int:
    """Force-remove containers.

    Returns:
        Exit status of `docker rm -f`.
    """
    if not names:
        return 0
    return call_docker(["rm", "--force", *names], dry_run=dry_run)


def is_daemon_available(timeout: int = 10) -> bool:
    """Check if the docker daemon answers."""
    try:
        result = run_docker(
            ["info", "--format", "{{.ServerVersion}}"], check=False, timeout=timeout
        )
    except DockerError:
        return False
    return result.returncode == 0


__all__ = [
    "MANAGED_LABEL",
    "IMAGE_LABEL",
    "BASE_LABEL",
    "DockerError",
    "ContainerState",
    "ContainerSummary",
    "docker_command",
    "format_command",
    "run_docker",
    "call_docker",
    "inspect_container",
    "image_exists",
    "list_containers",
    "remove_containers",
    "is_daemon_available",
]
