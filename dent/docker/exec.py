"""Docker command builders.

Builds the argument vectors for creating a long-lived container and for
executing an interactive command inside it. The vectors exclude the docker
executable itself; see `dent.docker.lib.docker_command`.
"""

from typing import Sequence

# Keeps a detached container alive between execs
KEEPALIVE_COMMAND = ("tail", "-f", "/dev/null")


def build_run_command(
    image: str,
    name: str | None = None,
    labels: dict[str, str] | None = None,
    volumes: dict[str, str] | None = None,
    env: Sequence[str] | None = None,
    workdir: str | None = None,
    hostname: str | None = None,
    extra_args: Sequence[str] | None = None,
    command: Sequence[str] = KEEPALIVE_COMMAND,
) -> list[str]:
    """Build a detached `docker run` command.

    Args:
        image: Image to run.
        name: Container name.
        labels: Labels to attach to the container.
        volumes: Bind mounts {host_path: container_path}.
        env: Environment entries, KEY=VALUE or KEY to inherit.
        workdir: Working directory inside container.
        hostname: Container hostname.
        extra_args: Additional raw `docker run` arguments.
        command: Container command. Defaults to the keep-alive command.

    Returns:
        Arguments for `docker`.

    Raises:
        ValueError: If image is empty.
    """
    if not image:
        raise ValueError("Must specify an image")

    docker_cmd = ["run", "--detach", "--init"]

    if name:
        docker_cmd.extend(["--name", name])

    if hostname:
        docker_cmd.extend(["--hostname", hostname])

    if labels:
        for k, v in labels.items():
            docker_cmd.extend(["--label", f"{k}={v}"])

    if volumes:
        for host, cont in volumes.items():
            docker_cmd.extend(["--volume", f"{host}:{cont}"])

    if workdir:
        docker_cmd.extend(["--workdir", workdir])

    if env:
        for item in env:
            docker_cmd.extend(["--env", item])

    if extra_args:
        docker_cmd.extend(extra_args)

    docker_cmd.append(image)
    docker_cmd.extend(command)
    return docker_cmd


def build_exec_command(
    container: str,
    command: Sequence[str],
    interactive: bool = True,
    tty: bool = False,
    user: str | None = None,
    workdir: str | None = None,
    env: Sequence[str] | None = None,
) -> list[str]:
    """Build a `docker exec` command.

    Args:
        container: Running container name.
        command: Command to run inside container.
        interactive: Keep stdin open (-i).
        tty: Allocate a pseudo-terminal (-t).
        user: User spec (name, uid or uid:gid).
        workdir: Working directory inside container.
        env: Environment entries, KEY=VALUE or KEY to inherit.

    Returns:
        Arguments for `docker`.

    Raises:
        ValueError: If container or command is empty.
    """
    if not container:
        raise ValueError("Must specify a container")
    if not command:
        raise ValueError("Must specify a command")

    docker_cmd = ["exec"]
    if interactive:
        docker_cmd.append("--interactive")
    if tty:
        docker_cmd.append("--tty")
    if user:
        docker_cmd.extend(["--user", user])
    if workdir:
        docker_cmd.extend(["--workdir", workdir])
    if env:
        for item in env:
            docker_cmd.extend(["--env", item])

    docker_cmd.append(container)
    docker_cmd.extend(command)
    return docker_cmd


def build_image_command(
    tag: str,
    labels: dict[str, str] | None = None,
    pull: bool = False,
) -> list[str]:
    """Build a `docker build` that reads its Dockerfile from stdin.

    No build context is sent, so the Dockerfile cannot COPY files.
    """
    if not tag:
        raise ValueError("Must specify a tag")

    docker_cmd = ["build", "--tag", tag]
    if pull:
        docker_cmd.append("--pull")
    if labels:
        for k, v in labels.items():
            docker_cmd.extend(["--label", f"{k}={v}"])
    docker_cmd.append("-")
    return docker_cmd
