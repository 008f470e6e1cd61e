"""Enter a docker container, creating or starting it first when needed.

A target is either the name of an existing container or an image
reference. For an image, dent derives a stable container name, creates a
detached container that stays alive between sessions, and then runs an
interactive `docker exec` in it.

Naming Convention:
    Prefix: dent (DENT_PREFIX)

    Containers:
        ubuntu:22.04             -> dent-ubuntu-22.04
        ubuntu:22.04 (--user)    -> dent-ubuntu-22.04-alice
        ghcr.io/org/tool@sha256  -> dent-ghcr.io-org-tool-latest

    User images:
        ubuntu:22.04             -> dent/ubuntu:22.04
        ghcr.io/org/tool         -> dent/ghcr.io-org-tool:latest
"""

from __future__ import annotations

import getpass
import os
import re
import shlex
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from dent.config import EnvVar, get_base_images, get_environment
from dent.core import get_logger
from dent.docker import (
    BASE_LABEL,
    IMAGE_LABEL,
    MANAGED_LABEL,
    ContainerState,
    ContainerSummary,
    DockerError,
    build_exec_command,
    build_image_command,
    build_run_command,
    call_docker,
    docker_command,
    format_command,
    image_exists,
    inspect_container,
    list_containers,
    remove_containers,
    run_docker,
)

logger = get_logger("dent.enter")

DEFAULT_TAG = "latest"

# Login bash where available, plain sh otherwise
DEFAULT_SHELL_COMMAND = [
    "sh",
    "-c",
    "if command -v bash >/dev/null 2>&1; then exec bash -l; else exec sh -l; fi",
]

# Hostnames are limited to 63 characters
_MAX_HOSTNAME = 63

_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9_.-]+")
_REPEATED_DASHES = re.compile(r"-{2,}")


# =============================================================================
# Naming Derivation
# =============================================================================


def split_image(ref: str) -> tuple[str, str]:
    """Split an image reference into repository and tag.

    The tag defaults to "latest" and a trailing @digest is dropped. A colon
    only separates the tag when it follows the last slash, so registry
    ports ("localhost:5000/app") stay part of the repository.

    Raises:
        ValueError: If the reference is empty.
    """
    ref = ref.strip()
    if not ref:
        raise ValueError("Image reference must not be empty")

    ref = ref.split("@", 1)[0]
    slash = ref.rfind("/")
    colon = ref.rfind(":")
    if colon > slash:
        repository, tag = ref[:colon], ref[colon + 1 :]
    else:
        repository, tag = ref, ""
    if not repository:
        raise ValueError(f"Invalid image reference: {ref!r}")
    return repository, tag or DEFAULT_TAG


def sanitize_name(text: str) -> str:
    """Reduce text to characters valid in container and repository names.

    Raises:
        ValueError: If nothing valid remains.
    """
    name = _INVALID_NAME_CHARS.sub("-", text.lower())
    name = _REPEATED_DASHES.sub("-", name).strip("-._")
    if not name:
        raise ValueError(f"Cannot derive a name from {text!r}")
    return name


def container_name_for(
    image: str,
    user: str | None = None,
    prefix: str | None = None,
) -> str:
    """Derive the container name dent uses for an image.

    Args:
        image: Image reference the container runs.
        user: Host user name, for containers running a user image.
        prefix: Name prefix. Defaults to DENT_PREFIX.

    Returns:
        Name of the form {prefix}-{repository}-{tag}[-{user}].
    """
    prefix = prefix or get_environment(EnvVar.DENT_PREFIX)
    repository, tag = split_image(image)
    parts = [prefix, repository.replace("/", "-"), tag]
    if user:
        parts.append(user)
    return sanitize_name("-".join(parts))


def user_image_for(image: str, prefix: str | None = None) -> str:
    """Derive the tag of the user image built on top of a base image.

    Returns:
        Tag of the form {prefix}/{repository}:{tag}.
    """
    prefix = prefix or get_environment(EnvVar.DENT_PREFIX)
    repository, tag = split_image(image)
    name = sanitize_name(repository.replace("/", "-"))
    # Tags allow [A-Za-z0-9_.-], max 128 characters
    tag = re.sub(r"[^A-Za-z0-9_.-]", "_", tag)[:128]
    return f"{sanitize_name(prefix)}/{name}:{tag}"


# =============================================================================
# User Images
# =============================================================================


@dataclass(frozen=True)
class HostUser:
    """The user invoking dent, recreated inside user images."""

    name: str
    uid: int
    gid: int

    @classmethod
    def current(cls) -> HostUser:
        """Describe the current process user."""
        uid, gid = os.getuid(), os.getgid()
        try:
            import pwd

            name = pwd.getpwuid(uid).pw_name
        except (ImportError, KeyError):
            name = getpass.getuser()
        return cls(name=sanitize_name(name), uid=uid, gid=gid)

    @property
    def spec(self) -> str:
        """User spec for `docker exec --user`."""
        return f"{self.uid}:{self.gid}"


@dataclass(frozen=True)
class UserImage:
    """A base image extended with the host user."""

    base: str
    tag: str
    user: HostUser

    @property
    def labels(self) -> dict[str, str]:
        return {MANAGED_LABEL: "true", BASE_LABEL: self.base}

    def dockerfile(self) -> str:
        """Render the Dockerfile.

        Debian, Ubuntu and Fedora style bases provide useradd; busybox
        bases such as Alpine only have adduser/addgroup.
        """
        u = self.user
        return (
            f"FROM {self.base}\n"
            "RUN set -e; \\\n"
            "    if command -v useradd >/dev/null 2>&1; then \\\n"
            f"        getent group {u.gid} >/dev/null 2>&1 || groupadd --gid {u.gid} {u.name}; \\\n"
            f"        id -u {u.name} >/dev/null 2>&1 || useradd --create-home --no-log-init "
            f"--non-unique --uid {u.uid} --gid {u.gid} --shell /bin/sh {u.name}; \\\n"
            "    else \\\n"
            f"        getent group {u.gid} >/dev/null 2>&1 || addgroup -g {u.gid} {u.name}; \\\n"
            f"        id -u {u.name} >/dev/null 2>&1 || adduser -D -u {u.uid} "
            f'-G "$(getent group {u.gid} | cut -d: -f1)" {u.name}; \\\n'
            "    fi\n"
        )


def build_user_image(image: UserImage, dry_run: bool = False, pull: bool = False) -> int:
    """Build a user image, streaming docker's output.

    Returns:
        Exit status of `docker build`.
    """
    logger.info(f"Building {image.tag} from {image.base} for user {image.user.name}")
    args = build_image_command(image.tag, labels=image.labels, pull=pull)
    if dry_run:
        logger.debug(f"Dockerfile:\n{image.dockerfile()}")
    return call_docker(args, dry_run=dry_run, input=image.dockerfile())


def build_images(
    bases: list[str] | None = None,
    user: HostUser | None = None,
    dry_run: bool = False,
    pull: bool = False,
) -> dict[str, bool]:
    """Build the user image for each base image in turn.

    A failing base is logged and skipped; the remaining bases still build.

    Args:
        bases: Base image references. Defaults to DENT_BASE_IMAGES.
        user: User to add. Defaults to the current user.
        dry_run: Log the builds without running them.
        pull: Always pull a newer base image.

    Returns:
        Mapping of base image to build success, in build order.
    """
    bases = bases or get_base_images()
    user = user or HostUser.current()
    results: dict[str, bool] = {}

    for i, base in enumerate(bases, start=1):
        logger.info(f"[{i}/{len(bases)}] {base}")
        try:
            image = UserImage(base=base, tag=user_image_for(base), user=user)
        except ValueError as e:
            logger.error(f"  Skipping: {e}")
            results[base] = False
            continue

        code = build_user_image(image, dry_run=dry_run, pull=pull)
        results[base] = code == 0
        if code != 0:
            logger.error(f"  Build of {image.tag} failed ({code})")

    return results


# =============================================================================
# Enter
# =============================================================================


class EnterAction(str, Enum):
    """What has to happen before the exec."""

    CREATE = "create"  # No container yet
    START = "start"  # Exited or created, not running
    UNPAUSE = "unpause"  # Frozen
    EXEC = "exec"  # Already running


@dataclass
class EnterOptions:
    """A dent request as parsed from the command line.

    Attributes:
        target: Existing container name, or image reference.
        command: Command to run. Empty means the default shell.
        name: Explicit container name instead of the derived one.
        as_user: Enter as the host user through a user image.
        mount: Bind-mount the current directory (on creation).
        workdir: Working directory for the exec.
        env: Environment entries for create and exec.
        rm: Remove the container after the exec returns.
        run_args: Extra raw `docker run` arguments (on creation).
        tty: Force a TTY on or off. None detects from stdin/stdout.
        dry_run: Log mutating commands instead of running them.
    """

    target: str
    command: list[str] = field(default_factory=list)
    name: str | None = None
    as_user: bool = False
    mount: bool = False
    workdir: str | None = None
    env: list[str] = field(default_factory=list)
    rm: bool = False
    run_args: list[str] = field(default_factory=list)
    tty: bool | None = None
    dry_run: bool = False


@dataclass
class EnterPlan:
    """The resolved docker commands for an EnterOptions.

    Attributes:
        container: Container that will be entered.
        state: Its current state, None when it must be created.
        image: Image used for creation (None if the container exists).
        pull: Pull the image before creating.
        build: User image to build before creating.
        steps: docker commands that bring the container to running.
        exec_args: The `docker exec` command.
        cleanup: Command run after the exec, if any.
    """

    container: str
    state: ContainerState | None
    image: str | None = None
    pull: bool = False
    build: UserImage | None = None
    steps: list[list[str]] = field(default_factory=list)
    exec_args: list[str] = field(default_factory=list)
    cleanup: list[str] | None = None

    @property
    def action(self) -> EnterAction:
        if self.state is None:
            return EnterAction.CREATE
        if self.state.paused:
            return EnterAction.UNPAUSE
        if not self.state.running:
            return EnterAction.START
        return EnterAction.EXEC


def default_command() -> list[str]:
    """Command run when none is given: DENT_SHELL or bash/sh."""
    shell = get_environment(EnvVar.DENT_SHELL)
    if shell:
        return shlex.split(shell)
    return list(DEFAULT_SHELL_COMMAND)


def _detect_tty() -> bool:
    return sys.stdin.isatty() and sys.stdout.isatty()


def plan_enter(options: EnterOptions, user: HostUser | None = None) -> EnterPlan:
    """Resolve a request into docker commands.

    Inspects containers and images but changes nothing.

    Args:
        options: The request.
        user: Host user for --user. Defaults to the current user.

    Returns:
        The plan to execute.

    Raises:
        ValueError: If the target cannot be turned into a name.
        DockerError: If docker cannot be queried.
    """
    if options.as_user:
        user = user or HostUser.current()
    else:
        user = None

    if options.name:
        container = options.name
        state = inspect_container(container)
    else:
        # The target may name an existing container
        container = options.target
        state = inspect_container(container)
        if state is None:
            container = container_name_for(
                options.target, user=user.name if user else None
            )
            state = inspect_container(container)

    plan = EnterPlan(container=container, state=state)
    mount_path = get_environment(EnvVar.DENT_WORKDIR)

    if state is None:
        image = options.target
        if user:
            tag = user_image_for(options.target)
            if not image_exists(tag):
                plan.build = UserImage(base=options.target, tag=tag, user=user)
            image = tag
        else:
            plan.pull = not image_exists(image)
        plan.image = image

        volumes = {str(Path.cwd()): mount_path} if options.mount else None
        plan.steps.append(
            build_run_command(
                image,
                name=container,
                hostname=container[:_MAX_HOSTNAME].rstrip("-._"),
                labels={MANAGED_LABEL: "true", IMAGE_LABEL: options.target},
                volumes=volumes,
                workdir=mount_path if options.mount else None,
                env=options.env,
                extra_args=options.run_args,
            )
        )
    else:
        if options.mount or options.run_args:
            logger.warning(
                f"Container {container} already exists; "
                "--mount and --run-arg only apply on creation"
            )
        if plan.action is EnterAction.UNPAUSE:
            plan.steps.append(["unpause", container])
        elif plan.action is EnterAction.START:
            plan.steps.append(["start", container])

    tty = options.tty if options.tty is not None else _detect_tty()
    plan.exec_args = build_exec_command(
        container,
        options.command or default_command(),
        interactive=True,
        tty=tty,
        user=user.spec if user else None,
        workdir=options.workdir or (mount_path if options.mount else None),
        env=options.env,
    )

    if options.rm:
        plan.cleanup = ["rm", "--force", container]

    return plan


def _run_step(args: list[str], dry_run: bool) -> None:
    if dry_run:
        logger.info(f"Would run: {format_command(docker_command(args))}")
        return
    run_docker(args)


def enter(options: EnterOptions, user: HostUser | None = None) -> int:
    """Enter a container, creating, starting or unpausing it first.

    Args:
        options: The request.
        user: Host user for --user. Defaults to the current user.

    Returns:
        Exit status of the command run inside the container.

    Raises:
        DockerError: If the container cannot be brought to running.
    """
    plan = plan_enter(options, user=user)
    logger.debug(f"{plan.container}: {plan.action.value}")

    if plan.build is not None:
        code = build_user_image(plan.build, dry_run=options.dry_run)
        if code != 0:
            raise DockerError(
                f"Failed to build user image {plan.build.tag}", returncode=code
            )

    if plan.pull:
        code = call_docker(["pull", plan.image], dry_run=options.dry_run)
        if code != 0:
            raise DockerError(f"Failed to pull {plan.image}", returncode=code)

    for step in plan.steps:
        _run_step(step, options.dry_run)

    try:
        return call_docker(plan.exec_args, dry_run=options.dry_run)
    finally:
        if plan.cleanup is not None:
            call_docker(plan.cleanup, dry_run=options.dry_run)


# =============================================================================
# Housekeeping
# =============================================================================


def list_managed() -> list[ContainerSummary]:
    """List containers created by dent."""
    return list_containers(MANAGED_LABEL)


def remove(names: list[str], dry_run: bool = False) -> int:
    """Remove containers, running or not.

    Returns:
        Exit status of `docker rm`.
    """
    return remove_containers(names, dry_run=dry_run)


__all__ = [
    "DEFAULT_SHELL_COMMAND",
    "split_image",
    "sanitize_name",
    "container_name_for",
    "user_image_for",
    "HostUser",
    "UserImage",
    "build_user_image",
    "build_images",
    "EnterAction",
    "EnterOptions",
    "EnterPlan",
    "default_command",
    "plan_enter",
    "enter",
    "list_managed",
    "remove",
]
