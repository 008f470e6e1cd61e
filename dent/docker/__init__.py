"""Docker CLI helpers for dent.

This module wraps the docker command-line tool: captured and interactive
invocation, container and image queries, and command builders.
"""

from .exec import (
    KEEPALIVE_COMMAND,
    build_exec_command,
    build_image_command,
    build_run_command,
)
from .lib import (
    BASE_LABEL,
    IMAGE_LABEL,
    MANAGED_LABEL,
    ContainerState,
    ContainerSummary,
    DockerError,
    call_docker,
    docker_command,
    format_command,
    image_exists,
    inspect_container,
    is_daemon_available,
    list_containers,
    remove_containers,
    run_docker,
)

__all__ = [
    # Labels
    "MANAGED_LABEL",
    "IMAGE_LABEL",
    "BASE_LABEL",
    # Models
    "ContainerState",
    "ContainerSummary",
    "DockerError",
    # Invocation
    "docker_command",
    "format_command",
    "run_docker",
    "call_docker",
    # Queries
    "inspect_container",
    "image_exists",
    "list_containers",
    "remove_containers",
    "is_daemon_available",
    # Builders
    "KEEPALIVE_COMMAND",
    "build_run_command",
    "build_exec_command",
    "build_image_command",
]
