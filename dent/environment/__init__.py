"""Host diagnostics for dent.

Reports whether the docker CLI and daemon are usable, whether the daemon
socket is accessible, and whether the socat proxy can be started.

Example:
    >>> from dent.environment import check_environment
    >>> report = check_environment()
    >>> if not report.docker_usable:
    ...     report.print_report()
"""

from .lib import (
    DockerInfo,
    SocketInfo,
    ToolInfo,
    EnvironmentReport,
    parse_docker_version,
    detect_docker,
    detect_socket,
    detect_tool,
    socket_path_from_host,
    check_environment,
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
