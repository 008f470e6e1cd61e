"""docker-proxy: forward a user-owned socket to the docker daemon socket.

Example:
    >>> from dent.proxy import ProxyConfig, start_proxy, docker_host_url
    >>> config = ProxyConfig.from_environment()
    >>> status = start_proxy(config)
    >>> print(docker_host_url(config.socket))
"""

from .lib import (
    ProxyConfig,
    ProxyError,
    ProxyStatus,
    build_socat_command,
    default_socket_path,
    docker_host_url,
    is_pid_alive,
    proxy_status,
    read_pidfile,
    start_proxy,
    stop_proxy,
    write_pidfile,
)

__all__ = [
    "ProxyConfig",
    "ProxyError",
    "ProxyStatus",
    "build_socat_command",
    "default_socket_path",
    "docker_host_url",
    "is_pid_alive",
    "proxy_status",
    "read_pidfile",
    "write_pidfile",
    "start_proxy",
    "stop_proxy",
]
