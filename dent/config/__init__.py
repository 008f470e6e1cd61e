"""Centralized configuration management for dent.

Provides unified access to all configuration via the `get_environment()` function.

Example:
    >>> from dent.config import EnvVar, get_environment
    >>>
    >>> prefix = get_environment(EnvVar.DENT_PREFIX)  # Returns str: "dent"
    >>> timeout = get_environment(EnvVar.DOCKER_TIMEOUT)  # Returns int: 60
    >>>
    >>> # List available variables by category
    >>> for var in list_environment_variables("proxy"):
    ...     info = get_environment_info(var)
    ...     print(f"{info.name}: {info.description}")

Environment Variable Categories:
    docker: Docker CLI binary, daemon socket, command timeout
    dent: Naming prefix, default shell, mount path, base images
    proxy: socat binary, proxy socket and pidfile, sudo usage
    logging: Default log level
    test: Images exercised by the live test harness
"""

from .lib import (
    # Core types
    EnvConfig,
    EnvVar,
    # Main interface
    default_socket_path,
    get_base_images,
    get_docker_timeout,
    get_environment,
    get_environment_info,
    get_proxy_pidfile,
    get_proxy_socket,
    get_test_images,
    # Introspection
    list_environment_variables,
)

__all__ = [
    # Core types
    "EnvConfig",
    "EnvVar",
    # Main interface
    "get_environment",
    "get_environment_info",
    # Convenience functions
    "get_base_images",
    "get_test_images",
    "get_proxy_socket",
    "default_socket_path",
    "get_proxy_pidfile",
    "get_docker_timeout",
    # Introspection
    "list_environment_variables",
]
