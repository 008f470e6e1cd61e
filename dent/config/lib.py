"""Centralized environment configuration management for dent.

Provides a unified interface for all environment variables with:
- Single `get_environment()` function for all configuration
- Type-safe enum with metadata (default, type, description)
- Consistent resolution: override > environment > default

Example:
    >>> from dent.config import EnvVar, get_environment
    >>>
    >>> # Get values with automatic type conversion
    >>> timeout = get_environment(EnvVar.DOCKER_TIMEOUT)  # Returns int
    >>> shell = get_environment(EnvVar.DENT_SHELL)  # Returns str | None
    >>>
    >>> # Override at runtime
    >>> prefix = get_environment(EnvVar.DENT_PREFIX, override="box")
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, overload

# =============================================================================
# Environment Variable Configuration
# =============================================================================


@dataclass(frozen=True)
class EnvConfig:
    """Metadata for an environment variable.

    Attributes:
        name: Environment variable name (e.g., "DENT_PREFIX").
        default: Default value if not set in environment.
        var_type: Python type for value conversion (str, int, bool, Path).
        description: Human-readable description.
        category: Grouping category for documentation.
    """

    name: str
    default: Any
    var_type: type
    description: str = ""
    category: str = "general"


class EnvVar(Enum):
    """All environment variables used by dent.

    Each member contains an EnvConfig with name, default, type, and description.
    Use with `get_environment()` for type-safe access.

    Categories:
        - docker: Docker CLI and daemon socket
        - dent: Container entry behaviour
        - proxy: socat socket proxy
        - logging: Log output
        - test: Live test harness
    """

    # -------------------------------------------------------------------------
    # Docker CLI / Daemon
    # -------------------------------------------------------------------------
    DOCKER_BIN = EnvConfig(
        name="DOCKER_BIN",
        default="docker",
        var_type=str,
        description="Docker CLI executable",
        category="docker",
    )
    DOCKER_SOCKET = EnvConfig(
        name="DOCKER_SOCKET",
        default=Path("/var/run/docker.sock"),
        var_type=Path,
        description="Root-owned Docker daemon socket",
        category="docker",
    )
    DOCKER_HOST = EnvConfig(
        name="DOCKER_HOST",
        default=None,
        var_type=str,
        description="Daemon address used by the docker CLI (e.g. unix:///run/user/1000/docker.sock)",
        category="docker",
    )
    DOCKER_TIMEOUT = EnvConfig(
        name="DOCKER_TIMEOUT",
        default=60,
        var_type=int,
        description="Timeout in seconds for captured docker commands",
        category="docker",
    )

    # -------------------------------------------------------------------------
    # dent
    # -------------------------------------------------------------------------
    DENT_PREFIX = EnvConfig(
        name="DENT_PREFIX",
        default="dent",
        var_type=str,
        description="Prefix for derived container names and user images",
        category="dent",
    )
    DENT_SHELL = EnvConfig(
        name="DENT_SHELL",
        default=None,  # bash with sh fallback
        var_type=str,
        description="Command run when entering without an explicit command",
        category="dent",
    )
    DENT_WORKDIR = EnvConfig(
        name="DENT_WORKDIR",
        default="/work",
        var_type=str,
        description="Container path for the --mount bind mount",
        category="dent",
    )
    DENT_BASE_IMAGES = EnvConfig(
        name="DENT_BASE_IMAGES",
        default="debian:stable-slim ubuntu:latest alpine:latest",
        var_type=str,
        description="Base images iterated by `dent build` (space or comma separated)",
        category="dent",
    )

    # -------------------------------------------------------------------------
    # socat Proxy
    # -------------------------------------------------------------------------
    DENT_PROXY_SOCKET = EnvConfig(
        name="DENT_PROXY_SOCKET",
        default=None,  # Computed from XDG_RUNTIME_DIR or /tmp
        var_type=Path,
        description="User-owned socket the proxy listens on",
        category="proxy",
    )
    DENT_PROXY_PIDFILE = EnvConfig(
        name="DENT_PROXY_PIDFILE",
        default=None,  # <socket>.pid
        var_type=Path,
        description="Pidfile recording the proxy process",
        category="proxy",
    )
    DENT_PROXY_SUDO = EnvConfig(
        name="DENT_PROXY_SUDO",
        default=True,
        var_type=bool,
        description="Launch socat through `sudo -n` when not running as root",
        category="proxy",
    )
    SOCAT_BIN = EnvConfig(
        name="SOCAT_BIN",
        default="socat",
        var_type=str,
        description="socat executable",
        category="proxy",
    )

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    DENT_LOG_LEVEL = EnvConfig(
        name="DENT_LOG_LEVEL",
        default="INFO",
        var_type=str,
        description="Default log level (DEBUG, INFO, WARNING, ERROR)",
        category="logging",
    )

    # -------------------------------------------------------------------------
    # Test Harness
    # -------------------------------------------------------------------------
    DENT_TEST_IMAGES = EnvConfig(
        name="DENT_TEST_IMAGES",
        default="alpine:latest debian:stable-slim",
        var_type=str,
        description="Images exercised by the live docker tests",
        category="test",
    )


# =============================================================================
# Type Conversion Helpers
# =============================================================================


def _parse_bool(value: str) -> bool | None:
    """Parse string to boolean.

    Recognizes: true/false, 1/0, yes/no (case-insensitive).
    Returns None for unrecognized values.
    """
    normalized = value.lower().strip()
    if normalized in ("true", "1", "yes"):
        return True
    if normalized in ("false", "0", "no"):
        return False
    return None


def _convert_value(value: str | None, var_type: type, default: Any) -> Any:
    """Convert string value to target type.

    Args:
        value: Raw string value from environment (or None).
        var_type: Target Python type.
        default: Default value if conversion fails or value is None.

    Returns:
        Converted value or default.
    """
    if value is None:
        return default

    if var_type is str:
        return value

    if var_type is int:
        try:
            return int(value)
        except ValueError:
            return default

    if var_type is bool:
        result = _parse_bool(value)
        return result if result is not None else default

    if var_type is Path:
        return Path(value).expanduser()

    # Unknown type, return as-is
    return value


def _split_list(value: str | None) -> list[str]:
    """Split a space or comma separated value, dropping empties."""
    if not value:
        return []
    return [item for item in re.split(r"[\s,]+", value) if item]


# =============================================================================
# Main Interface
# =============================================================================


@overload
def get_environment(env_var: EnvVar, override: int) -> int: ...
@overload
def get_environment(env_var: EnvVar, override: str) -> str: ...
@overload
def get_environment(env_var: EnvVar, override: bool) -> bool: ...
@overload
def get_environment(env_var: EnvVar, override: Path) -> Path: ...
@overload
def get_environment(env_var: EnvVar, override: None = None) -> Any: ...


def get_environment(env_var: EnvVar, override: Any = None) -> Any:
    """Get environment variable value with type conversion.

    Resolution priority:
        1. Explicit override parameter (highest)
        2. Environment variable value
        3. Default from EnvConfig (lowest)

    Args:
        env_var: Environment variable enum member.
        override: Optional override value (bypasses env lookup).

    Returns:
        Value converted to the appropriate type (str, int, bool, or Path).

    Example:
        >>> get_environment(EnvVar.DENT_PREFIX)
        'dent'
        >>> get_environment(EnvVar.DOCKER_TIMEOUT, override=5)
        5
    """
    config: EnvConfig = env_var.value

    # Override takes highest priority
    if override is not None:
        return override

    raw_value = os.environ.get(config.name)
    # Empty strings count as unset
    if raw_value is not None and not raw_value.strip():
        raw_value = None

    return _convert_value(raw_value, config.var_type, config.default)


def get_environment_info(env_var: EnvVar) -> EnvConfig:
    """Get metadata for an environment variable.

    Args:
        env_var: Environment variable enum member.

    Returns:
        EnvConfig with name, default, type, and description.
    """
    return env_var.value


# =============================================================================
# Convenience Functions
# =============================================================================


def get_base_images(override: list[str] | str | None = None) -> list[str]:
    """Get the base images iterated by `dent build`.

    Resolution: override > DENT_BASE_IMAGES > default list.
    """
    if isinstance(override, list):
        return list(override)
    return _split_list(get_environment(EnvVar.DENT_BASE_IMAGES, override=override))


def get_test_images(override: list[str] | str | None = None) -> list[str]:
    """Get the images exercised by the live docker tests."""
    if isinstance(override, list):
        return list(override)
    return _split_list(get_environment(EnvVar.DENT_TEST_IMAGES, override=override))


def default_socket_path() -> Path:
    """$XDG_RUNTIME_DIR/docker.sock if that directory exists, else /tmp/docker-{uid}.sock."""
    runtime_dir = os.environ.get("XDG_RUNTIME_DIR")
    if runtime_dir and Path(runtime_dir).is_dir():
        return Path(runtime_dir) / "docker.sock"

    return Path("/tmp") / f"docker-{os.getuid()}.sock"


def get_proxy_socket(override: Path | str | None = None) -> Path:
    """Get the user-owned proxy socket path.

    Resolution: override > DENT_PROXY_SOCKET > default_socket_path()
    """
    if override is not None:
        return Path(override)

    env_path = get_environment(EnvVar.DENT_PROXY_SOCKET)
    if env_path:
        return env_path

    return default_socket_path()


def get_proxy_pidfile(
    socket: Path | None = None,
    override: Path | str | None = None,
) -> Path:
    """Get the proxy pidfile path.

    Resolution: override > DENT_PROXY_PIDFILE > {socket}.pid
    """
    if override is not None:
        return Path(override)

    env_path = get_environment(EnvVar.DENT_PROXY_PIDFILE)
    if env_path:
        return env_path

    socket = socket or get_proxy_socket()
    return socket.with_name(socket.name + ".pid")


def get_docker_timeout(override: int | None = None) -> int:
    """Get the timeout for captured docker commands in seconds."""
    return get_environment(EnvVar.DOCKER_TIMEOUT, override=override)


def list_environment_variables(category: str | None = None) -> list[EnvVar]:
    """List all environment variables, optionally filtered by category.

    Args:
        category: Filter by category (docker, dent, proxy, logging, test).
                 None returns all variables.

    Returns:
        List of EnvVar enum members.
    """
    if category is None:
        return list(EnvVar)

    return [var for var in EnvVar if var.value.category == category]


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
    "default_socket_path",
    "get_proxy_socket",
    "get_proxy_pidfile",
    "get_docker_timeout",
    # Introspection
    "list_environment_variables",
]
