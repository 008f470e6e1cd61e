"""Tests for configuration management."""

from pathlib import Path

import pytest

from .lib import (
    EnvConfig,
    EnvVar,
    default_socket_path,
    get_base_images,
    get_docker_timeout,
    get_environment,
    get_environment_info,
    get_proxy_pidfile,
    get_proxy_socket,
    get_test_images,
    list_environment_variables,
)

# =============================================================================
# Tests for get_environment (main interface)
# =============================================================================


class TestGetEnvironment:
    """Tests for the unified get_environment interface."""

    @pytest.mark.unit
    def test_returns_default_when_not_set(self, monkeypatch):
        """Returns default value when env var is not set."""
        monkeypatch.delenv("DOCKER_TIMEOUT", raising=False)
        assert get_environment(EnvVar.DOCKER_TIMEOUT) == 60

    @pytest.mark.unit
    def test_override_takes_priority(self, monkeypatch):
        """Override parameter takes highest priority."""
        monkeypatch.setenv("DENT_PREFIX", "box")
        assert get_environment(EnvVar.DENT_PREFIX, override="tmp") == "tmp"

    @pytest.mark.unit
    def test_env_var_overrides_default(self, monkeypatch):
        """Environment variable overrides default value."""
        monkeypatch.setenv("DENT_PREFIX", "box")
        assert get_environment(EnvVar.DENT_PREFIX) == "box"

    @pytest.mark.unit
    def test_int_type_conversion(self, monkeypatch):
        """Integer type conversion from string."""
        monkeypatch.setenv("DOCKER_TIMEOUT", "15")
        result = get_environment(EnvVar.DOCKER_TIMEOUT)
        assert result == 15
        assert isinstance(result, int)

    @pytest.mark.unit
    def test_invalid_int_returns_default(self, monkeypatch):
        """Invalid integer value returns default."""
        monkeypatch.setenv("DOCKER_TIMEOUT", "soon")
        assert get_environment(EnvVar.DOCKER_TIMEOUT) == 60

    @pytest.mark.unit
    def test_bool_type_conversion(self, monkeypatch):
        """Boolean type conversion for true and false values."""
        for value in ("true", "1", "yes", "TRUE"):
            monkeypatch.setenv("DENT_PROXY_SUDO", value)
            assert get_environment(EnvVar.DENT_PROXY_SUDO) is True
        for value in ("false", "0", "no", "No"):
            monkeypatch.setenv("DENT_PROXY_SUDO", value)
            assert get_environment(EnvVar.DENT_PROXY_SUDO) is False

    @pytest.mark.unit
    def test_unrecognized_bool_returns_default(self, monkeypatch):
        monkeypatch.setenv("DENT_PROXY_SUDO", "maybe")
        assert get_environment(EnvVar.DENT_PROXY_SUDO) is True

    @pytest.mark.unit
    def test_path_type_conversion(self, monkeypatch):
        """Path values are returned as Path objects."""
        monkeypatch.setenv("DOCKER_SOCKET", "/run/docker.sock")
        result = get_environment(EnvVar.DOCKER_SOCKET)
        assert result == Path("/run/docker.sock")

    @pytest.mark.unit
    def test_empty_value_treated_as_unset(self, monkeypatch):
        """Blank values fall back to the default."""
        monkeypatch.setenv("DENT_SHELL", "  ")
        assert get_environment(EnvVar.DENT_SHELL) is None


class TestGetEnvironmentInfo:
    """Tests for environment variable metadata."""

    @pytest.mark.unit
    def test_returns_env_config(self):
        """Returns EnvConfig dataclass."""
        info = get_environment_info(EnvVar.DOCKER_TIMEOUT)
        assert isinstance(info, EnvConfig)
        assert info.name == "DOCKER_TIMEOUT"
        assert info.default == 60
        assert info.var_type is int
        assert info.category == "docker"

    @pytest.mark.unit
    def test_description_present(self):
        """Description field is populated."""
        info = get_environment_info(EnvVar.SOCAT_BIN)
        assert "socat" in info.description


class TestListEnvironmentVariables:
    """Tests for listing environment variables."""

    @pytest.mark.unit
    def test_returns_all_variables(self):
        """Returns all EnvVar members when no category."""
        result = list_environment_variables()
        assert len(result) == len(EnvVar)

    @pytest.mark.unit
    def test_filter_by_category(self):
        """Filters by category correctly."""
        proxy_vars = list_environment_variables("proxy")
        assert EnvVar.SOCAT_BIN in proxy_vars
        assert EnvVar.DENT_PROXY_SOCKET in proxy_vars
        assert EnvVar.DOCKER_BIN not in proxy_vars


# =============================================================================
# Tests for list-valued settings
# =============================================================================


class TestImageLists:
    """Tests for base and test image lists."""

    @pytest.mark.unit
    def test_default_base_images(self, monkeypatch):
        monkeypatch.delenv("DENT_BASE_IMAGES", raising=False)
        assert get_base_images() == [
            "debian:stable-slim",
            "ubuntu:latest",
            "alpine:latest",
        ]

    @pytest.mark.unit
    def test_comma_and_space_separated(self, monkeypatch):
        monkeypatch.setenv("DENT_BASE_IMAGES", "fedora:40, alpine:3.20  busybox")
        assert get_base_images() == ["fedora:40", "alpine:3.20", "busybox"]

    @pytest.mark.unit
    def test_list_override(self, monkeypatch):
        monkeypatch.setenv("DENT_TEST_IMAGES", "alpine")
        assert get_test_images(["debian"]) == ["debian"]
        assert get_test_images() == ["alpine"]


# =============================================================================
# Tests for proxy paths
# =============================================================================


class TestProxyPaths:
    """Tests for proxy socket and pidfile resolution."""

    @pytest.mark.unit
    def test_socket_override(self, tmp_path):
        assert get_proxy_socket(tmp_path / "d.sock") == tmp_path / "d.sock"

    @pytest.mark.unit
    def test_socket_env_var(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DENT_PROXY_SOCKET", str(tmp_path / "env.sock"))
        assert get_proxy_socket() == tmp_path / "env.sock"

    @pytest.mark.unit
    def test_socket_in_runtime_dir(self, tmp_path, monkeypatch):
        monkeypatch.delenv("DENT_PROXY_SOCKET", raising=False)
        monkeypatch.setenv("XDG_RUNTIME_DIR", str(tmp_path))
        assert get_proxy_socket() == tmp_path / "docker.sock"

    @pytest.mark.unit
    def test_socket_falls_back_to_tmp(self, tmp_path, monkeypatch):
        monkeypatch.delenv("DENT_PROXY_SOCKET", raising=False)
        monkeypatch.setenv("XDG_RUNTIME_DIR", str(tmp_path / "missing"))
        monkeypatch.setattr("dent.config.lib.os.getuid", lambda: 4242)
        assert get_proxy_socket() == Path("/tmp/docker-4242.sock")

    @pytest.mark.unit
    def test_pidfile_next_to_socket(self, tmp_path, monkeypatch):
        monkeypatch.delenv("DENT_PROXY_PIDFILE", raising=False)
        pidfile = get_proxy_pidfile(socket=tmp_path / "docker.sock")
        assert pidfile == tmp_path / "docker.sock.pid"

    @pytest.mark.unit
    def test_pidfile_env_var(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DENT_PROXY_PIDFILE", str(tmp_path / "p.pid"))
        assert get_proxy_pidfile(socket=tmp_path / "x.sock") == tmp_path / "p.pid"


class TestDockerTimeout:
    """Tests for the docker command timeout."""

    @pytest.mark.unit
    def test_override(self, monkeypatch):
        monkeypatch.setenv("DOCKER_TIMEOUT", "5")
        assert get_docker_timeout() == 5
        assert get_docker_timeout(override=9) == 9


@pytest.mark.unit
def test_default_socket_path_ignores_override_env(tmp_path, monkeypatch):
    monkeypatch.setenv("DENT_PROXY_SOCKET", str(tmp_path / "env.sock"))
    monkeypatch.setenv("XDG_RUNTIME_DIR", str(tmp_path))
    assert default_socket_path() == tmp_path / "docker.sock"
