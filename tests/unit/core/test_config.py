"""
Unit tests for core.config and core.yaml modules.

Tests:
- Defaults for every section
- Field constraints (ranges, power-of-two scrypt cost)
- YAML loading: missing, empty, invalid, non-mapping files
- Session path resolution through XDG_DATA_HOME
"""

from pathlib import Path

import pytest

from muat.core import (
    ConfigurationError,
    FileEngineConfig,
    MuatConfig,
    XrpcConfig,
    default_session_path,
    load_yaml,
)


# =============================================================================
# Defaults
# =============================================================================


class TestDefaults:
    """An empty configuration is fully usable."""

    def test_empty_dict(self):
        config = MuatConfig.from_dict({})
        assert config.file.poll_interval == 0.5
        assert config.file.channel_size == 100
        assert config.file.default_list_limit == 50
        assert config.file.scrypt_n == 2**14
        assert config.xrpc.timeout == 30.0
        assert config.xrpc.proxy_url is None
        assert config.metrics.enabled is False

    def test_user_agent_mentions_package(self):
        assert XrpcConfig().user_agent.startswith("muat")

    def test_session_path_uses_xdg(self, monkeypatch, tmp_path):
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
        assert default_session_path() == tmp_path / "muat" / "session.json"

    def test_session_path_fallback(self, monkeypatch):
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        path = default_session_path()
        assert path.parts[-3:] == ("share", "muat", "session.json")


# =============================================================================
# Validation
# =============================================================================


class TestValidation:
    """Out-of-range values raise ConfigurationError."""

    @pytest.mark.parametrize(
        "data",
        [
            {"file": {"poll_interval": 0}},
            {"file": {"default_list_limit": 0}},
            {"file": {"scrypt_n": 1000}},
            {"xrpc": {"timeout": -1}},
            {"xrpc": {"max_response_size": 10}},
            {"metrics": {"port": 80}},
        ],
    )
    def test_invalid_values(self, data):
        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            MuatConfig.from_dict(data)

    def test_scrypt_power_of_two_accepted(self):
        assert FileEngineConfig(scrypt_n=2**10).scrypt_n == 1024

    def test_nested_override(self):
        config = MuatConfig.from_dict(
            {"xrpc": {"proxy_url": "socks5://127.0.0.1:9050"}, "session_store": {"path": "/x"}}
        )
        assert config.xrpc.proxy_url == "socks5://127.0.0.1:9050"
        assert config.session_store.path == Path("/x")


# =============================================================================
# YAML
# =============================================================================


class TestLoadYaml:
    """load_yaml file handling."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_yaml(tmp_path / "nope.yaml")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "muat.yaml"
        path.write_text("")
        assert load_yaml(path) == {}

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "muat.yaml"
        path.write_text("file: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_yaml(path)

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "muat.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            load_yaml(path)

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "muat.yaml"
        path.write_text("file:\n  poll_interval: 2\nmetrics:\n  enabled: true\n  port: 9100\n")
        config = MuatConfig.from_yaml(path)
        assert config.file.poll_interval == 2.0
        assert config.metrics.enabled is True
        assert config.metrics.port == 9100
