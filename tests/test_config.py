"""Tests for configuration loading and saving."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from binman.config import (
    DEFAULT_REPOSITORIES,
    ConfigManager,
    YamlConfigLoader,
    get_binaries_dir,
    get_config_dir,
    get_data_dir,
    get_default_config_path,
    resolve_binary_config,
)
from binman.errors import ConfigError
from binman.models import BinaryConfig, GlobalConfig, Network, SystemConfig


class TestConfigPaths:
    """Tests for XDG path helpers."""

    def test_config_dir_follows_xdg(self, tmp_path: Path) -> None:
        """Test the config dir lives under XDG_CONFIG_HOME and is created."""
        config_dir = get_config_dir()

        assert config_dir == tmp_path / "xdg_config" / "binman"
        assert config_dir.is_dir()
        assert get_default_config_path() == config_dir / "config.yaml"

    def test_data_dir_follows_xdg(self, isolated_xdg_dirs: Path) -> None:
        """Test the data dir lives under XDG_DATA_HOME."""
        assert get_data_dir() == isolated_xdg_dirs / "binman"

    def test_home_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test ~/.local/share is used without XDG_DATA_HOME."""
        monkeypatch.delenv("XDG_DATA_HOME")
        monkeypatch.setattr(Path, "home", lambda: tmp_path / "home")

        assert get_data_dir() == tmp_path / "home" / ".local" / "share" / "binman"

    def test_binaries_dir(self, isolated_xdg_dirs: Path, tmp_path: Path) -> None:
        """Test the configured binaries dir wins over the data dir."""
        assert get_binaries_dir(GlobalConfig()) == isolated_xdg_dirs / "binman" / "binaries"
        configured = GlobalConfig(binaries_dir=tmp_path / "bins")
        assert get_binaries_dir(configured) == tmp_path / "bins"


class TestYamlConfigLoader:
    """Tests for YamlConfigLoader."""

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test reading a missing file gives None."""
        assert YamlConfigLoader().read(tmp_path / "missing.yaml") is None

    def test_empty_file(self, tmp_path: Path) -> None:
        """Test an empty file loads as an empty mapping."""
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert YamlConfigLoader().read(path) == {}

    def test_write_creates_parents(self, tmp_path: Path) -> None:
        """Test writing creates missing directories."""
        path = tmp_path / "nested" / "config.yaml"
        YamlConfigLoader().write(path, {"global": {"network": "nextnet"}})

        assert yaml.safe_load(path.read_text()) == {"global": {"network": "nextnet"}}


class TestConfigManager:
    """Tests for ConfigManager."""

    def test_defaults_without_file(self, tmp_path: Path) -> None:
        """Test a missing file yields the default configuration."""
        config = ConfigManager(tmp_path / "config.yaml").load()

        assert config.global_config.network is Network.MAINNET
        assert config.global_config.validate_checksums is True
        assert config.global_config.download_max_attempts == 3
        assert config.binaries == {}

    def test_parse_file(self, tmp_path: Path) -> None:
        """Test global settings, full entries and the repository shorthand."""
        path = tmp_path / "config.yaml"
        path.write_text(
            """
global:
  network: nextnet
  download_max_attempts: 5
binaries:
  xmrig: xmrig/xmrig
  minotari_node:
    repository: tari-project/tari
    mirror_url: https://cdn.example.com/tari
    validate_checksum: false
"""
        )

        config = ConfigManager(path).load()

        assert config.global_config.network is Network.NEXTNET
        assert config.global_config.download_max_attempts == 5
        assert config.binaries["xmrig"].repository == "xmrig/xmrig"
        node = config.binaries["minotari_node"]
        assert node.name == "minotari_node"
        assert node.mirror_url == "https://cdn.example.com/tari"
        assert node.validate_checksum is False

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Test malformed YAML is a ConfigError."""
        path = tmp_path / "config.yaml"
        path.write_text("global: [unclosed")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            ConfigManager(path).load()

    def test_non_mapping_root(self, tmp_path: Path) -> None:
        """Test a list at the root is a ConfigError."""
        path = tmp_path / "config.yaml"
        path.write_text("- one\n- two\n")

        with pytest.raises(ConfigError, match="must be a mapping"):
            ConfigManager(path).load()

    def test_invalid_binary_entry(self, tmp_path: Path) -> None:
        """Test a binary that is neither a string nor a mapping is a ConfigError."""
        path = tmp_path / "config.yaml"
        path.write_text("binaries:\n  xmrig: 42\n")

        with pytest.raises(ConfigError, match="repository string or a mapping"):
            ConfigManager(path).load()

    def test_invalid_values(self, tmp_path: Path) -> None:
        """Test validation failures are ConfigErrors."""
        path = tmp_path / "config.yaml"
        path.write_text("global:\n  network: moonnet\n")

        with pytest.raises(ConfigError, match="Invalid configuration"):
            ConfigManager(path).load()

    def test_save_and_reload(self, tmp_path: Path) -> None:
        """Test only non-default values are written and read back."""
        path = tmp_path / "config.yaml"
        manager = ConfigManager(path)
        config = manager.load()
        config.global_config.network = Network.ESMERALDA

        manager.save(config)

        written = yaml.safe_load(path.read_text())
        assert written["global"] == {"network": "esmeralda"}
        assert ConfigManager(path).load().global_config.network is Network.ESMERALDA

    def test_init_config(self, tmp_path: Path) -> None:
        """Test init writes the known repositories and respects force."""
        path = tmp_path / "config.yaml"
        manager = ConfigManager(path)

        assert manager.init_config() is True
        assert manager.init_config() is False
        assert manager.init_config(force=True) is True

        config = ConfigManager(path).load()
        assert {name: b.repository for name, b in config.binaries.items()} == DEFAULT_REPOSITORIES

    def test_get_binary_config(self, tmp_path: Path) -> None:
        """Test unconfigured components fall back to their default repository."""
        manager = ConfigManager(tmp_path / "config.yaml")

        assert manager.get_binary_config("xmrig").repository == "xmrig/xmrig"
        assert manager.get_binary_config("tor").repository is None
        assert manager.config.global_config.network is Network.MAINNET

    def test_default_path(self) -> None:
        """Test the manager uses the XDG config path by default."""
        assert ConfigManager().config_path == get_default_config_path()


class TestResolveBinaryConfig:
    """Tests for resolve_binary_config."""

    def test_unlisted_binary_uses_default_repository(self) -> None:
        """Test a binary missing from the file gets its known repository."""
        resolved = resolve_binary_config(SystemConfig(), "minotari_node")

        assert resolved == BinaryConfig(name="minotari_node", repository="tari-project/tari")

    def test_listed_binary_without_repository(self) -> None:
        """Test other settings are kept while the repository is filled in."""
        config = SystemConfig(
            binaries={"xmrig": BinaryConfig(name="xmrig", subfolder="xmrig-6.22.0")}
        )

        resolved = resolve_binary_config(config, "xmrig")

        assert resolved.repository == "xmrig/xmrig"
        assert resolved.subfolder == "xmrig-6.22.0"
        assert config.binaries["xmrig"].repository is None

    def test_configured_repository_wins(self) -> None:
        """Test an explicit repository overrides the default."""
        config = SystemConfig(
            binaries={"xmrig": BinaryConfig(name="xmrig", repository="fork/xmrig")}
        )

        assert resolve_binary_config(config, "xmrig").repository == "fork/xmrig"
