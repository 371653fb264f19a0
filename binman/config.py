"""Configuration file handling for binman.

The configuration is a YAML document stored under the XDG config home::

    global:
      network: nextnet
      download_max_attempts: 5
    binaries:
      xmrig: xmrig/xmrig
      minotari_node:
        repository: tari-project/tari
        mirror_url: https://cdn.example.com/tari
        validate_checksum: false

A binary given as a plain string is shorthand for its release repository.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import structlog
import yaml

from .errors import ConfigError
from .models import BinaryConfig, GlobalConfig, SystemConfig

logger = structlog.get_logger(__name__)

APP_DIR_NAME = "binman"
CONFIG_FILE_NAME = "config.yaml"

# Release repositories of the components the application ships with.
DEFAULT_REPOSITORIES = {
    "minotari_node": "tari-project/tari",
    "minotari_console_wallet": "tari-project/tari",
    "minotari_merge_mining_proxy": "tari-project/tari",
    "xmrig": "xmrig/xmrig",
}


def _xdg_base(variable: str, fallback: Path) -> Path:
    value = os.environ.get(variable)
    return Path(value) if value else fallback


def get_config_dir() -> Path:
    """Directory holding the configuration file, created on first use."""
    config_dir = _xdg_base("XDG_CONFIG_HOME", Path.home() / ".config") / APP_DIR_NAME
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_data_dir() -> Path:
    """Directory for application data (not created)."""
    return _xdg_base("XDG_DATA_HOME", Path.home() / ".local" / "share") / APP_DIR_NAME


def get_default_config_path() -> Path:
    return get_config_dir() / CONFIG_FILE_NAME


def get_binaries_dir(config: GlobalConfig) -> Path:
    """Root folder for installed binaries.

    Args:
        config: Global configuration.

    Returns:
        The configured folder, or ``<data dir>/binaries``.
    """
    if config.binaries_dir is not None:
        return config.binaries_dir.expanduser()
    return get_data_dir() / "binaries"


def resolve_binary_config(config: SystemConfig, binary_name: str) -> BinaryConfig:
    """Settings for one binary with its known release repository filled in.

    Args:
        config: Loaded system configuration.
        binary_name: Canonical binary name.

    Returns:
        The configured entry, or a default entry when the binary is not
        listed. A missing repository falls back to ``DEFAULT_REPOSITORIES``.
    """
    default_repository = DEFAULT_REPOSITORIES.get(binary_name)
    entry = config.binaries.get(binary_name)
    if entry is None:
        return BinaryConfig(name=binary_name, repository=default_repository)
    if entry.repository is None and default_repository is not None:
        return entry.model_copy(update={"repository": default_repository})
    return entry


class YamlConfigLoader:
    """Reads and writes the raw YAML mapping behind a SystemConfig."""

    def read(self, path: Path) -> dict[str, Any] | None:
        """Read a YAML mapping.

        Args:
            path: File to read.

        Returns:
            The mapping (empty for an empty file), or None if the file is absent.

        Raises:
            ConfigError: If the file cannot be read, is not YAML, or its root
                is not a mapping.
        """
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise ConfigError(f"Cannot read {path}: {e}") from e

        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration root must be a mapping: {path}")
        return data

    def write(self, path: Path, data: dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            yaml.safe_dump(data, default_flow_style=False, sort_keys=False), encoding="utf-8"
        )
        logger.info("config_saved", path=str(path))


class ConfigManager:
    """Loads, caches and persists the binman configuration file."""

    def __init__(self, config_path: Path | None = None) -> None:
        """Initialize the configuration manager.

        Args:
            config_path: Configuration file; the XDG location when omitted.
        """
        self.config_path = config_path or get_default_config_path()
        self._loader = YamlConfigLoader()
        self._config: SystemConfig | None = None

    @property
    def config(self) -> SystemConfig:
        """The configuration, read from disk on first access."""
        if self._config is None:
            return self.load()
        return self._config

    def load(self) -> SystemConfig:
        """Read the configuration file.

        A missing file yields the defaults.

        Raises:
            ConfigError: If the file is malformed or fails validation.
        """
        data = self._loader.read(self.config_path)
        if data is None:
            logger.info("using_default_config", path=str(self.config_path))
            self._config = SystemConfig()
            return self._config

        try:
            self._config = self._parse_config(data)
        except ValueError as e:
            raise ConfigError(f"Invalid configuration in {self.config_path}: {e}") from e
        return self._config

    def save(self, config: SystemConfig | None = None) -> None:
        """Write a configuration, or the cached one, to the file.

        Only values that differ from the defaults are written.
        """
        if config is not None:
            self._config = config
        self._loader.write(self.config_path, self._serialize_config(self.config))

    def get_binary_config(self, binary_name: str) -> BinaryConfig:
        return resolve_binary_config(self.config, binary_name)

    def init_config(self, force: bool = False) -> bool:
        """Write a configuration listing the known release repositories.

        Args:
            force: Overwrite an existing file.

        Returns:
            True if the file was written, False if one already existed.
        """
        if self.config_path.exists() and not force:
            logger.info("config_exists", path=str(self.config_path))
            return False

        self.save(
            SystemConfig(
                binaries={
                    name: BinaryConfig(name=name, repository=repository)
                    for name, repository in DEFAULT_REPOSITORIES.items()
                }
            )
        )
        logger.info("config_initialized", path=str(self.config_path))
        return True

    @staticmethod
    def _parse_config(data: dict[str, Any]) -> SystemConfig:
        raw_binaries = data.get("binaries") or {}
        if not isinstance(raw_binaries, dict):
            raise ValueError("'binaries' must be a mapping")

        binaries: dict[str, dict[str, Any]] = {}
        for name, entry in raw_binaries.items():
            if isinstance(entry, str):
                binaries[name] = {"name": name, "repository": entry}
            elif isinstance(entry, dict):
                binaries[name] = {**entry, "name": name}
            else:
                raise ValueError(f"binary '{name}' must be a repository string or a mapping")

        return SystemConfig.model_validate(
            {"global_config": data.get("global") or {}, "binaries": binaries}
        )

    @staticmethod
    def _serialize_config(config: SystemConfig) -> dict[str, Any]:
        return {
            "global": config.global_config.model_dump(mode="json", exclude_defaults=True),
            "binaries": {
                name: binary.model_dump(mode="json", exclude={"name"}, exclude_defaults=True)
                for name, binary in config.binaries.items()
            },
        }
