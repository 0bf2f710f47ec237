"""User configuration."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from aipm.exceptions import AipmError
from aipm.filesystem import RealFileSystem
from aipm.platforms import CANONICAL, FORMATS
from aipm.protocols import FileSystem

logger = logging.getLogger(__name__)

# Default configuration location
CONFIG_DIR = Path.home() / ".aipm"
CONFIG_DIR_ENV = "AIPM_CONFIG_DIR"
REGISTRY_ENV = "AIPM_REGISTRY"

# CLI key -> model field
CONFIG_KEYS = {
    "registry": "registry",
    "default-format": "default_format",
    "client": "client",
}


class UserConfig(BaseModel):
    """Settings stored in ``config.json``."""

    model_config = ConfigDict(populate_by_name=True)

    registry: str | None = None
    default_format: str | None = Field(default=None, alias="defaultFormat")
    client: str = "cli"


def default_config_dir() -> Path:
    """Get the configuration directory, honouring ``AIPM_CONFIG_DIR``."""
    override = os.environ.get(CONFIG_DIR_ENV)
    return Path(override).expanduser() if override else CONFIG_DIR


class ConfigManager:
    """Loads and saves the user configuration."""

    def __init__(self, config_dir: Path | None = None, filesystem: FileSystem | None = None) -> None:
        """Initialize the config manager.

        Args:
            config_dir: Directory for the config file. Defaults to ~/.aipm.
            filesystem: Filesystem abstraction. Defaults to the real filesystem.

        Note:
            Prefer using factory methods `create()` or `create_default()` for construction.
        """
        self.config_dir = config_dir or default_config_dir()
        self.config_file = self.config_dir / "config.json"
        self.fs = filesystem or RealFileSystem()

    @classmethod
    def create(cls, config_dir: Path) -> ConfigManager:
        """Create a config manager with a custom directory."""
        return cls(config_dir=config_dir)

    @classmethod
    def create_default(cls) -> ConfigManager:
        """Create a config manager with the default directory."""
        return cls()

    def load(self) -> UserConfig:
        """Load the configuration; a missing file yields defaults.

        Raises:
            AipmError: If the file exists but is invalid.
        """
        if not self.fs.exists(self.config_file):
            return UserConfig()
        try:
            return UserConfig.model_validate(json.loads(self.fs.read_text(self.config_file)))
        except (ValueError, ValidationError) as e:
            raise AipmError(
                f"Invalid configuration file {self.config_file}: {e}",
                hints=[f"Fix or delete {self.config_file}"],
            ) from e

    def save(self, config: UserConfig) -> None:
        """Save the configuration."""
        data = config.model_dump(by_alias=True, exclude_none=True)
        self.fs.write_text_atomic(self.config_file, json.dumps(data, indent=2) + "\n")

    def set_value(self, key: str, value: str) -> UserConfig:
        """Set one configuration key and save.

        Args:
            key: One of ``registry``, ``default-format``, ``client``.
            value: New value.

        Returns:
            The updated configuration.

        Raises:
            ValueError: If the key is unknown or the value is invalid.
        """
        if key not in CONFIG_KEYS:
            raise ValueError(f"Unknown configuration key: {key}. Supported: {list(CONFIG_KEYS)}")
        if key == "default-format" and value not in (*FORMATS, CANONICAL):
            raise ValueError(f"Unknown format: {value}. Supported: {[*FORMATS, CANONICAL]}")
        if key == "registry":
            value = str(Path(value).expanduser().resolve())

        config = self.load()
        setattr(config, CONFIG_KEYS[key], value)
        self.save(config)
        logger.debug("Set %s in %s", key, self.config_file)
        return config

    def registry_path(self, config: UserConfig) -> Path:
        """Get the registry mirror directory.

        ``AIPM_REGISTRY`` wins over the config file; the fallback is
        ``<config dir>/registry``.
        """
        override = os.environ.get(REGISTRY_ENV)
        if override:
            return Path(override).expanduser()
        if config.registry:
            return Path(config.registry).expanduser()
        return self.config_dir / "registry"
