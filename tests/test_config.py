"""Tests for config module."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from aipm.config import ConfigManager, UserConfig, default_config_dir
from aipm.exceptions import AipmError


@pytest.fixture
def manager(tmp_path: Path) -> ConfigManager:
    """Create a config manager in a temporary directory."""
    return ConfigManager.create(tmp_path / "config")


class TestConfigManager:
    """Tests for ConfigManager."""

    def test_load_missing_gives_defaults(self, manager: ConfigManager) -> None:
        """Test a fresh installation uses defaults."""
        config = manager.load()
        assert config == UserConfig()
        assert config.client == "cli"

    def test_set_and_load(self, manager: ConfigManager) -> None:
        """Test values persist under their camelCase names."""
        manager.set_value("default-format", "claude")

        assert manager.load().default_format == "claude"
        data = json.loads(manager.config_file.read_text())
        assert data == {"defaultFormat": "claude", "client": "cli"}

    def test_set_registry_resolves_path(self, manager: ConfigManager, tmp_path: Path) -> None:
        """Test the registry path is stored absolute."""
        config = manager.set_value("registry", str(tmp_path / "mirror"))
        assert Path(config.registry).is_absolute()

    def test_unknown_key(self, manager: ConfigManager) -> None:
        """Test unknown keys are rejected."""
        with pytest.raises(ValueError, match="Unknown configuration key"):
            manager.set_value("colour", "blue")

    def test_unknown_format(self, manager: ConfigManager) -> None:
        """Test unknown default formats are rejected."""
        with pytest.raises(ValueError, match="Unknown format"):
            manager.set_value("default-format", "emacs")

    def test_invalid_file(self, manager: ConfigManager) -> None:
        """Test a corrupt config file raises with a hint."""
        manager.config_dir.mkdir(parents=True)
        manager.config_file.write_text("{oops")

        with pytest.raises(AipmError) as exc_info:
            manager.load()
        assert exc_info.value.hints


class TestRegistryPath:
    """Tests for registry mirror resolution."""

    def test_default_under_config_dir(self, manager: ConfigManager, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the fallback mirror location."""
        monkeypatch.delenv("AIPM_REGISTRY", raising=False)
        assert manager.registry_path(UserConfig()) == manager.config_dir / "registry"

    def test_config_value(self, manager: ConfigManager, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Test the configured mirror is used."""
        monkeypatch.delenv("AIPM_REGISTRY", raising=False)
        config = UserConfig(registry=str(tmp_path / "mirror"))
        assert manager.registry_path(config) == tmp_path / "mirror"

    def test_environment_wins(self, manager: ConfigManager, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Test AIPM_REGISTRY overrides the config file."""
        monkeypatch.setenv("AIPM_REGISTRY", str(tmp_path / "env"))
        config = UserConfig(registry=str(tmp_path / "mirror"))
        assert manager.registry_path(config) == tmp_path / "env"


def test_default_config_dir_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Test AIPM_CONFIG_DIR overrides the home directory location."""
    monkeypatch.setenv("AIPM_CONFIG_DIR", str(tmp_path))
    assert default_config_dir() == tmp_path
