"""Tests for context module."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from aipm.context import AppContext, create_context
from aipm.registry import DirectoryRegistry


class TestAppContext:
    """Tests for AppContext dataclass."""

    def test_create_with_all_dependencies(self, tmp_path: Path) -> None:
        """Test creating context with all dependencies."""
        config_manager = MagicMock()
        config = MagicMock()
        registry = MagicMock()
        installer = MagicMock()
        collections = MagicMock()
        ctx = AppContext(
            project_root=tmp_path,
            config_manager=config_manager,
            config=config,
            registry=registry,
            installer=installer,
            collections=collections,
        )
        assert ctx.project_root == tmp_path
        assert ctx.registry is registry
        assert ctx.installer is installer
        assert ctx.collections is collections


class TestCreateContext:
    """Tests for create_context factory function."""

    def test_create_context_wires_services(
        self,
        tmp_path: Path,
        project_root: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test the installer and collection installer share one registry."""
        monkeypatch.delenv("AIPM_REGISTRY", raising=False)
        ctx = create_context(project_root, config_dir=tmp_path / "config")

        assert isinstance(ctx.registry, DirectoryRegistry)
        assert ctx.registry.root == (tmp_path / "config" / "registry").resolve()
        assert ctx.installer.registry is ctx.registry
        assert ctx.collections.installer is ctx.installer
        assert ctx.installer.project_root == project_root

    def test_registry_override(self, tmp_path: Path, project_root: Path) -> None:
        """Test an explicit registry directory wins."""
        ctx = create_context(project_root, config_dir=tmp_path / "config", registry_dir=tmp_path / "mirror")
        assert ctx.registry.root == (tmp_path / "mirror").resolve()

    def test_client_from_config(self, tmp_path: Path, project_root: Path) -> None:
        """Test the configured client name reaches the installer."""
        config_dir = tmp_path / "config"
        config_dir.mkdir()
        (config_dir / "config.json").write_text('{"client": "ci"}')

        ctx = create_context(project_root, config_dir=config_dir, registry_dir=tmp_path / "mirror")

        assert ctx.installer.client == "ci"
