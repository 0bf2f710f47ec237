"""Application context for dependency injection.

This module separates object creation from object use, enabling testability
and reducing coupling in CLI commands. The project root is passed in
explicitly; only the CLI defaults it to the current directory.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from aipm.collection import CollectionInstaller
from aipm.config import ConfigManager, UserConfig
from aipm.install import Installer
from aipm.protocols import RegistryClient


@dataclass
class AppContext:
    """Container for application dependencies.

    Provides a single injection point for all services used by CLI commands.
    For tests, construct AppContext directly with test doubles.
    """

    project_root: Path
    config_manager: ConfigManager
    config: UserConfig
    registry: RegistryClient
    installer: Installer
    collections: CollectionInstaller


def create_context(
    project_root: Path,
    config_dir: Path | None = None,
    registry_dir: Path | None = None,
) -> AppContext:
    """Factory for application dependencies.

    Args:
        project_root: Project directory packages are installed into.
        config_dir: Override configuration directory (for testing).
        registry_dir: Override registry mirror directory.

    Returns:
        Configured AppContext with all dependencies.
    """
    from aipm.filesystem import RealFileSystem
    from aipm.registry import DirectoryRegistry

    config_manager = ConfigManager.create(config_dir) if config_dir else ConfigManager.create_default()
    config = config_manager.load()
    filesystem = RealFileSystem()
    registry = DirectoryRegistry(registry_dir or config_manager.registry_path(config), filesystem)
    installer = Installer.create(
        project_root=project_root,
        registry=registry,
        filesystem=filesystem,
        client=config.client,
    )

    return AppContext(
        project_root=project_root,
        config_manager=config_manager,
        config=config,
        registry=registry,
        installer=installer,
        collections=CollectionInstaller.create(installer),
    )
