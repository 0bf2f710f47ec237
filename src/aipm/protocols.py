"""Protocol definitions for core abstractions.

This module defines abstract interfaces (Protocols) for the services the
installation engine depends on. Designing to interfaces enables:
- Loose coupling between the engine and its collaborators
- Easy substitution of test doubles
- Clear contracts for implementations

All concrete implementations satisfy these protocols structurally (duck typing).
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from aipm.registry import (
        CollectionPlan,
        PackageMetadata,
        VersionMetadata,
    )


@runtime_checkable
class FileSystem(Protocol):
    """Protocol for filesystem operations.

    Abstracts file I/O so the installer can be tested without touching disk.
    """

    def read_text(self, path: Path) -> str:
        """Read UTF-8 text content from a file."""
        ...

    def write_bytes(self, path: Path, content: bytes) -> None:
        """Write raw bytes to a file, creating parent directories."""
        ...

    def write_text_atomic(self, path: Path, content: str) -> None:
        """Replace a file's content atomically."""
        ...

    def exists(self, path: Path) -> bool:
        """Check if a path exists."""
        ...

    def is_dir(self, path: Path) -> bool:
        """Check if a path is a directory."""
        ...

    def mkdir(self, path: Path, parents: bool = False, exist_ok: bool = False) -> None:
        """Create a directory."""
        ...

    def unlink(self, path: Path) -> None:
        """Remove a file."""
        ...

    def rmtree(self, path: Path) -> None:
        """Remove a directory tree."""
        ...

    def list_files(self, path: Path) -> list[Path]:
        """List every regular file under a directory, recursively."""
        ...

    def prune_empty_dirs(self, path: Path) -> None:
        """Remove empty directories below a path."""
        ...


@runtime_checkable
class RegistryClient(Protocol):
    """Protocol for the package registry collaborator.

    Implementations own transport, retries and authentication. The engine
    treats every call as either fully successful or failed.
    """

    def get_package_metadata(self, package_id: str) -> PackageMetadata:
        """Get package metadata.

        Args:
            package_id: Namespaced package id.

        Returns:
            Native format/subtype and latest version information.

        Raises:
            PackageNotFound: If the registry does not know the package.
        """
        ...

    def get_version_metadata(self, package_id: str, version: str) -> VersionMetadata:
        """Get the download location of one version.

        Raises:
            VersionNotFound: If the version does not exist.
        """
        ...

    def download(self, url: str, target_format: str | None = None) -> bytes:
        """Download a package artifact, converted to target_format when given."""
        ...

    def record_download(
        self,
        package_id: str,
        version: str,
        client: str,
        format: str | None = None,
    ) -> None:
        """Record a download for usage accounting (fire and forget)."""
        ...

    def get_collection_plan(
        self,
        scope: str,
        name_slug: str,
        version: str | None = None,
    ) -> CollectionPlan:
        """Get the ordered member list of a collection.

        Raises:
            CollectionNotFound: If the collection does not exist.
        """
        ...
