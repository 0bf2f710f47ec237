"""Filesystem abstraction for testability.

This module provides a filesystem abstraction that enables testing
without real I/O operations. The RealFileSystem implementation
wraps standard library operations.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path


class RealFileSystem:
    """Production filesystem implementation.

    Wraps standard library Path and shutil operations.
    Satisfies the FileSystem protocol structurally.
    """

    def read_text(self, path: Path) -> str:
        """Read UTF-8 text content from a file."""
        return path.read_text(encoding="utf-8")

    def write_bytes(self, path: Path, content: bytes) -> None:
        """Write raw bytes to a file, creating parent directories."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)

    def write_text_atomic(self, path: Path, content: str) -> None:
        """Replace a file's content atomically (temp file in the same dir + rename)."""
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def exists(self, path: Path) -> bool:
        """Check if a path exists."""
        return path.exists()

    def is_dir(self, path: Path) -> bool:
        """Check if a path is a directory."""
        return path.is_dir()

    def mkdir(self, path: Path, parents: bool = False, exist_ok: bool = False) -> None:
        """Create a directory."""
        path.mkdir(parents=parents, exist_ok=exist_ok)

    def unlink(self, path: Path) -> None:
        """Remove a file."""
        path.unlink()

    def rmtree(self, path: Path) -> None:
        """Remove a directory tree."""
        shutil.rmtree(path)

    def list_files(self, path: Path) -> list[Path]:
        """List every regular file under a directory, recursively."""
        return sorted(p for p in path.rglob("*") if p.is_file())

    def prune_empty_dirs(self, path: Path) -> None:
        """Remove empty directories below ``path``, deepest first."""
        for directory in sorted((p for p in path.rglob("*") if p.is_dir()), reverse=True):
            if not any(directory.iterdir()):
                directory.rmdir()
