"""Shared test fixtures."""

from __future__ import annotations

import gzip
import io
import tarfile
from collections.abc import Callable
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from aipm.collection import CollectionInstaller
from aipm.exceptions import (
    CollectionNotFound,
    DownloadFailed,
    PackageNotFound,
    VersionNotFound,
)
from aipm.install import Installer
from aipm.registry import CollectionPlan, PackageMetadata, VersionMetadata
from aipm.resolver import LATEST

# ============================================================================
# Payload Builders
# ============================================================================


def build_tarball(files: dict[str, str | bytes], compress: bool = True) -> bytes:
    """Build a (gzip-compressed) tar archive from a name -> content mapping."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w", format=tarfile.USTAR_FORMAT) as tar:
        for name, content in files.items():
            data = content.encode("utf-8") if isinstance(content, str) else content
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    raw = buffer.getvalue()
    return gzip.compress(raw) if compress else raw


def build_single_file(content: str) -> bytes:
    """Build a bare gzip-compressed single-file payload."""
    return gzip.compress(content.encode("utf-8"))


@pytest.fixture
def make_tarball() -> Callable[..., bytes]:
    """Builder for tar.gz payloads."""
    return build_tarball


@pytest.fixture
def make_single_file() -> Callable[[str], bytes]:
    """Builder for bare gzip payloads."""
    return build_single_file


# ============================================================================
# Registry Test Double
# ============================================================================


class FakeRegistry:
    """In-memory registry satisfying the RegistryClient protocol.

    Records every download so tests can assert that no network work happened.
    """

    def __init__(self) -> None:
        self.packages: dict[str, PackageMetadata] = {}
        self.artifacts: dict[str, bytes] = {}
        self.collections: dict[str, CollectionPlan] = {}
        self.downloads: list[tuple[str, str | None]] = []
        self.recorded: list[tuple[str, str, str, str | None]] = []
        self.fail_record = False

    @staticmethod
    def url_for(package_id: str, version: str) -> str:
        return f"mem://{package_id}/{version}.tgz"

    def publish(
        self,
        package_id: str,
        version: str,
        payload: bytes,
        format: str = "cursor",
        subtype: str = "rule",
    ) -> None:
        """Publish a version; the newest published version becomes latest."""
        existing = self.packages.get(package_id)
        versions = (existing.versions if existing else []) + [version]
        self.packages[package_id] = PackageMetadata(
            id=package_id,
            format=format,
            subtype=subtype,
            latest_version=version,
            download_url=self.url_for(package_id, version),
            versions=versions,
        )
        self.artifacts[self.url_for(package_id, version)] = payload

    def add_collection(self, scope: str, name_slug: str, members: list[dict]) -> None:
        """Register a collection plan."""
        plan = CollectionPlan.model_validate(
            {"scope": scope, "nameSlug": name_slug, "name": name_slug, "packages": members}
        )
        self.collections[plan.key] = plan

    def get_package_metadata(self, package_id: str) -> PackageMetadata:
        if package_id not in self.packages:
            raise PackageNotFound(package_id)
        return self.packages[package_id]

    def get_version_metadata(self, package_id: str, version: str) -> VersionMetadata:
        metadata = self.get_package_metadata(package_id)
        if version == LATEST:
            version = metadata.latest_version
        if version not in metadata.versions:
            raise VersionNotFound(package_id, version)
        return VersionMetadata(version=version, download_url=self.url_for(package_id, version))

    def download(self, url: str, target_format: str | None = None) -> bytes:
        self.downloads.append((url, target_format))
        if url not in self.artifacts:
            raise DownloadFailed(url, "not found")
        return self.artifacts[url]

    def record_download(
        self,
        package_id: str,
        version: str,
        client: str,
        format: str | None = None,
    ) -> None:
        if self.fail_record:
            raise RuntimeError("telemetry endpoint unavailable")
        self.recorded.append((package_id, version, client, format))

    def get_collection_plan(
        self,
        scope: str,
        name_slug: str,
        version: str | None = None,
    ) -> CollectionPlan:
        key = f"{scope}/{name_slug}"
        if key not in self.collections:
            raise CollectionNotFound(key)
        return self.collections[key]


@pytest.fixture
def fake_registry() -> FakeRegistry:
    """Create an empty in-memory registry."""
    return FakeRegistry()


# ============================================================================
# Engine Fixtures
# ============================================================================


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Create an empty project directory."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def installer(project_root: Path, fake_registry: FakeRegistry) -> Installer:
    """Create an Installer for the project using factory method."""
    return Installer.create(project_root=project_root, registry=fake_registry)


@pytest.fixture
def collection_installer(installer: Installer) -> CollectionInstaller:
    """Create a CollectionInstaller sharing the installer's registry."""
    return CollectionInstaller.create(installer)


@pytest.fixture
def mock_filesystem() -> MagicMock:
    """Create a mock FileSystem for testing.

    The mock tracks all filesystem operations without touching real files.
    """
    fs = MagicMock()
    fs.exists.return_value = False
    fs.is_dir.return_value = False
    fs.read_text.return_value = ""
    return fs


# ============================================================================
# Sample Content Fixtures
# ============================================================================


@pytest.fixture
def sample_rule_content() -> str:
    """Sample Cursor rule content."""
    return """---
description: Review checklist
globs: ["**/*.py"]
---

# Review Rule

Check error handling and naming before approving.
"""


@pytest.fixture
def sample_skill_content() -> str:
    """Sample skill manifest content."""
    return """---
name: github
description: GitHub operations skill
---

# GitHub Skill

Provides GitHub operations like creating PRs, issues, and comments.
"""


@pytest.fixture
def sample_hook_fragment() -> str:
    """Sample hook package payload."""
    return """{
  "hooks": {
    "PreToolUse": [
      {
        "matcher": "Write",
        "hooks": [{"type": "command", "command": "ruff check"}]
      }
    ]
  }
}
"""
