"""Registry response models and the local mirror registry client.

The network client is an external collaborator; ``DirectoryRegistry`` serves
the same contract from a directory laid out as::

    <root>/packages/<package-id>/package.json
    <root>/packages/<package-id>/<version>.tgz
    <root>/collections/<scope>/<slug>.json
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from urllib.parse import unquote, urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from aipm.exceptions import (
    AipmError,
    CollectionNotFound,
    DownloadFailed,
    PackageNotFound,
    VersionNotFound,
)
from aipm.filesystem import RealFileSystem
from aipm.protocols import FileSystem
from aipm.resolver import LATEST

logger = logging.getLogger(__name__)

ARTIFACT_SUFFIX = ".tgz"


class PackageMetadata(BaseModel):
    """Registry view of a package."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    format: str
    subtype: str
    description: str = ""
    latest_version: str = Field(alias="latestVersion")
    download_url: str | None = Field(default=None, alias="downloadUrl")
    versions: list[str] = Field(default_factory=list)


class VersionMetadata(BaseModel):
    """Registry view of one published version."""

    model_config = ConfigDict(populate_by_name=True)

    version: str
    download_url: str = Field(alias="downloadUrl")


class CollectionPlanEntry(BaseModel):
    """One member of a collection, installed in list order."""

    model_config = ConfigDict(populate_by_name=True)

    package_id: str = Field(alias="packageId")
    version: str = LATEST
    format: str | None = None
    subtype: str | None = None
    required: bool = True
    reason: str = ""


class CollectionPlan(BaseModel):
    """Ordered install plan of a collection."""

    model_config = ConfigDict(populate_by_name=True)

    scope: str
    name_slug: str = Field(alias="nameSlug")
    name: str = ""
    version: str = "1.0.0"
    description: str = ""
    packages: list[CollectionPlanEntry] = Field(default_factory=list)

    @property
    def key(self) -> str:
        """Lock file key of the collection."""
        return f"{self.scope}/{self.name_slug}"


def path_from_url(url: str) -> Path:
    """Convert a ``file://`` URL (or a plain path) to a filesystem path."""
    parsed = urlparse(url)
    if parsed.scheme in ("", "file"):
        return Path(unquote(parsed.path))
    raise DownloadFailed(url, f"unsupported URL scheme '{parsed.scheme}'")


class DirectoryRegistry:
    """Registry client backed by a local mirror directory.

    Satisfies the RegistryClient protocol structurally. Format conversion is
    not available offline, so ``target_format`` is accepted and ignored.
    """

    def __init__(self, root: Path, filesystem: FileSystem | None = None) -> None:
        """Initialize the registry.

        Args:
            root: Mirror directory.
            filesystem: Filesystem abstraction. Defaults to the real filesystem.
        """
        self.root = root.resolve()
        self.fs = filesystem or RealFileSystem()

    @classmethod
    def create(cls, root: Path) -> DirectoryRegistry:
        """Create a registry reading from a mirror directory."""
        return cls(root=root)

    def _package_dir(self, package_id: str) -> Path:
        return self.root / "packages" / package_id

    def _artifact_url(self, package_id: str, version: str) -> str:
        return (self._package_dir(package_id) / f"{version}{ARTIFACT_SUFFIX}").as_uri()

    def _read_json(self, path: Path) -> dict:
        data = json.loads(self.fs.read_text(path))
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a JSON object")
        return data

    def get_package_metadata(self, package_id: str) -> PackageMetadata:
        """Get package metadata.

        Raises:
            PackageNotFound: If the mirror has no such package.
            AipmError: If the package document is unreadable.
        """
        manifest = self._package_dir(package_id) / "package.json"
        if not self.fs.exists(manifest):
            raise PackageNotFound(package_id)

        try:
            data = self._read_json(manifest)
            data.setdefault("id", package_id)
            metadata = PackageMetadata.model_validate(data)
        except (ValueError, ValidationError) as e:
            raise AipmError(
                f"Registry metadata for '{package_id}' is invalid: {e}",
                hints=[f"Fix {manifest}"],
            ) from e

        if not metadata.versions:
            metadata.versions = [metadata.latest_version]
        if metadata.download_url is None:
            metadata.download_url = self._artifact_url(package_id, metadata.latest_version)
        return metadata

    def get_version_metadata(self, package_id: str, version: str) -> VersionMetadata:
        """Get the download location of one version.

        Raises:
            PackageNotFound: If the mirror has no such package.
            VersionNotFound: If the version was never published.
        """
        metadata = self.get_package_metadata(package_id)
        if version == LATEST:
            version = metadata.latest_version
        if version not in metadata.versions:
            raise VersionNotFound(package_id, version)
        return VersionMetadata(version=version, download_url=self._artifact_url(package_id, version))

    def download(self, url: str, target_format: str | None = None) -> bytes:
        """Read an artifact from the mirror.

        Raises:
            DownloadFailed: If the artifact does not exist or cannot be read.
        """
        if target_format:
            logger.debug("Mirror registry cannot convert to %s; serving native bytes", target_format)
        path = path_from_url(url)
        try:
            return path.read_bytes()
        except OSError as e:
            raise DownloadFailed(url, e.strerror or str(e)) from e

    def record_download(
        self,
        package_id: str,
        version: str,
        client: str,
        format: str | None = None,
    ) -> None:
        """Record a download; the mirror only logs it."""
        logger.debug("Download of %s@%s by %s (format=%s)", package_id, version, client, format)

    def get_collection_plan(
        self,
        scope: str,
        name_slug: str,
        version: str | None = None,
    ) -> CollectionPlan:
        """Get the ordered member list of a collection.

        Raises:
            CollectionNotFound: If the mirror has no such collection, or not
                at the requested version.
        """
        key = f"{scope}/{name_slug}"
        path = self.root / "collections" / scope / f"{name_slug}.json"
        if not self.fs.exists(path):
            raise CollectionNotFound(key)

        try:
            data = self._read_json(path)
            data.setdefault("scope", scope)
            data.setdefault("nameSlug", name_slug)
            plan = CollectionPlan.model_validate(data)
        except (ValueError, ValidationError) as e:
            raise AipmError(
                f"Registry collection '{key}' is invalid: {e}",
                hints=[f"Fix {path}"],
            ) from e

        if version not in (None, LATEST, plan.version):
            raise CollectionNotFound(f"{key}@{version}")
        return plan
