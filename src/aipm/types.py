"""Shared data types for aipm."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from aipm.lockfile import CollectionProvenance
    from aipm.registry import CollectionPlanEntry

__all__ = [
    "CollectionFailure",
    "CollectionOptions",
    "CollectionResult",
    "ExtractedFile",
    "InstallOptions",
    "InstallResult",
    "RestoreResult",
]


@dataclass(frozen=True)
class ExtractedFile:
    """One installable file produced by the archive extractor.

    Attributes:
        relative_path: POSIX path relative to the package root.
        content: Raw file bytes, written verbatim.
    """

    relative_path: str
    content: bytes

    def __post_init__(self) -> None:
        """Validate invariants."""
        if not self.relative_path:
            raise ValueError("relative_path cannot be empty")
        if self.relative_path.startswith("/") or ".." in self.relative_path.split("/"):
            raise ValueError(f"relative_path escapes package root: {self.relative_path}")


@dataclass
class InstallOptions:
    """Options for a single package install.

    Attributes:
        version: Explicit version (beats a version embedded in the reference).
        as_format: Target format for conversion; None installs the native format.
        frozen: Require the version pinned in the lock file.
        force: Reinstall even if the lock file says the package is satisfied.
        from_collection: Provenance when installed as part of a collection.
    """

    version: str | None = None
    as_format: str | None = None
    frozen: bool = False
    force: bool = False
    from_collection: CollectionProvenance | None = None


@dataclass
class InstallResult:
    """Result of an installation operation.

    Attributes:
        package_id: Namespaced package id.
        version: Version recorded in the lock file.
        format: Effective format the files were placed for.
        installed_path: Project-relative path written (file, directory or settings).
        skipped: True when the lock file already satisfied the request.
    """

    package_id: str
    version: str
    format: str
    installed_path: str
    skipped: bool = False

    def __post_init__(self) -> None:
        """Validate invariants."""
        if not self.package_id:
            raise ValueError("package_id cannot be empty")
        if not self.version:
            raise ValueError("version cannot be empty")


@dataclass
class CollectionOptions:
    """Options for a collection install.

    Attributes:
        as_format: Target format for every member; overrides the plan.
        skip_optional: Leave optional members out (counted as skipped).
        dry_run: Only enumerate the plan.
        force: Reinstall members the lock file already satisfies.
    """

    as_format: str | None = None
    skip_optional: bool = False
    dry_run: bool = False
    force: bool = False


@dataclass
class CollectionFailure:
    """A collection member that failed to install."""

    package_id: str
    required: bool
    error: str


@dataclass
class CollectionResult:
    """Aggregate result of a collection install.

    ``success`` is True iff no required member failed, even when optional
    members did.
    """

    collection_key: str
    installed: int = 0
    failed: int = 0
    skipped: int = 0
    installed_ids: list[str] = field(default_factory=list)
    failures: list[CollectionFailure] = field(default_factory=list)
    planned: list[CollectionPlanEntry] = field(default_factory=list)
    dry_run: bool = False

    @property
    def success(self) -> bool:
        """True when no required member failed."""
        return not any(f.required for f in self.failures)

    @property
    def total(self) -> int:
        """Number of members accounted for."""
        return self.installed + self.failed + self.skipped


@dataclass
class RestoreResult:
    """Result of re-installing every package recorded in the lock file."""

    results: list[InstallResult] = field(default_factory=list)
    failures: list[tuple[str, str]] = field(default_factory=list)

    @property
    def installed(self) -> int:
        """Number of packages whose files were written."""
        return sum(1 for r in self.results if not r.skipped)

    @property
    def skipped(self) -> int:
        """Number of packages already in place."""
        return sum(1 for r in self.results if r.skipped)

    @property
    def success(self) -> bool:
        """True when every package was restored."""
        return not self.failures
