"""Lock file models and storage.

The lock file (``aipm.lock`` at the project root) is the single source of
truth for what is installed; the files under the ecosystem directories are a
projection of it. It is rewritten atomically on every mutation.
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from aipm.exceptions import LockfileError
from aipm.filesystem import RealFileSystem
from aipm.protocols import FileSystem

logger = logging.getLogger(__name__)

LOCKFILE_NAME = "aipm.lock"
LOCKFILE_VERSION = 1
FORMAT_VERSION = "1.0.0"
INTEGRITY_ALGORITHM = "sha256"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def compute_integrity(data: bytes) -> str:
    """Compute the integrity string for raw artifact bytes.

    Args:
        data: Bytes exactly as downloaded.

    Returns:
        ``sha256-<hexdigest>``.
    """
    return f"{INTEGRITY_ALGORITHM}-{hashlib.sha256(data).hexdigest()}"


def verify_integrity(expected: str, data: bytes) -> bool:
    """Check raw bytes against a recorded integrity string.

    An empty expectation never verifies.
    """
    if not expected:
        return False
    return compute_integrity(data) == expected


class _LockModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class HookMetadata(_LockModel):
    """Hook events a package contributed to the host settings document."""

    events: list[str]
    hook_id: str = Field(alias="hookId")


class CollectionProvenance(_LockModel):
    """Collection a package was installed from."""

    scope: str
    name_slug: str = Field(alias="nameSlug")
    version: str | None = None


class LockEntry(_LockModel):
    """One installed package.

    ``format``/``subtype`` are the publisher's native classification and are
    never replaced by a conversion request; ``installed_format`` and
    ``installed_subtype`` record where the files were actually placed.
    """

    version: str
    resolved_source: str = Field(alias="resolvedSource")
    integrity: str = ""
    format: str
    subtype: str
    installed_format: str | None = Field(default=None, alias="installedFormat")
    installed_subtype: str | None = Field(default=None, alias="installedSubtype")
    installed_path: str | None = Field(default=None, alias="installedPath")
    hook_metadata: HookMetadata | None = Field(default=None, alias="hookMetadata")
    from_collection: CollectionProvenance | None = Field(default=None, alias="fromCollection")
    installed_at: datetime | None = Field(default=None, alias="installedAt")

    @property
    def effective_format(self) -> str:
        """Format used for placement (native when no conversion was requested)."""
        return self.installed_format or self.format

    @property
    def is_hook(self) -> bool:
        """True when the package was merged into a host settings document."""
        return self.hook_metadata is not None


class LockedCollection(_LockModel):
    """A collection installed as a unit."""

    scope: str
    name_slug: str = Field(alias="nameSlug")
    version: str
    installed_at: datetime = Field(default_factory=_now, alias="installedAt")
    packages: list[str] = Field(default_factory=list)


class Lockfile(_LockModel):
    """Lock file document."""

    format_version: str = Field(default=FORMAT_VERSION, alias="formatVersion")
    lockfile_version: int = Field(default=LOCKFILE_VERSION, alias="lockfileVersion")
    packages: dict[str, LockEntry] = Field(default_factory=dict)
    collections: dict[str, LockedCollection] = Field(default_factory=dict)
    generated_at: datetime = Field(default_factory=_now, alias="generatedAt")

    def touch(self) -> None:
        """Advance ``generated_at``; strictly monotonic even within one clock tick."""
        now = _now()
        if now <= self.generated_at:
            now = self.generated_at + timedelta(microseconds=1)
        self.generated_at = now

    def get(self, package_id: str) -> LockEntry | None:
        """Get the entry for a package, if locked."""
        return self.packages.get(package_id)

    def get_locked_version(self, package_id: str) -> str | None:
        """Get the locked version for a package, if locked."""
        entry = self.packages.get(package_id)
        return entry.version if entry else None

    def upsert(self, package_id: str, entry: LockEntry) -> None:
        """Create or replace a package entry."""
        self.packages[package_id] = entry
        self.touch()

    def remove(self, package_id: str) -> LockEntry | None:
        """Remove a package entry and its collection memberships.

        Returns:
            The removed entry, or None if the package was not locked.
        """
        removed = self.packages.pop(package_id, None)
        if removed is None:
            return None
        for collection in self.collections.values():
            if package_id in collection.packages:
                collection.packages = [p for p in collection.packages if p != package_id]
        self.touch()
        return removed

    def add_collection(
        self,
        key: str,
        scope: str,
        name_slug: str,
        version: str,
        packages: list[str],
    ) -> LockedCollection:
        """Record (or re-record) an installed collection."""
        collection = LockedCollection(
            scope=scope,
            name_slug=name_slug,
            version=version,
            packages=list(packages),
        )
        self.collections[key] = collection
        self.touch()
        return collection


# Legacy combined package types mapped to (format, subtype).
_LEGACY_TYPES: dict[str, tuple[str, str]] = {
    "claude": ("claude", "agent"),
    "claude-agent": ("claude", "agent"),
    "claude-skill": ("claude", "skill"),
    "claude-slash-command": ("claude", "slash-command"),
    "claude-hook": ("claude", "hook"),
    "cursor": ("cursor", "rule"),
    "cursor-agent": ("cursor", "agent"),
    "cursor-slash-command": ("cursor", "slash-command"),
    "windsurf": ("windsurf", "rule"),
    "continue": ("continue", "rule"),
    "generic": ("generic", "rule"),
}

_TOP_LEVEL_RENAMES = {"version": "formatVersion", "generated": "generatedAt"}
_ENTRY_RENAMES = {"resolved": "resolvedSource", "tarballUrl": "resolvedSource"}
_TOP_LEVEL_FIELDS = {"formatVersion", "lockfileVersion", "packages", "collections", "generatedAt"}
_ENTRY_FIELDS = {
    "version",
    "resolvedSource",
    "integrity",
    "format",
    "subtype",
    "installedFormat",
    "installedSubtype",
    "installedPath",
    "hookMetadata",
    "fromCollection",
    "installedAt",
}


def _mapping(value: Any, what: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ValueError(f"{what} must be an object, got {type(value).__name__}")
    return dict(value)


def _migrate_provenance(data: dict[str, Any]) -> dict[str, Any]:
    data = dict(data)
    if "name_slug" in data:
        data.setdefault("nameSlug", data.pop("name_slug"))
    return {k: v for k, v in data.items() if k in {"scope", "nameSlug", "version"}}


def _migrate_entry(package_id: str, entry: Any) -> dict[str, Any]:
    entry = _mapping(entry, f"lock entry {package_id}")
    for old, new in _ENTRY_RENAMES.items():
        if old in entry:
            value = entry.pop(old)
            entry.setdefault(new, value)

    # Older clients stored the placement format in "format" and the native
    # classification in "sourceFormat"/"sourceSubtype".
    source_format = entry.pop("sourceFormat", None)
    source_subtype = entry.pop("sourceSubtype", None)
    if source_format:
        if entry.get("format") and entry["format"] != source_format:
            entry.setdefault("installedFormat", entry["format"])
        entry["format"] = source_format
    if source_subtype:
        if entry.get("subtype") and entry["subtype"] != source_subtype:
            entry.setdefault("installedSubtype", entry["subtype"])
        entry["subtype"] = source_subtype

    legacy_type = entry.pop("type", None)
    if legacy_type and (not entry.get("format") or not entry.get("subtype")):
        fmt, subtype = _LEGACY_TYPES.get(legacy_type, ("generic", "rule"))
        entry.setdefault("format", fmt)
        entry.setdefault("subtype", subtype)

    if not entry.get("format") or not entry.get("subtype"):
        logger.warning("Lock entry %s has no format; assuming generic/rule", package_id)
        entry.setdefault("format", "generic")
        entry.setdefault("subtype", "rule")
        entry["format"] = entry["format"] or "generic"
        entry["subtype"] = entry["subtype"] or "rule"

    if isinstance(entry.get("fromCollection"), dict):
        entry["fromCollection"] = _migrate_provenance(entry["fromCollection"])

    for key in sorted(set(entry) - _ENTRY_FIELDS):
        logger.warning("Dropping unknown field '%s' from lock entry %s", key, package_id)
        entry.pop(key)
    return entry


def migrate_lockfile_data(data: dict[str, Any]) -> dict[str, Any]:
    """Bring a raw lock file document up to the current schema.

    Legacy keys are renamed; keys this client does not know are dropped with
    a warning so that model validation (which forbids extras) only ever sees
    the current schema.

    Args:
        data: Parsed JSON document.

    Returns:
        A new document in the current schema.

    Raises:
        ValueError: If packages, collections or entries are not objects.
    """
    data = dict(data)
    for old, new in _TOP_LEVEL_RENAMES.items():
        if old in data:
            value = data.pop(old)
            data.setdefault(new, value)

    packages = _mapping(data.get("packages") or {}, "packages")
    data["packages"] = {pid: _migrate_entry(pid, entry) for pid, entry in packages.items()}

    collections = _mapping(data.get("collections") or {}, "collections")
    migrated_collections = {}
    for key, collection in collections.items():
        collection = _mapping(collection, f"collection {key}")
        if "name_slug" in collection:
            collection.setdefault("nameSlug", collection.pop("name_slug"))
        migrated_collections[key] = collection
    data["collections"] = migrated_collections

    for key in sorted(set(data) - _TOP_LEVEL_FIELDS):
        logger.warning("Dropping unknown lock file field '%s'", key)
        data.pop(key)
    return data


class LockfileStore:
    """Reads and writes the lock file of one project root."""

    def __init__(self, project_root: Path, filesystem: FileSystem | None = None) -> None:
        """Initialize the store.

        Args:
            project_root: Project directory holding the lock file.
            filesystem: Filesystem abstraction. Defaults to the real filesystem.
        """
        self.project_root = project_root
        self.fs = filesystem or RealFileSystem()
        self.path = project_root / LOCKFILE_NAME

    @classmethod
    def create(cls, project_root: Path) -> LockfileStore:
        """Create a store for a project root using the real filesystem."""
        return cls(project_root=project_root)

    def exists(self) -> bool:
        """Check whether a lock file has been written."""
        return self.fs.exists(self.path)

    def read(self) -> Lockfile | None:
        """Load the lock file.

        Returns:
            The lock file, or None if it does not exist yet.

        Raises:
            LockfileError: If the file is not valid JSON or fails validation.
        """
        if not self.fs.exists(self.path):
            return None

        try:
            data = json.loads(self.fs.read_text(self.path))
        except UnicodeDecodeError as e:
            raise LockfileError(str(self.path), f"not valid UTF-8 ({e})") from e
        except json.JSONDecodeError as e:
            raise LockfileError(str(self.path), f"invalid JSON ({e})") from e
        if not isinstance(data, dict):
            raise LockfileError(str(self.path), "top level must be an object")

        try:
            return Lockfile.model_validate(migrate_lockfile_data(data))
        except (ValidationError, ValueError) as e:
            raise LockfileError(str(self.path), str(e)) from e

    def read_or_create(self) -> Lockfile:
        """Load the lock file, or return a new empty one (not yet written)."""
        return self.read() or Lockfile()

    def write(self, lockfile: Lockfile) -> None:
        """Persist the lock file atomically."""
        data = lockfile.model_dump(mode="json", by_alias=True, exclude_none=True)
        self.fs.write_text_atomic(self.path, json.dumps(data, indent=2) + "\n")
        logger.debug("Wrote lock file %s (%d packages)", self.path, len(lockfile.packages))
