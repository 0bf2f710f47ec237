"""Package reference parsing and version resolution policy."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from aipm.exceptions import InvalidPackageReference, LockfileEntryMissing

if TYPE_CHECKING:
    from aipm.lockfile import LockEntry

LATEST = "latest"
DEFAULT_COLLECTION_SCOPE = "collection"

_SEGMENT = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
_VERSION = re.compile(r"^[A-Za-z0-9][A-Za-z0-9.+_-]*$")


@dataclass(frozen=True)
class PackageRef:
    """Parsed package reference."""

    package_id: str
    version: str | None = None

    @property
    def name(self) -> str:
        """Namespace-stripped package name."""
        return strip_namespace(self.package_id)


@dataclass(frozen=True)
class CollectionRef:
    """Parsed collection reference."""

    scope: str
    name_slug: str
    version: str | None = None

    @property
    def key(self) -> str:
        """Lock file key of the collection."""
        return f"{self.scope}/{self.name_slug}"


def strip_namespace(package_id: str) -> str:
    """Strip the namespace prefix from a package id.

    ``@scope/name`` and ``scope/name`` both become ``name``.
    """
    return package_id.rsplit("/", 1)[-1].lstrip("@")


def _split(ref: str) -> tuple[bool, list[str], str | None]:
    text = ref.strip()
    if not text:
        raise InvalidPackageReference(ref)

    scoped = text.startswith("@")
    body = text[1:] if scoped else text
    name_part, sep, version = body.partition("@")
    if sep and not _VERSION.match(version):
        raise InvalidPackageReference(ref)

    segments = name_part.split("/")
    if len(segments) > 2 or (scoped and len(segments) != 2):
        raise InvalidPackageReference(ref)
    if not all(_SEGMENT.match(segment) for segment in segments):
        raise InvalidPackageReference(ref)
    return scoped, segments, version or None


def parse_package_ref(ref: str) -> PackageRef:
    """Parse a package reference.

    Accepted forms: ``name``, ``name@version``, ``@scope/name``,
    ``@scope/name@version`` and ``scope/name[@version]``.

    Args:
        ref: Reference as typed by the user.

    Returns:
        The package id (with its namespace) and the version, if any.

    Raises:
        InvalidPackageReference: If the reference is malformed.
    """
    scoped, segments, version = _split(ref)
    package_id = ("@" if scoped else "") + "/".join(segments)
    return PackageRef(package_id=package_id, version=version)


def parse_collection_ref(ref: str) -> CollectionRef:
    """Parse a collection reference (``[@]scope/slug[@version]`` or ``slug``).

    Raises:
        InvalidPackageReference: If the reference is malformed.
    """
    _, segments, version = _split(ref)
    if len(segments) == 1:
        return CollectionRef(scope=DEFAULT_COLLECTION_SCOPE, name_slug=segments[0], version=version)
    return CollectionRef(scope=segments[0], name_slug=segments[1], version=version)


def resolve_version(
    package_id: str,
    explicit_version: str | None = None,
    ref_version: str | None = None,
    locked_version: str | None = None,
    frozen: bool = False,
) -> str:
    """Decide which version of a package to fetch.

    Explicit beats implicit, implicit beats remembered, remembered beats
    newest. Frozen mode only ever accepts the remembered version.

    Args:
        package_id: Package being resolved (for error messages).
        explicit_version: Version passed as an option.
        ref_version: Version embedded in the reference (``name@1.2.0``).
        locked_version: Version recorded in the lock file.
        frozen: Require the locked version.

    Returns:
        A concrete version, or ``"latest"`` for the registry to resolve.

    Raises:
        LockfileEntryMissing: In frozen mode when nothing is locked.
    """
    if frozen:
        if not locked_version:
            raise LockfileEntryMissing(package_id)
        return locked_version
    return explicit_version or ref_version or locked_version or LATEST


def is_already_satisfied(
    entry: LockEntry | None,
    requested_version: str | None,
    requested_format: str,
) -> bool:
    """Check whether a locked package already matches a request.

    Keyed on (version, effective format): asking for the locked version in a
    different target format still rewrites the files.

    Args:
        entry: Lock entry of the package, if locked.
        requested_version: Version asked for; None or ``"latest"`` accepts
            whatever is locked.
        requested_format: Effective format the caller wants the files in.
    """
    if entry is None:
        return False
    if requested_version not in (None, LATEST, entry.version):
        return False
    return entry.effective_format == requested_format
