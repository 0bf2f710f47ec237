"""Error taxonomy for package resolution and installation.

Every fatal error carries a human-readable message plus one or two concrete
next steps (``hints``) that the CLI prints under the message.
"""

from __future__ import annotations


class AipmError(Exception):
    """Base class for all aipm errors."""

    def __init__(self, message: str, hints: list[str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hints = hints or []


class InvalidPackageReference(AipmError):
    """A package or collection reference could not be parsed."""

    def __init__(self, ref: str) -> None:
        super().__init__(
            f"Invalid package reference: '{ref}'",
            hints=["Use one of: name, name@version, @scope/name, @scope/name@version"],
        )
        self.ref = ref


class PackageNotFound(AipmError):
    """The registry does not know the package."""

    def __init__(self, package_id: str) -> None:
        super().__init__(
            f"Package '{package_id}' not found in registry",
            hints=[
                "Check the package name (including its @scope/ prefix)",
                "Run 'aipm config show' to confirm which registry is in use",
            ],
        )
        self.package_id = package_id


class VersionNotFound(AipmError):
    """The registry knows the package but not the requested version."""

    def __init__(self, package_id: str, version: str) -> None:
        super().__init__(
            f"Version '{version}' of '{package_id}' not found in registry",
            hints=[f"Install the latest version with 'aipm install {package_id}'"],
        )
        self.package_id = package_id
        self.version = version


class CollectionNotFound(AipmError):
    """The registry does not know the collection."""

    def __init__(self, collection_key: str) -> None:
        super().__init__(
            f"Collection '{collection_key}' not found in registry",
            hints=["Check the collection name and scope"],
        )
        self.collection_key = collection_key


class LockfileEntryMissing(AipmError):
    """Frozen-mode resolution found no pinned version."""

    def __init__(self, package_id: str) -> None:
        super().__init__(
            f"Package '{package_id}' not found in lock file",
            hints=["Run without --frozen to resolve and record a version"],
        )
        self.package_id = package_id


class LockfileError(AipmError):
    """The lock file exists but cannot be read or validated."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(
            f"Failed to read lock file {path}: {reason}",
            hints=["Fix or delete the lock file, then reinstall your packages"],
        )
        self.path = path


class UnknownFormat(AipmError):
    """Routing received a (format, subtype) pair outside the supported set."""

    def __init__(self, format: str, subtype: str | None = None) -> None:
        pair = f"{format}/{subtype}" if subtype else format
        super().__init__(
            f"Unknown format: {pair}",
            hints=["Upgrade aipm; the registry may publish formats this client does not know"],
        )
        self.format = format
        self.subtype = subtype


class MalformedSkillPackage(AipmError):
    """A skill package has no manifest file and no unambiguous candidate."""

    def __init__(self, package_id: str, manifest: str) -> None:
        super().__init__(
            f"Skill package '{package_id}' does not contain {manifest}",
            hints=["Report the problem to the package author"],
        )
        self.package_id = package_id


class InvalidHookPackage(AipmError):
    """A hook package payload is not a valid hook fragment."""

    def __init__(self, package_id: str, reason: str) -> None:
        super().__init__(
            f"Hook package '{package_id}' is invalid: {reason}",
            hints=["Report the problem to the package author"],
        )
        self.package_id = package_id


class IntegrityMismatch(AipmError):
    """Downloaded bytes do not match the integrity hash in the lock file."""

    def __init__(self, package_id: str, expected: str, actual: str) -> None:
        super().__init__(
            f"Integrity check failed for '{package_id}': expected {expected}, got {actual}",
            hints=[
                "The published artifact changed; verify its origin",
                "Run without --frozen to accept and record the new hash",
            ],
        )
        self.package_id = package_id
        self.expected = expected
        self.actual = actual


class PackageNotInstalled(AipmError):
    """Uninstall was asked for a package the lock file does not know."""

    def __init__(self, package_id: str) -> None:
        super().__init__(
            f"Package '{package_id}' is not installed",
            hints=["Run 'aipm list' to see installed packages"],
        )
        self.package_id = package_id


class UninstallPathUnknown(AipmError):
    """The lock entry has no installed path, so nothing can be removed safely."""

    def __init__(self, package_id: str) -> None:
        super().__init__(
            f"Cannot uninstall '{package_id}': lock entry has no installed path",
            hints=[
                "Delete the package files by hand",
                f"Reinstall with 'aipm install {package_id}' to record the path, then uninstall",
            ],
        )
        self.package_id = package_id


class RequiredCollectionMemberFailed(AipmError):
    """A required member of a collection failed; the collection install aborted."""

    def __init__(self, collection_key: str, package_id: str, reason: str, result=None) -> None:
        super().__init__(
            f"Failed to install required package {package_id} "
            f"from collection {collection_key}: {reason}",
            hints=[
                f"Install {package_id} on its own to see the full error",
                "Packages installed before the failure remain installed",
            ],
        )
        self.collection_key = collection_key
        self.package_id = package_id
        self.result = result


class SettingsDocumentInvalid(AipmError):
    """The shared host settings document exists but is not a JSON object."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(
            f"Cannot update settings document {path}: {reason}",
            hints=["Fix the JSON syntax in the settings file, then retry"],
        )
        self.path = path


class DownloadFailed(AipmError):
    """The registry collaborator could not deliver an artifact."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(
            f"Failed to download {url}: {reason}",
            hints=["Retry the install", "Run 'aipm config show' to confirm which registry is in use"],
        )
        self.url = url
