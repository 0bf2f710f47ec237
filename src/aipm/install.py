"""Install and uninstall orchestration.

The installer is the only component with side effects on the project: it
writes artifact files, merges hook packages into the host settings document
and records the result in the lock file. The lock file is always written
last, so a crash mid-install can leave orphan files but never a lock entry
pointing at files that were not written. Re-running the install cleans up.

The lock file and the settings document are read-modify-write without
cross-process locking: callers must run one aipm process at a time per
project directory.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath

from aipm.archive import extract
from aipm.exceptions import (
    AipmError,
    IntegrityMismatch,
    InvalidHookPackage,
    PackageNotInstalled,
    UninstallPathUnknown,
)
from aipm.filesystem import RealFileSystem
from aipm.hooks import (
    HookSettingsStore,
    make_hook_id,
    merge_hooks,
    parse_hook_fragment,
    unmerge_hooks,
)
from aipm.lockfile import (
    HookMetadata,
    LockEntry,
    Lockfile,
    LockfileStore,
    compute_integrity,
    verify_integrity,
)
from aipm.platforms import Destination, effective_format, get_platform
from aipm.platforms.agents_md import INSTRUCTIONS_FILE
from aipm.protocols import FileSystem, RegistryClient
from aipm.resolver import LATEST, is_already_satisfied, parse_package_ref, resolve_version
from aipm.types import ExtractedFile, InstallOptions, InstallResult, RestoreResult
from aipm.validation import normalize_skill_files

logger = logging.getLogger(__name__)


def _is_settings_hook(format: str, subtype: str) -> bool:
    return format == "claude" and subtype == "hook"


class Installer:
    """Installs packages into one project root.

    Follows Separate Use from Creation: constructor requires all dependencies.
    Use factory method `create()` for production instantiation with defaults.
    """

    def __init__(
        self,
        project_root: Path,
        registry: RegistryClient,
        lockfile: LockfileStore,
        settings: HookSettingsStore,
        filesystem: FileSystem,
        client: str = "cli",
    ) -> None:
        """Initialize installer with required dependencies.

        Args:
            project_root: Project directory every path is relative to.
            registry: Registry collaborator.
            lockfile: Lock file store of the project.
            settings: Host settings document store of the project.
            filesystem: Filesystem abstraction.
            client: Client name sent with download accounting.
        """
        self.project_root = project_root
        self.registry = registry
        self.lockfile = lockfile
        self.settings = settings
        self.fs = filesystem
        self.client = client

    @classmethod
    def create(
        cls,
        project_root: Path,
        registry: RegistryClient,
        filesystem: FileSystem | None = None,
        client: str = "cli",
    ) -> Installer:
        """Factory method for production instantiation.

        Args:
            project_root: Project directory.
            registry: Registry collaborator.
            filesystem: Optional filesystem abstraction (created if not provided).
            client: Client name sent with download accounting.

        Returns:
            Configured Installer instance.
        """
        fs = filesystem or RealFileSystem()
        return cls(
            project_root=project_root,
            registry=registry,
            lockfile=LockfileStore(project_root, fs),
            settings=HookSettingsStore(project_root, fs),
            filesystem=fs,
            client=client,
        )

    def install(self, package_ref: str, options: InstallOptions | None = None) -> InstallResult:
        """Install a package.

        Args:
            package_ref: ``name``, ``name@version``, ``@scope/name`` or
                ``@scope/name@version``.
            options: Install options.

        Returns:
            InstallResult; ``skipped`` is True when nothing had to be done.

        Raises:
            AipmError: Any failure; the lock file is left unchanged.
        """
        options = options or InstallOptions()
        ref = parse_package_ref(package_ref)
        package_id = ref.package_id

        lock = self.lockfile.read_or_create()
        entry = lock.get(package_id)
        version = resolve_version(
            package_id,
            explicit_version=options.version,
            ref_version=ref.version,
            locked_version=lock.get_locked_version(package_id),
            frozen=options.frozen,
        )

        if entry is not None and not options.force:
            requested_format = effective_format(entry.format, options.as_format)
            if is_already_satisfied(entry, options.version or ref.version, requested_format):
                if self._placement_intact(entry):
                    logger.info("%s@%s already installed", package_id, entry.version)
                    return InstallResult(
                        package_id=package_id,
                        version=entry.version,
                        format=requested_format,
                        installed_path=entry.installed_path or "",
                        skipped=True,
                    )
                logger.info("Files of %s are missing; reinstalling", package_id)

        metadata = self.registry.get_package_metadata(package_id)
        if version == LATEST and metadata.download_url:
            version = metadata.latest_version
            url = metadata.download_url
        else:
            version_metadata = self.registry.get_version_metadata(package_id, version)
            version = version_metadata.version
            url = version_metadata.download_url

        target_format = effective_format(metadata.format, options.as_format)
        platform = get_platform(target_format)
        placed_subtype = platform.effective_subtype(metadata.subtype)

        conversion = target_format if target_format != metadata.format else None
        raw = self.registry.download(url, conversion)
        integrity = compute_integrity(raw)
        if (
            options.frozen
            and entry is not None
            and entry.integrity
            and entry.version == version
            and entry.effective_format == target_format
            and not verify_integrity(entry.integrity, raw)
        ):
            raise IntegrityMismatch(package_id, entry.integrity, integrity)

        files = extract(raw, package_id)

        hook_metadata = None
        if _is_settings_hook(target_format, placed_subtype):
            hook_metadata = self._merge_hook(package_id, version, files, entry)
            installed_path = self.settings.relative_path
        else:
            instructions_taken = self._instructions_taken(entry, files)
            destination = platform.route(
                metadata.subtype,
                ref.name,
                instructions_exist=instructions_taken,
            )
            installed_path = self._write_files(
                package_id,
                placed_subtype,
                destination,
                files,
                previous=entry.installed_path if entry else None,
            )

        if entry is not None:
            self._remove_previous(package_id, entry, installed_path)

        lock.upsert(
            package_id,
            LockEntry(
                version=version,
                resolved_source=url,
                integrity=integrity,
                format=metadata.format,
                subtype=metadata.subtype,
                installed_format=target_format,
                installed_subtype=placed_subtype,
                installed_path=installed_path,
                hook_metadata=hook_metadata,
                from_collection=options.from_collection or (entry.from_collection if entry else None),
                installed_at=datetime.now(timezone.utc),
            ),
        )
        self.lockfile.write(lock)
        logger.info("Installed %s@%s to %s", package_id, version, installed_path)

        try:
            self.registry.record_download(package_id, version, self.client, target_format)
        except Exception as e:
            logger.warning("Could not record download of %s: %s", package_id, e)

        return InstallResult(
            package_id=package_id,
            version=version,
            format=target_format,
            installed_path=installed_path,
        )

    def uninstall(self, package_id: str) -> LockEntry:
        """Remove an installed package.

        The entry is read (not removed) first; its recorded location drives
        the cleanup, and the entry is deleted only afterwards.

        Args:
            package_id: Namespaced package id as recorded in the lock file.

        Returns:
            The lock entry that was removed.

        Raises:
            PackageNotInstalled: If the package is not in the lock file.
            UninstallPathUnknown: If a non-hook entry has no installed path.
        """
        lock = self.lockfile.read()
        entry = lock.get(package_id) if lock is not None else None
        if lock is None or entry is None:
            raise PackageNotInstalled(package_id)

        if entry.hook_metadata is not None:
            self._unmerge_hook(package_id, entry.hook_metadata)
        else:
            if not entry.installed_path:
                raise UninstallPathUnknown(package_id)
            self._remove_installed(package_id, entry.installed_path)

        lock.remove(package_id)
        self.lockfile.write(lock)
        logger.info("Uninstalled %s", package_id)
        return entry

    def install_from_lockfile(self, force: bool = False, as_format: str | None = None) -> RestoreResult:
        """Install every package recorded in the lock file at its locked version.

        Failures are collected rather than raised so that one broken package
        does not block the rest.

        Args:
            force: Reinstall packages whose files are already in place.
            as_format: Place every package in this format instead of the
                recorded placement format.

        Returns:
            RestoreResult with per-package results and failures.
        """
        result = RestoreResult()
        lock = self.lockfile.read()
        if lock is None:
            return result

        for package_id, entry in sorted(lock.packages.items()):
            options = InstallOptions(
                version=entry.version,
                as_format=as_format or entry.installed_format,
                frozen=True,
                force=force,
            )
            try:
                result.results.append(self.install(package_id, options))
            except (AipmError, OSError) as e:
                message = e.message if isinstance(e, AipmError) else str(e)
                logger.warning("Failed to restore %s: %s", package_id, message)
                result.failures.append((package_id, message))
        return result

    def list_installed(self) -> list[tuple[str, LockEntry]]:
        """List installed packages sorted by id."""
        lock = self.lockfile.read()
        if lock is None:
            return []
        return sorted(lock.packages.items())

    def read_lockfile(self) -> Lockfile:
        """Load the lock file, or an empty one."""
        return self.lockfile.read_or_create()

    def _placement_intact(self, entry: LockEntry) -> bool:
        if entry.hook_metadata is not None:
            if not self.settings.exists():
                return False
            return bool(self.settings.load().tagged(entry.hook_metadata.hook_id))
        if not entry.installed_path:
            return True
        return self.fs.exists(self.project_root / entry.installed_path)

    def _instructions_taken(self, entry: LockEntry | None, files: list[ExtractedFile]) -> bool:
        """Whether the root project-instructions file is unavailable to this package."""
        if len(files) > 1:
            return True
        if entry is not None and entry.installed_path == INSTRUCTIONS_FILE:
            return False
        return self.fs.exists(self.project_root / INSTRUCTIONS_FILE)

    def _write_files(
        self,
        package_id: str,
        placed_subtype: str,
        destination: Destination,
        files: list[ExtractedFile],
        previous: str | None = None,
    ) -> str:
        """Write extracted files and return the project-relative installed path.

        New files are written over the previous install of the same package
        before files the new version dropped are removed, so a failed write
        never leaves the locked directory without its files.
        """
        if len(files) == 1 and not destination.package_dir:
            self.fs.write_bytes(destination.resolve(self.project_root), files[0].content)
            return destination.file_path

        if len(files) == 1:
            files = [ExtractedFile(relative_path=destination.filename, content=files[0].content)]
            base = PurePosixPath(destination.dir)
        elif placed_subtype == "skill" and destination.package_dir:
            files = normalize_skill_files(package_id, files)
            base = PurePosixPath(destination.dir)
        elif destination.package_dir:
            base = PurePosixPath(destination.dir)
        else:
            base = PurePosixPath(destination.dir) / PurePosixPath(destination.filename).stem

        target = self.project_root / base
        stale = []
        if previous == str(base) and self.fs.is_dir(target):
            stale = self.fs.list_files(target)

        written = set()
        for file in files:
            path = target / file.relative_path
            self.fs.write_bytes(path, file.content)
            written.add(path)

        dropped = [path for path in stale if path not in written]
        for path in dropped:
            self.fs.unlink(path)
        if dropped:
            self.fs.prune_empty_dirs(target)
        logger.debug("Wrote %d files under %s", len(files), base)
        return str(base)

    def _merge_hook(
        self,
        package_id: str,
        version: str,
        files: list[ExtractedFile],
        entry: LockEntry | None,
    ) -> HookMetadata:
        json_files = [f for f in files if f.relative_path.lower().endswith(".json")]
        if len(json_files) == 1:
            payload = json_files[0]
        elif len(files) == 1:
            payload = files[0]
        else:
            raise InvalidHookPackage(package_id, "expected exactly one JSON hook file")
        fragment = parse_hook_fragment(package_id, payload.content)

        settings = self.settings.load()
        if entry is not None and entry.hook_metadata is not None:
            unmerge_hooks(settings, entry.hook_metadata.events, entry.hook_metadata.hook_id)
        hook_id = make_hook_id(package_id, version)
        events = merge_hooks(settings, fragment, hook_id)
        self.settings.save(settings)
        return HookMetadata(events=events, hook_id=hook_id)

    def _unmerge_hook(self, package_id: str, hook_metadata: HookMetadata) -> None:
        if not self.settings.exists():
            logger.warning(
                "Settings file not found at %s; removing %s from the lock file only",
                self.settings.relative_path,
                package_id,
            )
            return
        settings = self.settings.load()
        unmerge_hooks(settings, hook_metadata.events, hook_metadata.hook_id)
        self.settings.save(settings)

    def _remove_previous(self, package_id: str, entry: LockEntry, installed_path: str) -> None:
        """Clean up what an earlier install of the package left elsewhere."""
        if entry.hook_metadata is not None:
            if installed_path != self.settings.relative_path:
                self._unmerge_hook(package_id, entry.hook_metadata)
            return
        old = entry.installed_path
        if not old or old == installed_path:
            return
        old_path = PurePosixPath(old)
        new_path = PurePosixPath(installed_path)
        if old_path in new_path.parents or new_path in old_path.parents:
            return
        self._remove_installed(package_id, old)

    def _remove_installed(self, package_id: str, installed_path: str) -> None:
        root = self.project_root.resolve()
        path = (self.project_root / installed_path).resolve()
        if path == root or root not in path.parents:
            raise UninstallPathUnknown(package_id)

        if not self.fs.exists(path):
            logger.warning("%s is already gone; nothing to delete for %s", installed_path, package_id)
        elif self.fs.is_dir(path):
            self.fs.rmtree(path)
        else:
            self.fs.unlink(path)
