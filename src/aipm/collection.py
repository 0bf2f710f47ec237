"""Collection installation.

A collection is a flat, ordered list of member packages. Members are
installed strictly one after another in plan order, since a later member
(such as a hook) may rely on an earlier one. A failed required member aborts
the rest of the collection; members installed before it keep their lock
entries. A failed optional member is logged and skipped over.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from aipm.exceptions import AipmError, RequiredCollectionMemberFailed
from aipm.install import Installer
from aipm.lockfile import CollectionProvenance
from aipm.protocols import RegistryClient
from aipm.registry import CollectionPlanEntry
from aipm.resolver import LATEST, parse_collection_ref
from aipm.types import CollectionFailure, CollectionOptions, CollectionResult, InstallOptions

logger = logging.getLogger(__name__)

# Called as (position, total, member, outcome) where outcome is one of
# "installed", "skipped" or "failed".
ProgressCallback = Callable[[int, int, CollectionPlanEntry, str], None]


def member_ref(member: CollectionPlanEntry) -> str:
    """Package reference used to install a member."""
    if not member.version or member.version == LATEST:
        return member.package_id
    return f"{member.package_id}@{member.version}"


class CollectionInstaller:
    """Installs every member of a collection through an Installer."""

    def __init__(self, installer: Installer, registry: RegistryClient) -> None:
        """Initialize with required dependencies.

        Args:
            installer: Installer used for each member.
            registry: Registry collaborator serving collection plans.
        """
        self.installer = installer
        self.registry = registry

    @classmethod
    def create(cls, installer: Installer) -> CollectionInstaller:
        """Create a collection installer sharing the installer's registry."""
        return cls(installer=installer, registry=installer.registry)

    def install(
        self,
        collection_ref: str,
        options: CollectionOptions | None = None,
        progress: ProgressCallback | None = None,
    ) -> CollectionResult:
        """Install a collection.

        Args:
            collection_ref: ``[@]scope/slug[@version]`` or ``slug``.
            options: Collection install options.
            progress: Optional per-member callback.

        Returns:
            CollectionResult with installed/failed/skipped counts.

        Raises:
            CollectionNotFound: If the registry has no such collection.
            RequiredCollectionMemberFailed: If a required member failed; the
                exception carries the partial result.
        """
        options = options or CollectionOptions()
        ref = parse_collection_ref(collection_ref)
        plan = self.registry.get_collection_plan(ref.scope, ref.name_slug, ref.version)

        result = CollectionResult(collection_key=plan.key, dry_run=options.dry_run)
        members = plan.packages
        if options.skip_optional:
            members = [m for m in plan.packages if m.required]
            result.skipped = len(plan.packages) - len(members)
        result.planned = list(members)

        if options.dry_run:
            result.installed = len(members)
            logger.info("Dry run of %s: %d members", plan.key, len(members))
            return result

        provenance = CollectionProvenance(
            scope=plan.scope,
            name_slug=plan.name_slug,
            version=plan.version,
        )
        completed = []
        total = len(members)
        for position, member in enumerate(members, 1):
            install_options = InstallOptions(
                as_format=options.as_format or member.format,
                force=options.force,
                from_collection=provenance,
            )
            try:
                outcome = self.installer.install(member_ref(member), install_options)
            except (AipmError, OSError) as e:
                message = e.message if isinstance(e, AipmError) else str(e)
                result.failed += 1
                result.failures.append(
                    CollectionFailure(package_id=member.package_id, required=member.required, error=message)
                )
                if progress:
                    progress(position, total, member, "failed")
                if member.required:
                    raise RequiredCollectionMemberFailed(
                        plan.key, member.package_id, message, result=result
                    ) from e
                logger.warning("Optional package %s failed: %s", member.package_id, message)
                continue

            completed.append(member.package_id)
            if outcome.skipped:
                result.skipped += 1
                state = "skipped"
            else:
                result.installed += 1
                result.installed_ids.append(member.package_id)
                state = "installed"
            if progress:
                progress(position, total, member, state)

        lock = self.installer.read_lockfile()
        lock.add_collection(plan.key, plan.scope, plan.name_slug, plan.version, completed)
        self.installer.lockfile.write(lock)
        return result
