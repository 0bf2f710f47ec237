"""Tests for collection module."""

from __future__ import annotations

from pathlib import Path

import pytest

from aipm.collection import CollectionInstaller, member_ref
from aipm.exceptions import CollectionNotFound, RequiredCollectionMemberFailed
from aipm.install import Installer
from aipm.lockfile import LOCKFILE_NAME
from aipm.registry import CollectionPlanEntry
from aipm.types import CollectionOptions

from conftest import FakeRegistry, build_single_file


@pytest.fixture
def starter(fake_registry: FakeRegistry, sample_hook_fragment: str) -> str:
    """Publish three rules and a hook, and the acme/starter collection using them."""
    for name in ("first", "second", "third"):
        fake_registry.publish(f"@acme/{name}", "1.0.0", build_single_file(f"# {name}"))
    fake_registry.publish(
        "@acme/safety-hook",
        "1.0.0",
        build_single_file(sample_hook_fragment),
        format="claude",
        subtype="hook",
    )
    fake_registry.add_collection(
        "acme",
        "starter",
        [
            {"packageId": "@acme/first"},
            {"packageId": "@acme/second", "required": False, "reason": "nice to have"},
            {"packageId": "@acme/safety-hook", "format": "claude"},
        ],
    )
    return "@acme/starter"


class TestMemberRef:
    """Tests for member_ref function."""

    def test_latest_is_bare(self) -> None:
        """Test the latest sentinel is not appended."""
        assert member_ref(CollectionPlanEntry(package_id="@acme/first")) == "@acme/first"

    def test_pinned(self) -> None:
        """Test a pinned member carries its version."""
        assert member_ref(CollectionPlanEntry(package_id="@acme/first", version="1.2.0")) == "@acme/first@1.2.0"


class TestCollectionInstall:
    """Tests for CollectionInstaller.install."""

    def test_installs_every_member(
        self,
        collection_installer: CollectionInstaller,
        installer: Installer,
        project_root: Path,
        starter: str,
    ) -> None:
        """Test all members are installed and the collection is recorded."""
        result = collection_installer.install(starter)

        assert result.success
        assert result.installed == 3
        assert result.installed_ids == ["@acme/first", "@acme/second", "@acme/safety-hook"]
        assert (project_root / ".cursor/rules/first.mdc").exists()
        assert (project_root / ".claude/settings.json").exists()

        lock = installer.read_lockfile()
        assert lock.collections["acme/starter"].packages == result.installed_ids
        provenance = lock.get("@acme/first").from_collection
        assert (provenance.scope, provenance.name_slug) == ("acme", "starter")

    def test_progress_reported_in_order(
        self,
        collection_installer: CollectionInstaller,
        starter: str,
    ) -> None:
        """Test the callback sees each member once, in plan order."""
        seen = []

        collection_installer.install(
            starter,
            progress=lambda position, total, member, state: seen.append(
                (position, total, member.package_id, state)
            ),
        )

        assert seen == [
            (1, 3, "@acme/first", "installed"),
            (2, 3, "@acme/second", "installed"),
            (3, 3, "@acme/safety-hook", "installed"),
        ]

    def test_required_failure_aborts(
        self,
        collection_installer: CollectionInstaller,
        installer: Installer,
        fake_registry: FakeRegistry,
    ) -> None:
        """Test later members are not attempted after a required failure."""
        fake_registry.publish("@acme/first", "1.0.0", build_single_file("# first"))
        fake_registry.publish("@acme/third", "1.0.0", build_single_file("# third"))
        fake_registry.add_collection(
            "acme",
            "broken",
            [
                {"packageId": "@acme/first"},
                {"packageId": "@acme/missing"},
                {"packageId": "@acme/third"},
            ],
        )

        with pytest.raises(RequiredCollectionMemberFailed) as exc_info:
            collection_installer.install("@acme/broken")

        error = exc_info.value
        assert "Failed to install required package" in error.message
        assert error.package_id == "@acme/missing"
        assert error.result.installed == 1
        assert error.result.failed == 1
        assert not error.result.success

        lock = installer.read_lockfile()
        assert lock.get("@acme/first") is not None
        assert lock.get("@acme/third") is None
        assert "acme/broken" not in lock.collections

    def test_optional_failure_continues(
        self,
        collection_installer: CollectionInstaller,
        installer: Installer,
        fake_registry: FakeRegistry,
    ) -> None:
        """Test an optional failure is recorded but the collection succeeds."""
        fake_registry.publish("@acme/first", "1.0.0", build_single_file("# first"))
        fake_registry.publish("@acme/third", "1.0.0", build_single_file("# third"))
        fake_registry.add_collection(
            "acme",
            "partial",
            [
                {"packageId": "@acme/first"},
                {"packageId": "@acme/missing", "required": False},
                {"packageId": "@acme/third"},
            ],
        )

        result = collection_installer.install("acme/partial")

        assert result.success
        assert result.installed == 2
        assert result.failed == 1
        assert result.failures[0].package_id == "@acme/missing"
        assert not result.failures[0].required
        assert installer.read_lockfile().collections["acme/partial"].packages == [
            "@acme/first",
            "@acme/third",
        ]

    def test_optional_member_with_unreadable_settings(
        self,
        collection_installer: CollectionInstaller,
        project_root: Path,
        fake_registry: FakeRegistry,
        sample_hook_fragment: str,
    ) -> None:
        """Test an optional hook blocked by a corrupt settings file is skipped."""
        fake_registry.publish(
            "@acme/safety-hook", "1.0.0", build_single_file(sample_hook_fragment), format="claude", subtype="hook"
        )
        fake_registry.publish("@acme/first", "1.0.0", build_single_file("# first"))
        fake_registry.add_collection(
            "acme",
            "guarded",
            [
                {"packageId": "@acme/safety-hook", "required": False},
                {"packageId": "@acme/first"},
            ],
        )
        settings_path = project_root / ".claude/settings.json"
        settings_path.parent.mkdir(parents=True)
        settings_path.write_bytes(b'{"model": "\xff"}')

        result = collection_installer.install("acme/guarded")

        assert result.success
        assert (result.installed, result.failed) == (1, 1)
        assert result.failures[0].package_id == "@acme/safety-hook"
        assert settings_path.read_bytes() == b'{"model": "\xff"}'

    def test_dry_run_has_no_side_effects(
        self,
        collection_installer: CollectionInstaller,
        project_root: Path,
        fake_registry: FakeRegistry,
        starter: str,
    ) -> None:
        """Test a dry run only enumerates the plan."""
        result = collection_installer.install(starter, CollectionOptions(dry_run=True))

        assert result.dry_run
        assert result.installed == 3
        assert [m.package_id for m in result.planned] == ["@acme/first", "@acme/second", "@acme/safety-hook"]
        assert fake_registry.downloads == []
        assert not (project_root / LOCKFILE_NAME).exists()

    def test_skip_optional(
        self,
        collection_installer: CollectionInstaller,
        fake_registry: FakeRegistry,
        starter: str,
    ) -> None:
        """Test optional members are left out and counted as skipped."""
        result = collection_installer.install(starter, CollectionOptions(skip_optional=True))

        assert result.installed == 2
        assert result.skipped == 1
        assert all("second" not in url for url, _ in fake_registry.downloads)

    def test_already_installed_member_skipped(
        self,
        collection_installer: CollectionInstaller,
        installer: Installer,
        starter: str,
    ) -> None:
        """Test members the lock file already satisfies are counted as skipped."""
        installer.install("@acme/first")

        result = collection_installer.install(starter)

        assert result.installed == 2
        assert result.skipped == 1
        assert installer.read_lockfile().collections["acme/starter"].packages == [
            "@acme/first",
            "@acme/second",
            "@acme/safety-hook",
        ]

    def test_as_format_overrides_members(
        self,
        collection_installer: CollectionInstaller,
        project_root: Path,
        starter: str,
    ) -> None:
        """Test a collection-wide format applies to every member."""
        collection_installer.install(starter, CollectionOptions(as_format="claude"))

        assert (project_root / ".claude/agents/first.md").exists()
        assert (project_root / ".claude/agents/second.md").exists()
        assert not (project_root / ".cursor").exists()

    def test_unknown_collection(self, collection_installer: CollectionInstaller) -> None:
        """Test a missing collection raises."""
        with pytest.raises(CollectionNotFound):
            collection_installer.install("acme/nothing")
