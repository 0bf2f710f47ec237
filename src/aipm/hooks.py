"""Merging hook packages into the shared host settings document.

The host document maps event names to arrays of hook entries and is edited
by many independently installed packages, as well as by the host tool
itself. Every entry a package contributes carries a tag
``"<packageId>@<version>"``; the tag is the only correlation key between a
lock entry and the document, never the entry content.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from aipm.exceptions import InvalidHookPackage, SettingsDocumentInvalid
from aipm.filesystem import RealFileSystem
from aipm.platforms.claude import ClaudePlatform
from aipm.protocols import FileSystem

logger = logging.getLogger(__name__)

HOOK_TAG = "__aipm_hook_id"


def make_hook_id(package_id: str, version: str) -> str:
    """Build the tag stored on every entry a package contributes."""
    return f"{package_id}@{version}"


class HookEntry(BaseModel):
    """One hook entry; the body is owned by the host tool and kept as-is."""

    model_config = ConfigDict(extra="allow")

    hook_id: str | None = Field(default=None, alias=HOOK_TAG)

    def to_document(self) -> dict[str, Any]:
        """Serialize with the tag last, omitting it on foreign entries."""
        data = dict(self.model_extra or {})
        if self.hook_id is not None:
            data[HOOK_TAG] = self.hook_id
        return data


class HookFragment(BaseModel):
    """Payload of a hook package: ``{"hooks": {event: [entry, ...]}}``."""

    model_config = ConfigDict(extra="allow")

    hooks: dict[str, list[HookEntry]]


class HostSettings(BaseModel):
    """The host settings document.

    Only ``hooks`` is modelled; every other top-level key belongs to the
    host tool and is written back untouched.
    """

    model_config = ConfigDict(extra="allow")

    hooks: dict[str, list[HookEntry]] = Field(default_factory=dict)

    def to_document(self) -> dict[str, Any]:
        """Serialize to the on-disk JSON object.

        An empty hooks map is omitted entirely so that merging and then
        unmerging a package restores the original document.
        """
        data = self.model_dump(by_alias=True, exclude={"hooks"})
        if self.hooks:
            data["hooks"] = {
                event: [entry.to_document() for entry in entries]
                for event, entries in self.hooks.items()
            }
        return data

    def tagged(self, hook_id: str) -> dict[str, int]:
        """Count the entries carrying a tag, per event."""
        counts = {}
        for event, entries in self.hooks.items():
            count = sum(1 for entry in entries if entry.hook_id == hook_id)
            if count:
                counts[event] = count
        return counts


def parse_hook_fragment(package_id: str, content: bytes) -> HookFragment:
    """Parse and validate the payload of a hook package.

    Args:
        package_id: Package id (for error messages).
        content: Raw file content.

    Returns:
        The validated fragment.

    Raises:
        InvalidHookPackage: If the payload is not a JSON hook fragment with
            at least one event.
    """
    try:
        data = json.loads(content.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidHookPackage(package_id, f"not valid JSON ({e})") from e
    if not isinstance(data, dict):
        raise InvalidHookPackage(package_id, "top level must be an object")

    try:
        fragment = HookFragment.model_validate(data)
    except ValidationError as e:
        raise InvalidHookPackage(package_id, f"expected {{'hooks': {{event: [..]}}}} ({e})") from e

    if not any(fragment.hooks.values()):
        raise InvalidHookPackage(package_id, "declares no hook entries")
    return fragment


def _remove_tagged(settings: HostSettings, events: list[str], hook_id: str) -> None:
    for event in events:
        entries = settings.hooks.get(event)
        if entries is None:
            continue
        remaining = [entry for entry in entries if entry.hook_id != hook_id]
        if len(remaining) == len(entries):
            continue
        if remaining:
            settings.hooks[event] = remaining
        else:
            del settings.hooks[event]


def merge_hooks(settings: HostSettings, fragment: HookFragment, hook_id: str) -> list[str]:
    """Append a package's hook entries to the settings document.

    Entries already carrying ``hook_id`` are removed first, so merging the
    same package twice leaves one copy. Entries of other packages are never
    replaced, only appended after.

    Args:
        settings: Document to modify in place.
        fragment: Validated hook package payload.
        hook_id: Tag for the contributed entries.

    Returns:
        Events the package contributed to, in fragment order.
    """
    _remove_tagged(settings, list(settings.hooks), hook_id)

    events = []
    for event, entries in fragment.hooks.items():
        if not entries:
            continue
        target = settings.hooks.setdefault(event, [])
        for entry in entries:
            tagged = HookEntry.model_validate(
                {**entry.to_document(), HOOK_TAG: hook_id},
            )
            target.append(tagged)
        events.append(event)
    logger.debug("Merged hook %s into events %s", hook_id, events)
    return events


def unmerge_hooks(settings: HostSettings, events: list[str], hook_id: str) -> None:
    """Remove a package's tagged entries from the recorded events.

    Events left empty are deleted rather than kept as empty arrays.

    Args:
        settings: Document to modify in place.
        events: Events recorded in the package's lock entry.
        hook_id: Tag recorded in the package's lock entry.
    """
    _remove_tagged(settings, events, hook_id)
    logger.debug("Removed hook %s from events %s", hook_id, events)


class HookSettingsStore:
    """Reads and writes the host settings document of one project root."""

    def __init__(self, project_root: Path, filesystem: FileSystem | None = None) -> None:
        self.project_root = project_root
        self.fs = filesystem or RealFileSystem()
        self.relative_path = ClaudePlatform().settings_path
        self.path = project_root / self.relative_path

    def exists(self) -> bool:
        """Check whether the settings document exists."""
        return self.fs.exists(self.path)

    def load(self) -> HostSettings:
        """Load the settings document; a missing file is an empty document.

        Raises:
            SettingsDocumentInvalid: If the file is not a JSON object.
        """
        if not self.fs.exists(self.path):
            return HostSettings()
        try:
            data = json.loads(self.fs.read_text(self.path))
        except UnicodeDecodeError as e:
            raise SettingsDocumentInvalid(str(self.path), f"not valid UTF-8 ({e})") from e
        except json.JSONDecodeError as e:
            raise SettingsDocumentInvalid(str(self.path), f"invalid JSON ({e})") from e
        if not isinstance(data, dict):
            raise SettingsDocumentInvalid(str(self.path), "top level must be an object")
        try:
            return HostSettings.model_validate(data)
        except ValidationError as e:
            raise SettingsDocumentInvalid(str(self.path), str(e)) from e

    def save(self, settings: HostSettings) -> None:
        """Write the whole document back atomically."""
        self.fs.write_text_atomic(self.path, json.dumps(settings.to_document(), indent=2) + "\n")
