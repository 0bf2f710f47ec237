"""Frontmatter parsing and skill manifest detection.

Artifact content is never validated semantically; frontmatter is only read
to pick the manifest of a multi-file skill whose author did not name it
``SKILL.md``.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import PurePosixPath
from typing import Any

import yaml

from aipm.exceptions import MalformedSkillPackage
from aipm.platforms.claude import SKILL_MANIFEST
from aipm.resolver import strip_namespace
from aipm.types import ExtractedFile

logger = logging.getLogger(__name__)


class FrontmatterResult:
    """Result of parsing frontmatter from content."""

    __slots__ = ("data", "errors", "success")

    def __init__(self, data: dict[str, Any] | None = None, errors: list[str] | None = None) -> None:
        """Initialize frontmatter result.

        Args:
            data: The parsed frontmatter mapping.
            errors: List of parsing errors encountered.
        """
        self.data = data or {}
        self.errors = errors or []
        self.success = len(self.errors) == 0


def parse_frontmatter(content: str) -> FrontmatterResult:
    """Parse YAML frontmatter from markdown content.

    Args:
        content: The full markdown content with optional frontmatter.

    Returns:
        FrontmatterResult with the parsed mapping and any errors.

    Example:
        >>> result = parse_frontmatter("---\\nname: test\\n---\\nBody")
        >>> result.data
        {'name': 'test'}
    """
    if not content.startswith("---"):
        return FrontmatterResult(errors=["Content must have YAML frontmatter"])

    try:
        end_idx = content.index("---", 3)
    except ValueError:
        return FrontmatterResult(errors=["Invalid frontmatter: missing closing ---"])

    try:
        data = yaml.safe_load(content[3:end_idx].strip()) or {}
    except yaml.YAMLError as e:
        return FrontmatterResult(errors=[f"Invalid frontmatter YAML: {e}"])
    if not isinstance(data, dict):
        return FrontmatterResult(errors=["Frontmatter must be a mapping"])
    return FrontmatterResult(data=data)


def _frontmatter_name(file: ExtractedFile) -> str | None:
    try:
        text = file.content.decode("utf-8")
    except UnicodeDecodeError:
        return None
    result = parse_frontmatter(text)
    name = result.data.get("name") if result.success else None
    return str(name) if name is not None else None


def find_skill_manifest(package_id: str, files: list[ExtractedFile]) -> ExtractedFile:
    """Pick the manifest of a multi-file skill.

    In order: a root ``SKILL.md``; a root ``skill.md`` in any case; the only
    root markdown file whose frontmatter names the skill; the only root
    markdown file.

    Args:
        package_id: Package id; its stripped name is the skill name.
        files: Extracted files.

    Returns:
        The file that becomes ``SKILL.md``.

    Raises:
        MalformedSkillPackage: If no unambiguous candidate exists.
    """
    root_markdown = [
        f
        for f in files
        if len(PurePosixPath(f.relative_path).parts) == 1
        and f.relative_path.lower().endswith(".md")
    ]

    for f in root_markdown:
        if f.relative_path == SKILL_MANIFEST:
            return f
    for f in root_markdown:
        if f.relative_path.lower() == SKILL_MANIFEST.lower():
            return f

    skill_name = strip_namespace(package_id)
    named = [f for f in root_markdown if _frontmatter_name(f) == skill_name]
    if len(named) == 1:
        return named[0]
    if len(root_markdown) == 1:
        return root_markdown[0]
    raise MalformedSkillPackage(package_id, SKILL_MANIFEST)


def normalize_skill_files(package_id: str, files: list[ExtractedFile]) -> list[ExtractedFile]:
    """Rename the skill manifest candidate to ``SKILL.md``.

    Raises:
        MalformedSkillPackage: If no unambiguous candidate exists.
    """
    manifest = find_skill_manifest(package_id, files)
    if manifest.relative_path == SKILL_MANIFEST:
        return list(files)

    logger.info("Renaming %s to %s in skill %s", manifest.relative_path, SKILL_MANIFEST, package_id)
    return [
        replace(f, relative_path=SKILL_MANIFEST) if f is manifest else f
        for f in files
    ]
