"""Base platform implementation with shared routing behavior.

Every ecosystem owns one root directory; the subtype optionally selects a
sub-directory inside it. Ecosystems vary in which subtypes get their own
directory, which subtype everything else is coerced to, and the file
extension of single-file installs.

Pattern: Template Method - the base class defines the routing skeleton,
subclasses provide the per-ecosystem tables and override the special cases.
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from aipm.exceptions import UnknownFormat

SUBTYPES: tuple[str, ...] = (
    "rule",
    "agent",
    "skill",
    "slash-command",
    "prompt",
    "hook",
    "workflow",
    "tool",
    "template",
    "chatmode",
)


@dataclass(frozen=True)
class Destination:
    """Where a package is placed, relative to the project root.

    Attributes:
        dir: POSIX directory relative to the project root ("." for the root).
        filename: File name used for single-file installs.
        package_dir: True when ``dir`` belongs to this package alone, so
            multi-file payloads are written straight into it.
    """

    dir: str
    filename: str
    package_dir: bool = False

    @property
    def file_path(self) -> str:
        """Project-relative POSIX path of the single-file target."""
        return str(PurePosixPath(self.dir) / self.filename)

    def resolve(self, project_root: Path) -> Path:
        """Absolute path of the single-file target under a project root."""
        return project_root / self.file_path


class BasePlatform(ABC):
    """Base class for ecosystem routing rules.

    Subclasses set:
        name: Format identifier.
        root_dir: Directory the ecosystem owns, relative to the project root.
        subtype_dirs: Subtypes with a dedicated sub-directory.
        fallback_subtype: Subtype every other subtype is placed as, or None
            to keep the subtype and use ``root_dir`` directly.
    """

    name: str
    root_dir: str
    extension: str = ".md"
    subtype_dirs: dict[str, str] = {}
    fallback_subtype: str | None = None

    def effective_subtype(self, subtype: str) -> str:
        """Map a subtype to the subtype it is placed as in this ecosystem.

        Raises:
            UnknownFormat: If the subtype is not a known subtype.
        """
        if subtype not in SUBTYPES:
            raise UnknownFormat(self.name, subtype)
        if subtype in self.subtype_dirs or self.fallback_subtype is None:
            return subtype
        return self.fallback_subtype

    def directory_for(self, subtype: str) -> str:
        """Get the directory for an (already effective) subtype."""
        sub = self.subtype_dirs.get(subtype)
        if sub is None and self.fallback_subtype is not None:
            sub = self.subtype_dirs.get(self.fallback_subtype)
        return f"{self.root_dir}/{sub}" if sub else self.root_dir

    def extension_for(self, subtype: str) -> str:
        """Get the single-file extension for an (already effective) subtype."""
        return self.extension

    def route(self, subtype: str, name: str, *, instructions_exist: bool = False) -> Destination:
        """Derive the destination of a package.

        Args:
            subtype: Native or requested subtype.
            name: Namespace-stripped package name.
            instructions_exist: Whether the project-wide instructions file
                already exists (only the agents.md ecosystem consults it).

        Returns:
            Destination for the package.

        Raises:
            UnknownFormat: If the subtype is not a known subtype.
        """
        placed = self.effective_subtype(subtype)
        return Destination(
            dir=self.directory_for(placed),
            filename=f"{name}{self.extension_for(placed)}",
        )
