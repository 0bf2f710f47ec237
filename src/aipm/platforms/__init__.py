"""Per-ecosystem destination routing.

``route`` is a pure function of (format, subtype, package name): it never
touches the filesystem, so install and uninstall derive identical paths.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from aipm.exceptions import UnknownFormat
from aipm.platforms.agents_md import AgentsMdPlatform
from aipm.platforms.base import SUBTYPES, BasePlatform, Destination
from aipm.platforms.claude import ClaudePlatform
from aipm.platforms.continuedev import ContinuePlatform
from aipm.platforms.copilot import CopilotPlatform
from aipm.platforms.cursor import CursorPlatform
from aipm.platforms.generic import GenericPlatform
from aipm.platforms.kiro import KiroPlatform
from aipm.platforms.windsurf import WindsurfPlatform
from aipm.resolver import strip_namespace

CANONICAL = "canonical"


@runtime_checkable
class Platform(Protocol):
    """Protocol defining the interface for ecosystem routing rules.

    New ecosystems are added by registering a class in ``PLATFORMS``
    without modifying existing ones.
    """

    name: str
    root_dir: str

    def effective_subtype(self, subtype: str) -> str:
        """Map a subtype to the subtype it is placed as."""
        raise NotImplementedError

    def route(self, subtype: str, name: str, *, instructions_exist: bool = False) -> Destination:
        """Derive the destination of a namespace-stripped package name."""
        raise NotImplementedError


__all__ = [
    "CANONICAL",
    "FORMATS",
    "PLATFORMS",
    "SUBTYPES",
    "AgentsMdPlatform",
    "BasePlatform",
    "ClaudePlatform",
    "ContinuePlatform",
    "CopilotPlatform",
    "CursorPlatform",
    "Destination",
    "GenericPlatform",
    "KiroPlatform",
    "Platform",
    "WindsurfPlatform",
    "effective_format",
    "effective_subtype",
    "get_platform",
    "route",
]


PLATFORMS: dict[str, type[Platform]] = {
    "cursor": CursorPlatform,
    "claude": ClaudePlatform,
    "continue": ContinuePlatform,
    "windsurf": WindsurfPlatform,
    "copilot": CopilotPlatform,
    "kiro": KiroPlatform,
    "agents.md": AgentsMdPlatform,
    "generic": GenericPlatform,
}

FORMATS: tuple[str, ...] = tuple(PLATFORMS)


def get_platform(name: str) -> Platform:
    """Get a platform instance by format name.

    Args:
        name: Format name (cursor, claude, continue, windsurf, copilot, kiro,
            agents.md, generic).

    Returns:
        Platform instance.

    Raises:
        UnknownFormat: If the format is not supported.
    """
    if name not in PLATFORMS:
        raise UnknownFormat(name)
    return PLATFORMS[name]()


def effective_format(native_format: str, requested_format: str | None) -> str:
    """Get the format a package is placed as.

    A conversion request overrides the native format for placement only;
    ``canonical`` (or no request) means the native format.
    """
    if requested_format is None or requested_format == CANONICAL:
        return native_format
    return requested_format


def effective_subtype(format: str, subtype: str) -> str:
    """Get the subtype a package is placed as within a format.

    Raises:
        UnknownFormat: If the format or subtype is not supported.
    """
    return get_platform(format).effective_subtype(subtype)


def route(
    format: str,
    subtype: str,
    package_name: str,
    *,
    instructions_exist: bool = False,
) -> Destination:
    """Map (format, subtype, package name) to a destination.

    Args:
        format: Effective format.
        subtype: Native or requested subtype.
        package_name: Package name or id; any namespace prefix is stripped.
        instructions_exist: Whether the project-wide ``AGENTS.md`` exists.

    Returns:
        Destination relative to the project root.

    Raises:
        UnknownFormat: If (format, subtype) is outside the supported set.
    """
    return get_platform(format).route(
        subtype,
        strip_namespace(package_name),
        instructions_exist=instructions_exist,
    )
