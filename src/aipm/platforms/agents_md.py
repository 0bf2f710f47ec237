"""AGENTS.md project-instructions routing."""

from __future__ import annotations

from aipm.platforms.base import BasePlatform, Destination

INSTRUCTIONS_FILE = "AGENTS.md"


class AgentsMdPlatform(BasePlatform):
    """Project-wide ``AGENTS.md`` instructions.

    The root-level file is only claimed when it does not exist yet, so an
    unrelated project-wide instructions file is never overwritten.
    """

    name = "agents.md"
    root_dir = ".agents"

    def route(self, subtype: str, name: str, *, instructions_exist: bool = False) -> Destination:
        """Derive the destination of a package.

        Args:
            subtype: Native or requested subtype.
            name: Namespace-stripped package name.
            instructions_exist: Whether ``AGENTS.md`` already exists at the
                project root.

        Returns:
            The root ``AGENTS.md`` if free, else ``.agents/<name>/AGENTS.md``.
        """
        self.effective_subtype(subtype)
        if not instructions_exist:
            return Destination(dir=".", filename=INSTRUCTIONS_FILE)
        return Destination(
            dir=f"{self.root_dir}/{name}",
            filename=INSTRUCTIONS_FILE,
            package_dir=True,
        )
