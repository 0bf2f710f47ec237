"""Claude Code platform routing."""

from __future__ import annotations

from aipm.platforms.base import BasePlatform, Destination

SKILL_MANIFEST = "SKILL.md"
SETTINGS_FILE = "settings.json"


class ClaudePlatform(BasePlatform):
    """Claude Code: skills get their own directory, hooks merge into settings."""

    name = "claude"
    root_dir = ".claude"
    subtype_dirs = {
        "agent": "agents",
        "skill": "skills",
        "slash-command": "commands",
        "hook": "",
    }
    fallback_subtype = "agent"

    @property
    def settings_path(self) -> str:
        """Project-relative path of the shared host settings document."""
        return f"{self.root_dir}/{SETTINGS_FILE}"

    def route(self, subtype: str, name: str, *, instructions_exist: bool = False) -> Destination:
        """Derive the destination of a package.

        A skill always lives in ``.claude/skills/<name>/SKILL.md``; a hook
        targets the settings document rather than a file of its own.
        """
        placed = self.effective_subtype(subtype)
        if placed == "skill":
            return Destination(
                dir=f"{self.directory_for('skill')}/{name}",
                filename=SKILL_MANIFEST,
                package_dir=True,
            )
        if placed == "hook":
            return Destination(dir=self.root_dir, filename=SETTINGS_FILE)
        return super().route(placed, name)
