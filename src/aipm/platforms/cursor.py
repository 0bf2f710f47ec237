"""Cursor platform routing."""

from __future__ import annotations

from aipm.platforms.base import BasePlatform


class CursorPlatform(BasePlatform):
    """Cursor: rules use the ``.mdc`` extension; commands and agents are plain markdown."""

    name = "cursor"
    root_dir = ".cursor"
    subtype_dirs = {
        "rule": "rules",
        "agent": "agents",
        "slash-command": "commands",
    }
    fallback_subtype = "rule"
    rule_extension = ".mdc"

    def extension_for(self, subtype: str) -> str:
        """Get the single-file extension for a subtype."""
        if subtype == "rule":
            return self.rule_extension
        return self.extension
