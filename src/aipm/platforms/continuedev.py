"""Continue platform routing."""

from __future__ import annotations

from aipm.platforms.base import BasePlatform


class ContinuePlatform(BasePlatform):
    """Continue: prompts and slash commands share ``.continue/prompts``."""

    name = "continue"
    root_dir = ".continue"
    subtype_dirs = {
        "rule": "rules",
        "prompt": "prompts",
        "slash-command": "prompts",
    }
    fallback_subtype = "rule"
