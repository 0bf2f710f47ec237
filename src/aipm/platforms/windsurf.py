"""Windsurf platform routing."""

from __future__ import annotations

from aipm.platforms.base import BasePlatform


class WindsurfPlatform(BasePlatform):
    """Windsurf: every subtype is a rule file."""

    name = "windsurf"
    root_dir = ".windsurf"
    subtype_dirs = {"rule": "rules"}
    fallback_subtype = "rule"
