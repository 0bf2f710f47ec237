"""Kiro platform routing."""

from __future__ import annotations

from aipm.platforms.base import BasePlatform


class KiroPlatform(BasePlatform):
    """Kiro: hooks in ``.kiro/hooks``, everything else is steering."""

    name = "kiro"
    root_dir = ".kiro"
    subtype_dirs = {
        "rule": "steering",
        "hook": "hooks",
    }
    fallback_subtype = "rule"
