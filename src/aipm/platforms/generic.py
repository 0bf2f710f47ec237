"""Generic prompt routing."""

from __future__ import annotations

from aipm.platforms.base import BasePlatform


class GenericPlatform(BasePlatform):
    """Ecosystem-neutral prompts in ``.prompts``."""

    name = "generic"
    root_dir = ".prompts"
