"""GitHub Copilot platform routing."""

from __future__ import annotations

from aipm.platforms.base import BasePlatform


class CopilotPlatform(BasePlatform):
    """GitHub Copilot: all subtypes live in ``.github/instructions``."""

    name = "copilot"
    root_dir = ".github/instructions"
