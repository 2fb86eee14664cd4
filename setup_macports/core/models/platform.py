"""
Platform model — what host we are running on.

Created once at the start of a run by the platform detector and never
mutated afterwards.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict

DEFAULT_PLATFORM_MAJOR = "15"

_MAJOR_RE = re.compile(r"^(\d+)")


class PlatformInfo(BaseModel):
    """macOS release name, release number, and CPU architecture."""

    model_config = ConfigDict(frozen=True)

    version: str           # release name, e.g. "Sequoia"
    version_number: str    # dotted number, e.g. "15.1"
    architecture: str      # arm64, x86_64, unknown

    @property
    def major(self) -> str:
        """Leading integer of version_number, or the default bucket."""
        match = _MAJOR_RE.match(self.version_number)
        return match.group(1) if match else DEFAULT_PLATFORM_MAJOR

    def describe(self) -> str:
        return f"{self.version} ({self.version_number}) {self.architecture}"
