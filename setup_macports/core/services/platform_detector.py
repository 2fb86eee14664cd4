"""
Platform detection — macOS release name, release number, architecture.

Probes run once per setup. ``sw_vers`` is the primary source; when it
cannot run, the version is derived from the Darwin kernel release
(Darwin 24 = macOS 15).
"""

from __future__ import annotations

import logging
import platform as _platform
import re
import sys
from collections.abc import Callable

from setup_macports.adapters.base import CommandError, CommandRunner
from setup_macports.core.models.platform import PlatformInfo

logger = logging.getLogger(__name__)

# macOS version number → release name
MACOS_VERSIONS: dict[str, str] = {
    "10.6": "SnowLeopard",
    "10.7": "Lion",
    "10.8": "MountainLion",
    "10.9": "Mavericks",
    "10.10": "Yosemite",
    "10.11": "ElCapitan",
    "10.12": "Sierra",
    "10.13": "HighSierra",
    "10.14": "Mojave",
    "10.15": "Catalina",
    "11": "BigSur",
    "12": "Monterey",
    "13": "Ventura",
    "14": "Sonoma",
    "15": "Sequoia",
    "26": "Tahoe",
}

_ARCHITECTURES = {
    "arm64": "arm64",
    "aarch64": "arm64",
    "x86_64": "x86_64",
    "amd64": "x86_64",
}

_VERSION_RE = re.compile(r"^(\d+)(?:\.(\d+))?")


class UnsupportedPlatformError(Exception):
    """Raised when the host or its OS release is not supported."""


def release_name(version_number: str) -> str | None:
    """Look up the release name for a dotted macOS version number."""
    match = _VERSION_RE.match(version_number)
    if not match:
        return None
    major, minor = match.group(1), match.group(2)
    if major == "10" and minor is not None:
        return MACOS_VERSIONS.get(f"10.{minor}")
    return MACOS_VERSIONS.get(major)


def darwin_to_macos(kernel_release: str) -> str:
    """Map a Darwin kernel release (``24.1.0``) to a macOS version (``15.0``).

    Raises:
        UnsupportedPlatformError: If the release does not start with a number.
    """
    try:
        darwin_major = int(kernel_release.split(".")[0])
    except ValueError as e:
        raise UnsupportedPlatformError(f"Could not parse Darwin kernel release: {kernel_release!r}") from e
    if darwin_major >= 25:
        # Apple jumped from 15 to 26 with Darwin 25
        return f"{darwin_major + 1}.0"
    if darwin_major >= 20:
        return f"{darwin_major - 9}.0"
    return f"10.{darwin_major - 4}"


class PlatformDetector:
    """Detect the host platform.

    Args:
        runner: Used to run ``sw_vers``.
        system: Override of ``sys.platform`` (tests).
        machine: Override of ``platform.machine`` (tests).
        kernel_release: Override of ``platform.release`` (tests).
    """

    def __init__(
        self,
        runner: CommandRunner,
        system: str | None = None,
        machine: Callable[[], str] | None = None,
        kernel_release: Callable[[], str] | None = None,
    ):
        self._runner = runner
        self._system = system or sys.platform
        self._machine = machine or _platform.machine
        self._kernel_release = kernel_release or _platform.release

    def ensure_macos(self) -> None:
        if self._system != "darwin":
            raise UnsupportedPlatformError(
                f"This action only supports macOS runners. Current platform: {self._system}. "
                "MacPorts depends on the official PKG installer which is macOS-only."
            )

    def version_number(self) -> str:
        try:
            version = self._runner.capture("sw_vers", ["-productVersion"])
        except CommandError as e:
            logger.debug("Failed to run sw_vers: %s", e)
            release = self._kernel_release()
            logger.debug("Falling back to kernel release: %s", release)
            return darwin_to_macos(release)
        logger.debug("Detected macOS version: %s", version)
        return version

    def version_name(self, version_number: str) -> str:
        name = release_name(version_number)
        if name is None:
            logger.warning("Unknown macOS version: %s, returning 'Unknown'", version_number)
            return "Unknown"
        return name

    def architecture(self) -> str:
        machine = self._machine().lower()
        arch = _ARCHITECTURES.get(machine)
        if arch is None:
            logger.warning("Unknown architecture: %s", machine)
            return "unknown"
        return arch

    def detect(self) -> PlatformInfo:
        """Detect platform information.

        Raises:
            UnsupportedPlatformError: When not running on macOS.
        """
        self.ensure_macos()
        number = self.version_number()
        return PlatformInfo(
            version=self.version_name(number),
            version_number=number,
            architecture=self.architecture(),
        )
