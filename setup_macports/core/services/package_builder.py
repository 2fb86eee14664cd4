"""
Package URL builder — where to download the MacPorts installer.

Pure: no I/O. Only macOS releases MacPorts publishes a ``.pkg`` for are
accepted; anything else is an error, never a best guess.
"""

from __future__ import annotations

import re

from setup_macports.core.models.platform import PlatformInfo
from setup_macports.core.models.settings import Settings
from setup_macports.core.services.platform_detector import UnsupportedPlatformError

RELEASES_BASE_URL = "https://github.com/macports/macports-base/releases/download"

# Table key → (pkg version segment, pkg release name)
MACOS_PKG_VERSIONS: dict[str, tuple[str, str]] = {
    "10.10": ("10.10", "Yosemite"),
    "10.11": ("10.11", "ElCapitan"),
    "10.12": ("10.12", "Sierra"),
    "10.13": ("10.13", "HighSierra"),
    "10.14": ("10.14", "Mojave"),
    "10.15": ("10.15", "Catalina"),
    "11": ("11", "BigSur"),
    "12": ("12", "Monterey"),
    "13": ("13", "Ventura"),
    "14": ("14", "Sonoma"),
    "15": ("15", "Sequoia"),
    "26": ("26", "Tahoe"),
}

_VERSION_RE = re.compile(r"^(\d+)(?:\.(\d+))?")


class PackageBuilder:
    """Construct download URLs for MacPorts installer packages."""

    def table_key(self, version_number: str) -> str:
        """Key into MACOS_PKG_VERSIONS for a dotted version number.

        Raises:
            UnsupportedPlatformError: If the number does not start with digits.
        """
        match = _VERSION_RE.match(version_number)
        if not match:
            raise UnsupportedPlatformError(f"Could not parse macOS version: {version_number}")
        major, minor = match.group(1), match.group(2)
        if major == "10" and minor is not None:
            return f"10.{minor}"
        return major

    def build_url(self, settings: Settings, platform: PlatformInfo) -> str:
        """Build the package URL for download.

        Raises:
            UnsupportedPlatformError: For a macOS release with no package.
        """
        key = self.table_key(platform.version_number)
        info = MACOS_PKG_VERSIONS.get(key)
        if info is None:
            raise UnsupportedPlatformError(
                f"Unsupported macOS version: {key}. "
                f"Supported versions: {', '.join(MACOS_PKG_VERSIONS)}"
            )

        pkg_version, name = info
        version = settings.effective_version
        filename = f"MacPorts-{version}-{pkg_version}-{name}.pkg"
        return f"{RELEASES_BASE_URL}/v{version}/{filename}"
