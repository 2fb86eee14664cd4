"""
Installer — download the MacPorts package and run it.

The package always installs into /opt/local; a custom prefix is
handled afterwards by moving the tree. All privileged steps go through
``sudo -n`` so a runner without passwordless sudo fails instead of
hanging on a prompt.
"""

from __future__ import annotations

import logging
import os
import tempfile
import time
from pathlib import Path

from setup_macports.adapters.base import CommandError, CommandRunner
from setup_macports.core.models.settings import DEFAULT_PREFIX, Settings

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = 300


def current_user() -> str:
    return os.environ.get("USER") or os.environ.get("USERNAME") or "runner"


class MacPortsInstaller:
    """Download and install the MacPorts PKG.

    Args:
        runner: Process runner.
        download_dir: Where the package is downloaded (default: temp dir).
        default_prefix: Where the package installs itself.
    """

    def __init__(
        self,
        runner: CommandRunner,
        download_dir: str | None = None,
        default_prefix: str = DEFAULT_PREFIX,
    ):
        self._runner = runner
        self._download_dir = download_dir or tempfile.gettempdir()
        self._default_prefix = default_prefix

    def download(self, package_url: str) -> Path:
        """Download the package with curl.

        Raises:
            CommandError: If the download fails.
        """
        dest = Path(self._download_dir) / f"macports-installer-{int(time.time() * 1000)}.pkg"
        logger.info("Downloading MacPorts installer from %s...", package_url)
        self._runner.check(
            "curl",
            ["-fsSL", "--retry", "3", "--max-time", str(DOWNLOAD_TIMEOUT), "-o", str(dest), package_url],
            silent=True,
        )
        if dest.is_file():
            logger.debug("Downloaded file size: %d bytes", dest.stat().st_size)
        logger.info("Downloaded to: %s", dest)
        return dest

    def install(self, settings: Settings, package_url: str) -> None:
        """Download and install the package, then move it to the prefix.

        Raises:
            CommandError: If the download or the installer fails.
        """
        pkg_path = self.download(package_url)
        try:
            logger.info("Installing MacPorts...")
            result = self._runner.execute_sudo(
                "installer", ["-pkg", str(pkg_path), "-target", "/"]
            )
            if not result.ok:
                raise CommandError(result)

            if settings.prefix != self._default_prefix:
                self.move_to_custom_prefix(settings.prefix)

            logger.info("MacPorts installed successfully")
            self.fix_ownership(settings.prefix)
        finally:
            logger.debug("Cleaning up: %s", pkg_path)
            pkg_path.unlink(missing_ok=True)

    def move_to_custom_prefix(self, prefix: str) -> None:
        """Move everything the package put in /opt/local into ``prefix``.

        Raises:
            CommandError: If a move fails.
        """
        logger.info("Moving MacPorts from %s to %s", self._default_prefix, prefix)
        self._runner.check("sudo", ["-n", "mkdir", "-p", prefix], silent=True)

        source = Path(self._default_prefix)
        entries = sorted(p.name for p in source.iterdir()) if source.is_dir() else []
        for name in entries:
            src = str(source / name)
            dest = str(Path(prefix) / name)
            logger.debug("Moving %s to %s", src, dest)
            result = self._runner.execute_sudo("mv", [src, dest], silent=True)
            if not result.ok:
                raise CommandError(result)

        logger.info("Successfully moved MacPorts to %s", prefix)

    def fix_ownership(self, prefix: str) -> None:
        """Hand the prefix to the runner user. Best effort."""
        username = current_user()
        logger.debug("Fixing ownership to %s...", username)
        result = self._runner.execute_sudo("chown", ["-R", username, prefix], silent=True)
        if not result.ok:
            logger.warning("Failed to fix ownership: %s", result.describe_failure())
