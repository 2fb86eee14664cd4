"""
Ports installer — ``port install`` for each requested port, in order.
"""

from __future__ import annotations

import logging
import re

from setup_macports.adapters.base import CommandError, CommandRunner
from setup_macports.core.models.settings import PortConfig, Settings

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def build_install_args(port: PortConfig, settings: Settings) -> list[str]:
    """Arguments for ``port``: ``[-f] [-v] install <name> <variants...>``.

    ``-f`` is added for ports exempted from signature checks under the
    permissive signature mode.
    """
    args: list[str] = []
    if settings.skips_signature_for(port.name):
        args.append("-f")
    if settings.verbose:
        args.append("-v")
    args += ["install", port.name]
    if port.variants:
        args += [v for v in _WHITESPACE.split(port.variants.strip()) if v]
    return args


class PortsInstaller:
    """Install the configured ports."""

    def __init__(self, runner: CommandRunner):
        self._runner = runner

    def install(self, settings: Settings) -> None:
        """Install every port in ``settings.ports``.

        Raises:
            CommandError: On the first port that fails to install.
        """
        for port in settings.ports:
            logger.info("Installing port: %s", port.name)
            result = self._runner.execute(settings.port_binary, build_install_args(port, settings))
            if not result.ok:
                raise CommandError(result)
            logger.info("Port %s installed successfully", port.name)
