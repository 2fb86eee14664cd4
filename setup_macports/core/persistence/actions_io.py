"""
CI output channel — step outputs and PATH additions for later steps.

On a GitHub Actions runner outputs are appended to the file named by
``GITHUB_OUTPUT`` and PATH entries to ``GITHUB_PATH``. Off a runner
(local runs, tests without those variables) outputs are kept in memory
and logged.
"""

from __future__ import annotations

import logging
import os
import uuid
from collections.abc import MutableMapping
from pathlib import Path

logger = logging.getLogger(__name__)

OUTPUT_NAMES: tuple[str, ...] = (
    "version",
    "prefix",
    "package-url",
    "cache-key",
    "cache-hit",
    "uses-git-sources",
    "variants-conf-path",
    "sources-conf-path",
    "ports-conf-path",
    "macports-conf-path",
    "configured-variants",
    "configured-sources",
    "git-source-path",
    "rsync-source-urls",
)


class ActionsChannel:
    """Write-once step outputs plus PATH additions."""

    def __init__(self, env: MutableMapping[str, str] | None = None):
        self._env = os.environ if env is None else env
        self._outputs: dict[str, str] = {}

    @property
    def outputs(self) -> dict[str, str]:
        """All outputs set so far."""
        return dict(self._outputs)

    def set_output(self, name: str, value: str) -> None:
        """Publish a step output. Setting the same name twice is ignored."""
        if name not in OUTPUT_NAMES:
            raise ValueError(f"Unknown output: {name}")
        if name in self._outputs:
            logger.debug("Output %s already set, keeping %r", name, self._outputs[name])
            return

        self._outputs[name] = value
        output_file = self._env.get("GITHUB_OUTPUT")
        if not output_file:
            logger.info("Output %s=%s", name, value)
            return

        # Heredoc syntax so multi-line values survive
        delimiter = f"ghadelimiter_{uuid.uuid4()}"
        with Path(output_file).open("a", encoding="utf-8") as f:
            f.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")

    def set_outputs(self, values: dict[str, str]) -> None:
        for name, value in values.items():
            self.set_output(name, value)

    def add_path(self, entry: str) -> None:
        """Prepend ``entry`` to PATH for this process and for later steps."""
        path_file = self._env.get("GITHUB_PATH")
        if path_file:
            with Path(path_file).open("a", encoding="utf-8") as f:
                f.write(f"{entry}\n")
        current = self._env.get("PATH", "")
        self._env["PATH"] = f"{entry}{os.pathsep}{current}" if current else entry
        logger.info("Added %s to PATH", entry)
