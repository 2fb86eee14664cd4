"""
Git sources fetcher — shallow checkout of a ports repository.

Uses the git CLI through a CommandRunner, the same way actions/checkout
does it: init, add the remote, fetch one commit of the ref, and check
it out as a local branch (not a detached HEAD).
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from setup_macports.adapters.base import CommandError, CommandRunner

logger = logging.getLogger(__name__)


class GitSourcesFetcher:
    """Fetch a ports tree with git."""

    def __init__(self, runner: CommandRunner):
        self._runner = runner

    def fetch(self, target_dir: str, repo_url: str, repo_name: str, ref: str = "master") -> str:
        """Fetch ``ref`` of ``repo_url`` into ``target_dir/repo_name``.

        Any existing checkout at that path is replaced.

        Returns:
            Path of the checkout.

        Raises:
            CommandError: If any git step fails.
        """
        final_path = Path(target_dir) / repo_name
        logger.info("Fetching %s (depth 1, ref: %s) into %s...", repo_url, ref, final_path)

        try:
            if final_path.exists():
                logger.debug("Removing existing directory: %s", final_path)
                shutil.rmtree(final_path)
            final_path.mkdir(parents=True)

            cwd = str(final_path)
            self._git(["init", cwd])
            self._git(["remote", "add", "origin", repo_url], cwd=cwd)
            # git reports fetch progress on stderr
            self._git(
                ["fetch", "--depth=1", "origin", ref],
                cwd=cwd,
                silent=False,
                stderr_level="info",
            )
            self._git(["checkout", "-b", ref, f"origin/{ref}"], cwd=cwd)
        except (CommandError, OSError) as e:
            logger.error("Failed to fetch %s: %s", repo_url, e)
            raise

        logger.info("Successfully fetched %s to %s", repo_url, final_path)
        return str(final_path)

    def initialize_port_index(self, ports_path: str, port_binary: str) -> bool:
        """Run ``port index`` over a fresh checkout.

        Not fatal: MacPorts regenerates the index on sync.
        """
        logger.info("Initializing PortIndex for %s...", ports_path)
        result = self._runner.execute(port_binary, ["index", ports_path], cwd=ports_path)
        if not result.ok:
            logger.warning("Failed to initialize PortIndex: %s", result.describe_failure())
            return False
        logger.info("PortIndex initialized successfully")
        return True

    # ── Helpers ─────────────────────────────────────────────────

    def _git(self, args: list[str], cwd: str | None = None, silent: bool = True, **kwargs) -> str:
        """Run a git command and return stdout."""
        result = self._runner.check("git", args, cwd=cwd, silent=silent, **kwargs)
        return result.stdout
