"""
Cleanup use case — the post phase of the CI step.

Reads the state the main phase left behind and removes what it staged.
Nothing here is allowed to fail the job.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from setup_macports.adapters.base import CommandRunner
from setup_macports.adapters.shell.command import ShellCommandRunner
from setup_macports.core.persistence.state_file import default_state_path, load_state

logger = logging.getLogger(__name__)


@dataclass
class CleanupResult:
    """Result of the post phase."""

    ran: bool = False
    prefix: str | None = None
    removed: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"ran": self.ran, "prefix": self.prefix, "removed": self.removed}


def run_cleanup(
    env: Mapping[str, str] | None = None,
    state_path: Path | None = None,
    runner: CommandRunner | None = None,
) -> CleanupResult:
    """Clean up after the main phase.

    Does nothing unless the main phase marked the state as ``is_post``.
    """
    env = os.environ if env is None else env
    state_path = state_path or default_state_path(env)
    state = load_state(state_path)
    result = CleanupResult(prefix=state.installation_prefix)

    if not state.is_post:
        logger.debug("Main phase did not complete, nothing to clean up")
        return result

    result.ran = True
    logger.debug("Running cleanup...")
    logger.debug(
        "MacPorts %s at %s (cache key %s)",
        state.macports_version,
        state.installation_prefix,
        state.cache_key,
    )

    staging = state.cache_staging_dir
    if staging and Path(staging).exists():
        runner = runner or ShellCommandRunner()
        outcome = runner.execute_sudo("rm", ["-rf", staging], silent=True)
        if outcome.ok:
            result.removed.append(staging)
            logger.debug("Removed cache staging directory %s", staging)
        else:
            logger.warning("Could not remove %s: %s", staging, outcome.describe_failure())

    state_path.unlink(missing_ok=True)
    logger.debug("Cleanup complete")
    return result
