"""
State file persistence — atomic read/write for RunState.

The main phase writes the state at the end of setup, the post phase
reads it back. Writes are atomic (write to temp file, then rename) so a
crash mid-write never leaves a half-written state for the post phase.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path

from setup_macports.core.models.state import RunState

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = "setup-macports"
DEFAULT_STATE_FILE = "state.json"


def default_state_path(env: Mapping[str, str] | None = None) -> Path:
    """State file location: under RUNNER_TEMP on a runner, else the temp dir."""
    env = os.environ if env is None else env
    base = env.get("RUNNER_TEMP") or tempfile.gettempdir()
    return Path(base) / DEFAULT_STATE_DIR / DEFAULT_STATE_FILE


def load_state(path: Path) -> RunState:
    """Load run state from a JSON file.

    Args:
        path: Path to the state JSON file.

    Returns:
        RunState model. If the file doesn't exist or is unreadable,
        returns a fresh state (``is_post`` False).
    """
    if not path.is_file():
        logger.debug("No state file at %s — starting fresh", path)
        return RunState()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        state = RunState.model_validate(data)
        logger.debug("Loaded state from %s (updated_at=%s)", path, state.updated_at)
        return state
    except json.JSONDecodeError as e:
        logger.warning("Corrupt state file %s: %s — starting fresh", path, e)
        return RunState()
    except Exception as e:
        logger.warning("Cannot load state from %s: %s — starting fresh", path, e)
        return RunState()


def save_state(state: RunState, path: Path) -> None:
    """Save run state to a JSON file (atomic write).

    Args:
        state: The state to save.
        path: Target path for the state file.
    """
    state.touch()

    path.parent.mkdir(parents=True, exist_ok=True)

    data = state.model_dump(mode="json")
    content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    # Atomic write: temp file in same directory, then rename
    try:
        fd, tmp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=".state_",
            suffix=".tmp",
        )
        os.close(fd)
        tmp = Path(tmp_path)
        try:
            tmp.write_text(content, encoding="utf-8")
            tmp.replace(path)
            logger.debug("State saved to %s", path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
    except Exception as e:
        logger.error("Failed to save state to %s: %s", path, e)
        raise
