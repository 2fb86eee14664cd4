"""
RunState — state handed from the main phase to the post phase.

The main phase writes it at the end of a successful setup; the post
(cleanup) phase of the same CI job reads it back. Nothing else shares
state between the two phases.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class RunState(BaseModel):
    """Cross-phase state, serialized to a JSON state file."""

    # ── Schema ───────────────────────────────────────────────────
    schema_version: int = 1

    # ── Phase marker ─────────────────────────────────────────────
    is_post: bool = False

    # ── Installation ─────────────────────────────────────────────
    installation_prefix: str | None = None
    cache_key: str | None = None
    macports_version: str | None = None

    # ── Cache staging ────────────────────────────────────────────
    cache_staging_dir: str | None = None

    updated_at: str = Field(default_factory=_now_iso)

    def touch(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = _now_iso()
