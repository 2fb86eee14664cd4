"""
Version models — MacPorts releases and the outcome of resolving 'latest'.
"""

from __future__ import annotations

from pydantic import BaseModel


class Release(BaseModel):
    """A MacPorts release as listed by the GitHub releases API."""

    tag: str
    version: str
    is_prerelease: bool = False
    url: str = ""
    published_at: str = ""


class VersionResolution(BaseModel):
    """Result of resolving a version input."""

    version: str
    was_latest: bool
    original_input: str
