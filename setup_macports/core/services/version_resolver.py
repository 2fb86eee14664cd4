"""
Version resolver — turn the 'latest' sentinel into a concrete version.

Release data comes from the GitHub releases API for
``macports/macports-base``. Network trouble never fails the run: after
the retries run out the resolver falls back to a pinned version.
"""

from __future__ import annotations

import json
import logging
import os
import re
import urllib.request
from collections.abc import Callable
from datetime import datetime
from typing import Any

from setup_macports import __version__
from setup_macports.core.models.version import Release, VersionResolution
from setup_macports.core.reliability.retry import RetryPolicy

logger = logging.getLogger(__name__)

RELEASES_OWNER = "macports"
RELEASES_REPO = "macports-base"
FALLBACK_VERSION = "2.12.0"
RELEASES_PER_PAGE = 100

_PRERELEASE_TAG = re.compile(r"-?(rc|beta|alpha)", re.IGNORECASE)

FetchJson = Callable[[str, dict[str, str]], Any]


def _urlopen_json(url: str, headers: dict[str, str], timeout: int = 15) -> Any:
    req = urllib.request.Request(url, headers=headers)
    with urllib.request.urlopen(req, timeout=timeout) as resp:
        return json.loads(resp.read())


def _published_ts(release: Release) -> float:
    """Sort key for publish time; unparseable timestamps sort last."""
    try:
        return datetime.fromisoformat(release.published_at.replace("Z", "+00:00")).timestamp()
    except ValueError:
        return float("-inf")


def is_prerelease_tag(tag: str) -> bool:
    """Whether a tag looks like an rc/beta/alpha build."""
    return bool(_PRERELEASE_TAG.search(tag))


def find_latest_stable(releases: list[Release]) -> Release | None:
    """Most recently published release that is not a prerelease."""
    stable = [r for r in releases if not r.is_prerelease]
    if not stable:
        return None
    return sorted(stable, key=_published_ts, reverse=True)[0]


class VersionResolver:
    """Resolve a MacPorts version input.

    Args:
        github_token: Token for the GitHub API. Defaults to GITHUB_TOKEN.
        fetch_json: ``(url, headers) -> parsed JSON``. Defaults to urllib.
        retry: Retry policy for the release listing call.
    """

    def __init__(
        self,
        github_token: str | None = None,
        fetch_json: FetchJson | None = None,
        retry: RetryPolicy | None = None,
    ):
        self._token = github_token or os.environ.get("GITHUB_TOKEN", "")
        self._fetch_json = fetch_json or _urlopen_json
        self._retry = retry or RetryPolicy(max_attempts=3, base_delay=1.0)

    @property
    def releases_url(self) -> str:
        return (
            f"https://api.github.com/repos/{RELEASES_OWNER}/{RELEASES_REPO}"
            f"/releases?per_page={RELEASES_PER_PAGE}"
        )

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": f"setup-macports/{__version__}",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def fetch_releases(self) -> list[Release]:
        """Fetch the release list, retrying on failure.

        Raises:
            The last error when every attempt fails.
        """

        def fetch() -> list[Release]:
            data = self._fetch_json(self.releases_url, self._headers())
            if not isinstance(data, list):
                raise ValueError(f"Unexpected releases payload: {type(data).__name__}")
            return [self._to_release(item) for item in data]

        return self._retry.call(fetch, description="fetching releases")

    @staticmethod
    def _to_release(item: dict[str, Any]) -> Release:
        tag = item.get("tag_name", "")
        return Release(
            tag=tag,
            version=tag[1:] if tag.startswith("v") else tag,
            is_prerelease=bool(item.get("prerelease")) or is_prerelease_tag(tag),
            url=item.get("html_url", ""),
            published_at=item.get("published_at") or "",
        )

    def resolve(self, version_input: str) -> VersionResolution:
        """Resolve ``version_input``; only 'latest' touches the network."""
        if version_input.strip().lower() != "latest":
            return VersionResolution(
                version=version_input,
                was_latest=False,
                original_input=version_input,
            )

        logger.info('Resolving "latest" MacPorts version from GitHub...')
        try:
            releases = self.fetch_releases()
        except Exception as e:
            logger.warning("Failed to resolve latest version: %s", e)
            logger.warning("Using fallback version: %s", FALLBACK_VERSION)
            return self._fallback(version_input)

        latest = find_latest_stable(releases)
        if latest is None:
            logger.warning("No stable releases found, using fallback version %s", FALLBACK_VERSION)
            return self._fallback(version_input)

        logger.info('Resolved "latest" to version: %s', latest.version)
        return VersionResolution(
            version=latest.version,
            was_latest=True,
            original_input=version_input,
        )

    @staticmethod
    def _fallback(version_input: str) -> VersionResolution:
        return VersionResolution(
            version=FALLBACK_VERSION,
            was_latest=True,
            original_input=version_input,
        )
