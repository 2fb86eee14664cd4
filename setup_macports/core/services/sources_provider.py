"""
Sources provider — decide where the ports tree comes from.

Four providers:

    git     fetch the configured repository; failure is fatal
    rsync   no fetch, sources.conf points at the rsync mirror
    custom  no fetch, the user's source lines are used verbatim
    auto    try git, fall back to the default rsync mirror on any error

``auto`` is the only provider that swallows a failure.
"""

from __future__ import annotations

import logging
import posixpath
import re
from urllib.parse import urlsplit

from pydantic import BaseModel, Field

from setup_macports.adapters.vcs.git import GitSourcesFetcher
from setup_macports.core.models.settings import (
    DEFAULT_GIT_REF,
    DEFAULT_RSYNC_URL,
    Settings,
)

logger = logging.getLogger(__name__)

GIT_HOST = "github.com"
PLACEHOLDER_OWNER = "custom"
PLACEHOLDER_REPO = "repository"
DEFAULT_MARKER = "[default]"

_OWNER_REPO = re.compile(r"^[\w.-]+/[\w.-]+$")
_SSH_URL = re.compile(r"^git@(?P<host>[^:/]+):(?P<path>.+)$")


class InvalidRepositoryError(ValueError):
    """Raised for a git-repository value that is neither owner/repo nor a URL."""


class SourcesConfigError(ValueError):
    """Raised for a custom source list that cannot be written as-is."""


class SourcesResolution(BaseModel):
    """What the resolver decided, and what sources.conf should contain."""

    provider: str
    uses_git_sources: bool = False
    git_source_path: str = ""
    sources_conf_lines: list[str] = Field(default_factory=list)
    fallback_reason: str = ""


def parse_repository(repository: str) -> str:
    """Expand a git-repository input into a clone URL.

    Raises:
        InvalidRepositoryError: For anything but https/ssh URLs or owner/repo.
    """
    repo = repository.strip()
    if repo.startswith("https://") or repo.startswith("git@"):
        return repo
    if "://" in repo:
        raise InvalidRepositoryError(
            f'Invalid git-repository "{repository}": only https:// and git@ URLs are supported'
        )
    if _OWNER_REPO.match(repo):
        return f"https://{GIT_HOST}/{repo}.git"
    raise InvalidRepositoryError(
        f'Invalid git-repository format: "{repository}". '
        "Use owner/repo, an https:// URL, or a git@ URL."
    )


def repository_directory(url: str) -> tuple[str, str]:
    """Owner and repository names used for the local checkout path.

    Path segments are trusted only when the URL's host is GitHub
    itself; ``https://evil.example/github.com/x/y`` gets the
    placeholder names.
    """
    ssh = _SSH_URL.match(url)
    if ssh:
        host, path = ssh.group("host"), ssh.group("path")
    else:
        parts = urlsplit(url)
        if parts.scheme != "https":
            return PLACEHOLDER_OWNER, PLACEHOLDER_REPO
        host, path = parts.hostname or "", parts.path

    if host.lower() != GIT_HOST:
        return PLACEHOLDER_OWNER, PLACEHOLDER_REPO

    segments = [s for s in path.strip("/").split("/") if s]
    if len(segments) < 2:
        return PLACEHOLDER_OWNER, PLACEHOLDER_REPO
    owner, repo = segments[0], segments[1]
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    if not owner or not repo or owner in (".", "..") or repo in (".", ".."):
        return PLACEHOLDER_OWNER, PLACEHOLDER_REPO
    return owner, repo


def validate_custom_sources(sources: list[str]) -> list[str]:
    """Check that at most one custom source is marked ``[default]``.

    An empty list falls back to the default rsync mirror.

    Raises:
        SourcesConfigError: If several sources are marked default.
    """
    if not sources:
        logger.warning("sources-provider is 'custom' but no sources were given; using %s", DEFAULT_RSYNC_URL)
        return [f"{DEFAULT_RSYNC_URL} {DEFAULT_MARKER}"]
    defaults = [s for s in sources if DEFAULT_MARKER in s]
    if len(defaults) > 1:
        raise SourcesConfigError(
            f"Only one source may be marked {DEFAULT_MARKER}, found {len(defaults)}: "
            + "; ".join(defaults)
        )
    if not defaults:
        logger.warning(
            "No custom source is marked %s; MacPorts needs one default source", DEFAULT_MARKER
        )
    return list(sources)


class SourcesResolver:
    """Dispatch on the sources provider."""

    def __init__(self, fetcher: GitSourcesFetcher):
        self._fetcher = fetcher

    def sources_root(self, settings: Settings) -> str:
        return posixpath.join(settings.prefix, "var", "macports", "sources")

    def resolve(self, settings: Settings) -> SourcesResolution:
        provider = settings.sources_provider
        logger.debug("Sources provider: %s", provider)

        if provider == "git":
            return self._resolve_git(settings)

        if provider == "auto":
            try:
                return self._resolve_git(settings)
            except Exception as e:
                logger.warning("Git sources failed: %s. Falling back to rsync.", e)
                resolution = self._rsync(DEFAULT_RSYNC_URL, provider)
                resolution.fallback_reason = str(e)
                return resolution

        if provider == "custom":
            logger.info("Using custom sources (configured in sources.conf)")
            return SourcesResolution(
                provider=provider,
                sources_conf_lines=validate_custom_sources(settings.sources),
            )

        logger.info("Using rsync sources (configured in sources.conf)")
        return self._rsync(settings.rsync_url, provider)

    def _resolve_git(self, settings: Settings) -> SourcesResolution:
        url = parse_repository(settings.git_repository)
        owner, repo = repository_directory(url)
        host_dir = GIT_HOST if (owner, repo) != (PLACEHOLDER_OWNER, PLACEHOLDER_REPO) else "git"
        target_dir = posixpath.join(self.sources_root(settings), host_dir, owner)
        ref = settings.git_ref or DEFAULT_GIT_REF

        ports_path = self._fetcher.fetch(target_dir, url, repo, ref)
        return SourcesResolution(
            provider=settings.sources_provider,
            uses_git_sources=True,
            git_source_path=ports_path,
            sources_conf_lines=[f"file://{ports_path}/ {DEFAULT_MARKER}"],
        )

    @staticmethod
    def _rsync(url: str, provider: str) -> SourcesResolution:
        return SourcesResolution(
            provider=provider,
            sources_conf_lines=[f"{url} {DEFAULT_MARKER}"],
        )
