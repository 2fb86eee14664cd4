"""
Cache keys — deterministic fingerprints of a MacPorts configuration.

Three cache partitions, each with its own key:

    full installation   macports-{ver}-{arch}-{major}-{config}-{context}
    base install only   macports-setup-{ver}-{arch}-{major}
    ports tree only     macports-ports-{provider}-{ref}-{major}

Every list that feeds a digest is sorted first, so input order never
changes a key. Keys are pure functions of Settings, PlatformInfo and
(for the full key) the CacheContext.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

from setup_macports import __version__
from setup_macports.core.models.install import CacheKeyResult
from setup_macports.core.models.platform import PlatformInfo
from setup_macports.core.models.settings import DEFAULT_GIT_REF, Settings

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "macports"
LEGACY_CACHE_VERSION = "v2"

CONFIG_HASH_LENGTH = 16
CONTEXT_HASH_LENGTH = 8


class CacheContext(BaseModel):
    """Run context folded into the full-installation key."""

    workflow: str = ""
    ref: str = ""
    base_ref: str = ""
    tool_version: str = __version__

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> CacheContext:
        return cls(
            workflow=env.get("GITHUB_WORKFLOW", ""),
            ref=env.get("GITHUB_REF", ""),
            base_ref=env.get("GITHUB_BASE_REF", ""),
        )

    @property
    def normalized_ref(self) -> str:
        """Branch or tag name; a PR merge ref becomes its target branch."""
        ref = self.ref
        for prefix in ("refs/heads/", "refs/tags/"):
            if ref.startswith(prefix):
                return ref[len(prefix):]
        if ref.startswith("refs/pull/") and ref.endswith("/merge") and self.base_ref:
            return self.base_ref
        return ref


def _canonical_json(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _digest(data: Any, length: int) -> str:
    return hashlib.sha256(_canonical_json(data).encode("utf-8")).hexdigest()[:length]


def config_fingerprint(settings: Settings) -> dict[str, Any]:
    """The parts of the settings that change what gets installed."""
    return {
        "prefix": settings.prefix,
        "version": settings.effective_version,
        "variants": {
            "select": sorted(settings.variants.select),
            "deselect": sorted(settings.variants.deselect),
        },
        "sources": sorted(settings.sources),
    }


def config_hash(settings: Settings) -> str:
    return _digest(config_fingerprint(settings), CONFIG_HASH_LENGTH)


def context_hash(context: CacheContext) -> str:
    return _digest(
        {
            "workflow": context.workflow,
            "ref": context.normalized_ref,
            "tool_version": context.tool_version,
        },
        CONTEXT_HASH_LENGTH,
    )


# ── Keys ────────────────────────────────────────────────────────


def generate_simple_cache_key(settings: Settings, platform: PlatformInfo) -> str:
    return (
        f"{CACHE_NAMESPACE}-{settings.effective_version}"
        f"-{platform.architecture}-{platform.major}"
    )


def generate_setup_cache_key(settings: Settings, platform: PlatformInfo) -> str:
    """Key for the bare base installation.

    Variants, sources, prefix and provider are left out: the base
    install artifact is the same for all of them.
    """
    return (
        f"{CACHE_NAMESPACE}-setup-{settings.effective_version}"
        f"-{platform.architecture}-{platform.major}"
    )


def generate_ports_cache_key(settings: Settings, platform: PlatformInfo) -> str:
    """Key for the synchronized ports tree.

    Depends only on what would be synchronized: ``auto`` and ``rsync``
    both map to the rsync tree.
    """
    provider = "git" if settings.sources_provider == "git" else "rsync"
    ref = settings.git_ref if provider == "git" and settings.git_ref else DEFAULT_GIT_REF
    return f"{CACHE_NAMESPACE}-ports-{provider}-{ref}-{platform.major}"


def generate_improved_cache_key(
    settings: Settings,
    platform: PlatformInfo,
    context: CacheContext | None = None,
) -> CacheKeyResult:
    """Full-installation key plus progressively looser restore keys."""
    context = context or CacheContext()
    base = generate_simple_cache_key(settings, platform)
    cfg = config_hash(settings)
    ctx = context_hash(context)

    result = CacheKeyResult(
        cache_key=f"{base}-{cfg}-{ctx}",
        restore_keys=[
            f"{base}-{cfg}-",
            f"{base}-",
            f"{CACHE_NAMESPACE}-{settings.effective_version}-{platform.architecture}-",
        ],
    )
    logger.debug("Configuration for cache key: %s", _canonical_json(config_fingerprint(settings)))
    logger.debug("Generated cache key: %s", result.cache_key)
    return result


def generate_cache_key(settings: Settings, platform: PlatformInfo) -> str:
    """Legacy key: ``macports-{release}-{arch}-v2-{40 hex}``."""
    legacy = {
        "prefix": settings.prefix,
        "version": settings.effective_version,
        "variants": {
            "select": sorted(settings.variants.select),
            "deselect": sorted(settings.variants.deselect),
        },
        "sources": sorted(settings.sources),
    }
    # Field order is part of the key; keep it as written above
    digest = hashlib.sha1(
        json.dumps(legacy, separators=(",", ":")).encode("utf-8"),
        usedforsecurity=False,
    ).hexdigest()
    key = f"{CACHE_NAMESPACE}-{platform.version}-{platform.architecture}-{LEGACY_CACHE_VERSION}-{digest}"
    logger.debug("Generated legacy cache key: %s", key)
    return key
