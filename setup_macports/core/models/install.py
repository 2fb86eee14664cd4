"""
Installation models — what a setup run produced.

``InstallInfo`` is filled in phase by phase by the orchestrator;
``ConfigurationInfo`` is gathered from the written configuration files
right before the CI outputs are published.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from setup_macports.core.models.platform import PlatformInfo


class CacheKeyResult(BaseModel):
    """Primary cache key plus restore keys, most specific first."""

    cache_key: str
    restore_keys: list[str] = Field(default_factory=list)


class InstallInfo(BaseModel):
    """MacPorts installation information."""

    version: str
    prefix: str
    package_url: str = ""
    platform: PlatformInfo | None = None
    uses_git_sources: bool = False
    cache_key: str = ""


class ConfigurationInfo(BaseModel):
    """Paths and contents of the MacPorts configuration files."""

    variants_conf_path: str = ""
    sources_conf_path: str = ""
    ports_conf_path: str = ""
    macports_conf_path: str = ""

    configured_variants: str = ""   # as written to variants.conf
    configured_sources: str = ""    # as written to sources.conf

    git_source_path: str = ""
    rsync_source_urls: str = ""

    def to_outputs(self) -> dict[str, str]:
        """Render as CI output names."""
        return {
            "variants-conf-path": self.variants_conf_path,
            "sources-conf-path": self.sources_conf_path,
            "ports-conf-path": self.ports_conf_path,
            "macports-conf-path": self.macports_conf_path,
            "configured-variants": self.configured_variants,
            "configured-sources": self.configured_sources,
            "git-source-path": self.git_source_path,
            "rsync-source-urls": self.rsync_source_urls,
        }
