"""
Settings model — the validated configuration for one run.

Built once by the input parser from raw CI input strings. Only
``resolved_version`` changes after construction: the version resolver
fills it in before any cache key or package URL is derived, and every
consumer reads ``effective_version`` rather than ``version``.
"""

from __future__ import annotations

import posixpath
from typing import Literal

from pydantic import BaseModel, Field, field_validator

SourcesProvider = Literal["auto", "git", "rsync", "custom"]
SignatureCheck = Literal["strict", "permissive", "disabled"]

SOURCES_PROVIDERS: tuple[str, ...] = ("auto", "git", "rsync", "custom")
SIGNATURE_CHECK_MODES: tuple[str, ...] = ("strict", "permissive", "disabled")

DEFAULT_PREFIX = "/opt/local"
DEFAULT_GIT_REPOSITORY = "macports/macports-ports"
DEFAULT_GIT_REF = "master"
DEFAULT_RSYNC_URL = "rsync://rsync.macports.org/macports/release/tarballs/ports.tar"


class VariantConfig(BaseModel):
    """Global variant selection written to variants.conf."""

    select: list[str] = Field(default_factory=list)
    deselect: list[str] = Field(default_factory=list)


class PortConfig(BaseModel):
    """A port to install, with its optional variant string (``+tcl -java``)."""

    name: str
    variants: str | None = None


class Settings(BaseModel):
    """Complete MacPorts settings."""

    version: str
    resolved_version: str | None = None
    prefix: str = DEFAULT_PREFIX

    variants: VariantConfig = Field(default_factory=VariantConfig)
    sources: list[str] = Field(default_factory=list)
    ports: list[PortConfig] = Field(default_factory=list)

    sources_provider: SourcesProvider = "auto"
    git_repository: str = DEFAULT_GIT_REPOSITORY
    git_ref: str | None = None
    rsync_url: str = DEFAULT_RSYNC_URL

    prepend_path: bool = True
    verbose: bool = False
    debug: bool = False
    cache: bool = True
    prefer_copy: bool = False

    signature_check: SignatureCheck = "strict"
    signature_skip_packages: list[str] = Field(default_factory=list)

    github_token: str | None = Field(default=None, repr=False)

    @field_validator("version")
    @classmethod
    def _version_not_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("version must not be empty")
        return value.strip()

    @field_validator("prefix")
    @classmethod
    def _prefix_absolute(cls, value: str) -> str:
        if not posixpath.isabs(value):
            raise ValueError(f"prefix must be an absolute path: {value!r}")
        return value

    @property
    def effective_version(self) -> str:
        """The concrete version: resolved_version when 'latest' was settled."""
        return self.resolved_version or self.version

    @property
    def port_binary(self) -> str:
        """Path to the ``port`` command inside the prefix."""
        return posixpath.join(self.prefix, "bin", "port")

    @property
    def etc_dir(self) -> str:
        """Directory holding the MacPorts configuration files."""
        return posixpath.join(self.prefix, "etc", "macports")

    def skips_signature_for(self, port_name: str) -> bool:
        """Whether ``port_name`` is exempt from signature checks."""
        return (
            self.signature_check == "permissive"
            and port_name in self.signature_skip_packages
        )
