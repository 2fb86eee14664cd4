"""
Configurator — write the MacPorts configuration files.

    {prefix}/etc/macports/macports.conf
    {prefix}/etc/macports/variants.conf
    {prefix}/etc/macports/sources.conf

then create the directory skeleton and initialize the registry with
``port sync``.
"""

from __future__ import annotations

import logging
from pathlib import Path

from setup_macports.adapters.base import CommandError, CommandRunner
from setup_macports.core.models.install import ConfigurationInfo
from setup_macports.core.models.settings import DEFAULT_RSYNC_URL, Settings
from setup_macports.core.services.sources_provider import DEFAULT_MARKER

logger = logging.getLogger(__name__)


def render_macports_conf(settings: Settings) -> str:
    prefix = Path(settings.prefix)
    lines = [
        f"prefix {settings.prefix}",
        f"portdbpath {prefix / 'var' / 'macports' / 'portdbpath'}",
        f"sources_conf {prefix / 'etc' / 'macports' / 'sources.conf'}",
        "",
    ]

    if settings.signature_check == "disabled":
        lines.append("signature_check no")
    else:
        lines.append("signature_check yes")

    if settings.prefer_copy:
        # MacPorts 2.12.0+ spells it prefer_copy_files
        lines.append("prefer_copy_files yes")

    lines.append("")
    return "\n".join(lines)


def render_variants_conf(settings: Settings) -> str:
    lines = [f"+{v}" for v in settings.variants.select]
    lines += [f"-{v}" for v in settings.variants.deselect]
    return "\n".join(lines) + "\n" if lines else ""


def render_sources_conf(lines: list[str]) -> str:
    return "\n".join(lines) + "\n"


class MacPortsConfigurator:
    """Write configuration files and initialize the registry."""

    def __init__(self, runner: CommandRunner):
        self._runner = runner

    def configure(
        self,
        settings: Settings,
        sources_lines: list[str] | None = None,
        skip_sync: bool = False,
    ) -> None:
        """Write all config files, create directories, sync.

        Args:
            settings: MacPorts settings.
            sources_lines: sources.conf content; defaults to the rsync mirror.
            skip_sync: Skip ``port sync`` (the ports tree is already there).

        Raises:
            CommandError: If ``port sync`` fails.
        """
        etc_dir = Path(settings.etc_dir)
        etc_dir.mkdir(parents=True, exist_ok=True)

        self.write_macports_conf(settings)
        self.write_variants_conf(settings)
        self.write_sources_conf(settings, sources_lines or [f"{DEFAULT_RSYNC_URL} {DEFAULT_MARKER}"])
        self.create_directory_structure(settings)

        if not skip_sync:
            self.initialize_registry(settings)

    def write_macports_conf(self, settings: Settings) -> Path:
        path = Path(settings.etc_dir) / "macports.conf"
        logger.debug("Writing macports.conf to: %s", path)

        if settings.signature_check == "permissive" and settings.signature_skip_packages:
            logger.warning(
                "Permissive mode requested for packages: %s. "
                "MacPorts has no per-package signature skipping; "
                "these ports are installed with 'port -f'.",
                ", ".join(settings.signature_skip_packages),
            )
        if settings.prefer_copy:
            logger.info("Enabling prefer_copy_files to avoid clonefile issues on CI runners")

        _write(path, render_macports_conf(settings))
        return path

    def write_variants_conf(self, settings: Settings) -> Path:
        path = Path(settings.etc_dir) / "variants.conf"
        content = render_variants_conf(settings)
        logger.info("Writing variants.conf to: %s", path)
        _write(path, content)
        logger.info("variants.conf written: %s", content.strip() or "(empty)")
        return path

    def write_sources_conf(self, settings: Settings, lines: list[str]) -> Path:
        path = Path(settings.etc_dir) / "sources.conf"
        content = render_sources_conf(lines)
        logger.debug("Writing sources.conf to: %s", path)
        _write(path, content)
        logger.debug("sources.conf written: %s", content.strip())
        return path

    def create_directory_structure(self, settings: Settings) -> None:
        prefix = Path(settings.prefix)
        for directory in (
            prefix / "etc" / "macports",
            prefix / "var" / "macports" / "portdbpath" / "registry",
            prefix / "var" / "macports" / "sources",
            prefix / "var" / "macports" / "dist",
        ):
            directory.mkdir(parents=True, exist_ok=True)
            logger.debug("Created directory: %s", directory)

    def initialize_registry(self, settings: Settings) -> None:
        port = settings.port_binary
        logger.info("Initializing MacPorts registry...")

        version = self._runner.execute(port, ["version"], silent=True)
        if not version.ok:
            logger.debug("port version output: %s", version.describe_failure())

        logger.info("Running port sync to initialize registry...")
        args = ["-v", "sync"] if settings.verbose else ["sync"]
        result = self._runner.execute(port, args)
        if not result.ok:
            raise CommandError(result)
        logger.info("MacPorts registry initialized successfully")

    def gather(self, settings: Settings, uses_git_sources: bool, git_source_path: str = "") -> ConfigurationInfo:
        """Collect configuration paths and contents for the CI outputs."""
        etc_dir = Path(settings.etc_dir)
        info = ConfigurationInfo(
            variants_conf_path=str(etc_dir / "variants.conf"),
            sources_conf_path=str(etc_dir / "sources.conf"),
            ports_conf_path=str(etc_dir / "ports.conf"),
            macports_conf_path=str(etc_dir / "macports.conf"),
            configured_variants=_read(etc_dir / "variants.conf"),
            configured_sources=_read(etc_dir / "sources.conf"),
        )
        if uses_git_sources:
            info.git_source_path = git_source_path
        else:
            rsync = [
                line.split(" ")[0]
                for line in info.configured_sources.splitlines()
                if line.startswith("rsync://")
            ]
            info.rsync_source_urls = "\n".join(rsync)
        return info


def _write(path: Path, content: str) -> None:
    path.write_text(content, encoding="utf-8")
    path.chmod(0o644)


def _read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError:
        return ""
