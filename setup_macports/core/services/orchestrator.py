"""
MacPorts provider — one fresh installation, phase by phase.

    1. cache key for this configuration
    2. package URL for the resolved version and platform
    3. download and run the installer
    4. resolve sources (git fetch, rsync, or custom)
    5. write the configuration files and sync
    6. prepend PATH
    7. install the requested ports

then persist the cross-phase state and publish the step outputs. Cache
restore and save happen around this in the setup use case.
"""

from __future__ import annotations

import logging
import posixpath
from pathlib import Path

from setup_macports.adapters.base import CommandRunner
from setup_macports.adapters.vcs.git import GitSourcesFetcher
from setup_macports.core.models.install import InstallInfo
from setup_macports.core.models.platform import PlatformInfo
from setup_macports.core.models.settings import Settings
from setup_macports.core.models.state import RunState
from setup_macports.core.observability.logging_config import log_group
from setup_macports.core.persistence.actions_io import ActionsChannel
from setup_macports.core.persistence.state_file import load_state, save_state
from setup_macports.core.services.cache_keys import CacheContext, generate_improved_cache_key
from setup_macports.core.services.configurator import MacPortsConfigurator
from setup_macports.core.services.installer import MacPortsInstaller
from setup_macports.core.services.package_builder import PackageBuilder
from setup_macports.core.services.ports_installer import PortsInstaller
from setup_macports.core.services.sources_provider import SourcesResolution, SourcesResolver

logger = logging.getLogger(__name__)


def prepend_path(channel: ActionsChannel, prefix: str) -> None:
    """Put ``{prefix}/bin`` and ``{prefix}/sbin`` on PATH."""
    channel.add_path(posixpath.join(prefix, "bin"))
    channel.add_path(posixpath.join(prefix, "sbin"))


class MacPortsProvider:
    """Install and configure MacPorts from scratch.

    Collaborators default to the concrete services over ``runner``;
    tests inject their own.
    """

    def __init__(
        self,
        settings: Settings,
        platform: PlatformInfo,
        runner: CommandRunner,
        channel: ActionsChannel,
        state_path: Path,
        *,
        context: CacheContext | None = None,
        package_builder: PackageBuilder | None = None,
        installer: MacPortsInstaller | None = None,
        configurator: MacPortsConfigurator | None = None,
        sources_resolver: SourcesResolver | None = None,
        ports_installer: PortsInstaller | None = None,
    ):
        self.settings = settings
        self.platform = platform
        self._runner = runner
        self._channel = channel
        self._state_path = state_path
        self._context = context or CacheContext()

        self._fetcher = GitSourcesFetcher(runner)
        self._package_builder = package_builder or PackageBuilder()
        self._installer = installer or MacPortsInstaller(runner)
        self._configurator = configurator or MacPortsConfigurator(runner)
        self._sources_resolver = sources_resolver or SourcesResolver(self._fetcher)
        self._ports_installer = ports_installer or PortsInstaller(runner)

        self.install_info = InstallInfo(
            version=settings.effective_version,
            prefix=settings.prefix,
            platform=platform,
        )

    def setup(self) -> InstallInfo:
        """Run every phase; the first failing phase raises."""
        settings = self.settings

        with log_group("Generating cache key", logger):
            keys = generate_improved_cache_key(settings, self.platform, self._context)
            self.install_info.cache_key = keys.cache_key
            logger.info("Cache key: %s", keys.cache_key)

        with log_group("Building package URL", logger):
            package_url = self._package_builder.build_url(settings, self.platform)
            self.install_info.package_url = package_url
            logger.info("Package URL: %s", package_url)

        with log_group("Installing MacPorts", logger):
            self._installer.install(settings, package_url)

        with log_group(f"Setting up sources ({settings.sources_provider})", logger):
            sources = self._sources_resolver.resolve(settings)
            self.install_info.uses_git_sources = sources.uses_git_sources

        with log_group("Configuring MacPorts", logger):
            self._configure(sources)

        if settings.prepend_path:
            prepend_path(self._channel, settings.prefix)

        if settings.ports:
            with log_group("Installing ports", logger):
                self._ports_installer.install(settings)

        self._save_state()
        self._publish(sources)
        return self.install_info

    def _configure(self, sources: SourcesResolution) -> None:
        # A git checkout is indexed locally instead of synced
        self._configurator.configure(
            self.settings,
            sources_lines=sources.sources_conf_lines,
            skip_sync=sources.uses_git_sources,
        )
        if sources.uses_git_sources:
            self._fetcher.initialize_port_index(sources.git_source_path, self.settings.port_binary)
            logger.info("Git sources configured successfully")

    def _save_state(self) -> None:
        state: RunState = load_state(self._state_path)
        state.is_post = True
        state.installation_prefix = self.settings.prefix
        state.cache_key = self.install_info.cache_key
        state.macports_version = self.settings.effective_version
        save_state(state, self._state_path)

    def _publish(self, sources: SourcesResolution) -> None:
        info = self.install_info
        self._channel.set_outputs({
            "version": info.version,
            "prefix": info.prefix,
            "package-url": info.package_url,
            "cache-key": info.cache_key,
            "uses-git-sources": "true" if info.uses_git_sources else "false",
        })
        config = self._configurator.gather(
            self.settings, sources.uses_git_sources, sources.git_source_path
        )
        self._channel.set_outputs(config.to_outputs())
