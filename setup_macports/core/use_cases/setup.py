"""
Setup use case — the main phase of the CI step.

Parses inputs, resolves the version, detects the platform, then either
restores a cached installation or runs a fresh one through
MacPortsProvider and saves it to the cache. The cache is staged through
a temporary directory because the prefix is root-owned.
"""

from __future__ import annotations

import logging
import os
import posixpath
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from pathlib import Path

from setup_macports.adapters.base import CommandError, CommandRunner
from setup_macports.adapters.shell.command import ShellCommandRunner
from setup_macports.adapters.vcs.git import GitSourcesFetcher
from setup_macports.core.config.inputs import InputError, get_inputs, read_inputs
from setup_macports.core.models.install import CacheKeyResult, InstallInfo
from setup_macports.core.models.platform import PlatformInfo
from setup_macports.core.models.settings import Settings
from setup_macports.core.observability.logging_config import log_group
from setup_macports.core.persistence.actions_io import ActionsChannel
from setup_macports.core.persistence.state_file import default_state_path, load_state, save_state
from setup_macports.core.services.cache_keys import CacheContext, generate_improved_cache_key
from setup_macports.core.services.cache_store import CacheStore, ReservedCacheKeyError, entry_name
from setup_macports.core.services.configurator import MacPortsConfigurator
from setup_macports.core.services.installer import current_user
from setup_macports.core.services.orchestrator import MacPortsProvider, prepend_path
from setup_macports.core.services.platform_detector import PlatformDetector, UnsupportedPlatformError
from setup_macports.core.services.sources_provider import (
    InvalidRepositoryError,
    SourcesConfigError,
    SourcesResolver,
)
from setup_macports.core.services.version_resolver import VersionResolver

logger = logging.getLogger(__name__)

CACHE_STAGING_DIR = "/tmp/macports-cache"

# Errors that end the run with a message instead of a traceback
SETUP_ERRORS = (
    InputError,
    CommandError,
    UnsupportedPlatformError,
    InvalidRepositoryError,
    SourcesConfigError,
    OSError,
)


@dataclass
class SetupResult:
    """Result of the main phase."""

    settings: Settings | None = None
    platform: PlatformInfo | None = None
    install_info: InstallInfo | None = None
    cache_key: str = ""
    cache_hit: bool = False
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        result: dict = {
            "version": self.settings.effective_version if self.settings else "",
            "prefix": self.settings.prefix if self.settings else "",
            "cache_key": self.cache_key,
            "cache_hit": self.cache_hit,
        }
        if self.install_info:
            result["package_url"] = self.install_info.package_url
            result["uses_git_sources"] = self.install_info.uses_git_sources
        return result


def load_settings(
    env: Mapping[str, str],
    inputs_file: Path | None = None,
    resolver: VersionResolver | None = None,
) -> Settings:
    """Parse inputs and settle ``latest`` into ``resolved_version``.

    Raises:
        InputError: On invalid inputs.
    """
    settings = get_inputs(read_inputs(env, inputs_file))
    resolver = resolver or VersionResolver(github_token=settings.github_token)
    resolution = resolver.resolve(settings.version)
    if resolution.was_latest:
        settings.resolved_version = resolution.version
    logger.info("Using MacPorts version: %s", settings.effective_version)
    return settings


def run_setup(
    env: MutableMapping[str, str] | None = None,
    inputs_file: Path | None = None,
    state_path: Path | None = None,
    runner: CommandRunner | None = None,
    cache_store: CacheStore | None = None,
    resolver: VersionResolver | None = None,
    detector: PlatformDetector | None = None,
    staging_dir: str = CACHE_STAGING_DIR,
) -> SetupResult:
    """Run the main phase end to end.

    Args:
        env: Process environment (inputs, CI files). Defaults to os.environ.
        inputs_file: Optional YAML inputs file merged under the env inputs.
        state_path: Where the cross-phase state is written.
        runner: Process runner. Defaults to a real shell runner.
        cache_store: Cache store. Defaults to the local cache directory.
        resolver: Version resolver. Defaults to the GitHub releases API.
        detector: Platform detector. Defaults to querying this host.
        staging_dir: Temporary copy of the prefix used for cache I/O.

    Returns:
        SetupResult; ``error`` is set for expected failures.
    """
    env = os.environ if env is None else env
    state_path = state_path or default_state_path(env)
    runner = runner or ShellCommandRunner()
    channel = ActionsChannel(env)
    result = SetupResult()

    try:
        settings = load_settings(env, inputs_file, resolver)
        result.settings = settings

        with log_group("Detecting platform", logger):
            platform = (detector or PlatformDetector(runner)).detect()
            result.platform = platform
            logger.info("macOS: %s", platform.describe())

        context = CacheContext.from_env(env)
        keys = generate_improved_cache_key(settings, platform, context)
        result.cache_key = keys.cache_key

        if settings.cache:
            store = cache_store or CacheStore()
            _record_staging_dir(state_path, staging_dir)
            if _restore_from_cache(settings, keys, store, runner, channel, env, state_path, staging_dir):
                result.cache_hit = True
                logger.info("MacPorts setup complete (from cache)!")
                return result

        provider = MacPortsProvider(settings, platform, runner, channel, state_path, context=context)
        result.install_info = provider.setup()

        if settings.cache:
            channel.set_output("cache-hit", "false")
            _save_to_cache(settings, keys.cache_key, store, runner, staging_dir)

    except SETUP_ERRORS as e:
        result.error = str(e)
        return result

    info = result.install_info
    logger.info("MacPorts setup complete!")
    logger.info("Version: %s", info.version)
    logger.info("Prefix: %s", info.prefix)
    logger.info("Cache Key: %s", info.cache_key)
    return result


# ── Cache restore ───────────────────────────────────────────────


def _restore_from_cache(
    settings: Settings,
    keys: CacheKeyResult,
    store: CacheStore,
    runner: CommandRunner,
    channel: ActionsChannel,
    env: Mapping[str, str],
    state_path: Path,
    staging_dir: str,
) -> bool:
    """Restore the installation from the cache. True on a usable hit."""
    with log_group("Cache MacPorts", logger):
        logger.info("Primary cache key: %s", keys.cache_key)
        logger.debug("Restore keys: %s", ", ".join(keys.restore_keys))

        if env.get("CACHE_SAVE_ONLY") == "true":
            logger.info("CACHE_SAVE_ONLY is set - skipping cache restore")
            logger.info("Cache miss for %s", keys.cache_key)
            return False

        try:
            runner.check("sudo", ["-n", "rm", "-rf", staging_dir], silent=True)
            matched = store.restore([staging_dir], keys.cache_key, keys.restore_keys)
        except Exception as e:
            logger.warning("Failed to restore cache: %s", e)
            _discard_staging(runner, staging_dir)
            matched = None

        if matched is None:
            logger.info("Cache miss for %s", keys.cache_key)
            return False

    logger.info("Cache hit found for %s", matched)

    with log_group("Restore cache from temp to final location", logger):
        try:
            logger.info("Copying %s to %s...", staging_dir, settings.prefix)
            runner.check("sudo", ["-n", "mkdir", "-p", settings.prefix], silent=True)
            runner.check("sudo", ["-n", "cp", "-R", f"{staging_dir}/.", settings.prefix])
            runner.check("sudo", ["-n", "rm", "-rf", staging_dir], silent=True)
            logger.info("Cache restored successfully")
        except CommandError as e:
            logger.warning("Failed to restore cache: %s", e)
            _discard_staging(runner, staging_dir)
            return False

    logger.info("MacPorts installation restored from cache")
    with log_group("Fix permissions on restored cache", logger):
        fix_permissions(runner, settings.prefix)

    if matched != entry_name(keys.cache_key):
        with log_group("Refresh configuration for restored cache", logger):
            refresh_configuration(settings, runner)

    channel.set_outputs({
        "version": settings.effective_version,
        "prefix": settings.prefix,
        "cache-key": keys.cache_key,
        "cache-hit": "true",
    })
    if settings.prepend_path:
        prepend_path(channel, settings.prefix)

    _record_install(state_path, settings, keys.cache_key)
    return True


def fix_permissions(runner: CommandRunner, prefix: str) -> None:
    """Owner to the runner user, dirs 755, files 644, bin/sbin executable.

    Best effort: a failure is a warning.
    """
    logger.info("Fixing file ownership and permissions...")
    try:
        runner.check("sudo", ["-n", "chown", "-R", current_user(), prefix], silent=True)
        runner.check(
            "sudo", ["-n", "find", prefix, "-type", "d", "-exec", "chmod", "755", "{}", "+"], silent=True
        )
        runner.check(
            "sudo", ["-n", "find", prefix, "-type", "f", "-exec", "chmod", "644", "{}", "+"], silent=True
        )
        for sub in ("bin", "sbin"):
            runner.check("sudo", ["-n", "chmod", "-R", "755", posixpath.join(prefix, sub)], silent=True)
        logger.info("Permissions fixed successfully")
    except CommandError as e:
        logger.warning("Failed to fix permissions: %s", e)


def refresh_configuration(settings: Settings, runner: CommandRunner) -> None:
    """Rewrite the config files after a restore-key hit.

    The entry came from another configuration (variants, sources or
    platform), so macports.conf and variants.conf are written for this
    one. sources.conf is rewritten only where no checkout is involved;
    nothing is synced.
    """
    configurator = MacPortsConfigurator(runner)
    Path(settings.etc_dir).mkdir(parents=True, exist_ok=True)
    configurator.write_macports_conf(settings)
    configurator.write_variants_conf(settings)
    if settings.sources_provider in ("rsync", "custom"):
        sources = SourcesResolver(GitSourcesFetcher(runner)).resolve(settings)
        configurator.write_sources_conf(settings, sources.sources_conf_lines)


def _discard_staging(runner: CommandRunner, staging_dir: str) -> None:
    """Drop a partly restored staging copy before it can reach a new entry."""
    result = runner.execute_sudo("rm", ["-rf", staging_dir], silent=True)
    if not result.ok:
        logger.warning("Failed to remove %s: %s", staging_dir, result.describe_failure())


# ── Cache save ──────────────────────────────────────────────────


def _save_to_cache(
    settings: Settings,
    cache_key: str,
    store: CacheStore,
    runner: CommandRunner,
    staging_dir: str,
) -> None:
    """Save the fresh installation. Never fails the run."""
    with log_group("Save MacPorts cache", logger):
        try:
            logger.info("Copying %s to %s for caching...", settings.prefix, staging_dir)
            runner.check("sudo", ["-n", "rm", "-rf", staging_dir], silent=True)
            runner.check("sudo", ["-n", "mkdir", "-p", staging_dir], silent=True)
            runner.check("sudo", ["-n", "cp", "-R", f"{settings.prefix}/.", staging_dir])
            runner.check("sudo", ["-n", "chown", "-R", current_user(), staging_dir], silent=True)

            store.save([staging_dir], cache_key)
            logger.info("Cache saved with key: %s", cache_key)

            runner.check("sudo", ["-n", "rm", "-rf", staging_dir], silent=True)
        except ReservedCacheKeyError:
            logger.info("Cache key %s is reserved, not saving", cache_key)
        except Exception as e:
            logger.warning("Failed to save cache: %s", e)


# ── State ───────────────────────────────────────────────────────


def _record_staging_dir(state_path: Path, staging_dir: str) -> None:
    state = load_state(state_path)
    state.cache_staging_dir = staging_dir
    save_state(state, state_path)


def _record_install(state_path: Path, settings: Settings, cache_key: str) -> None:
    state = load_state(state_path)
    state.is_post = True
    state.installation_prefix = settings.prefix
    state.cache_key = cache_key
    state.macports_version = settings.effective_version
    save_state(state, state_path)
