"""
setup-macports — CLI entrypoint.

Usage:
    setup-macports run                  # main phase of the CI step
    setup-macports post                 # post (cleanup) phase
    setup-macports cache-key --json
    setup-macports resolve-version latest
    setup-macports package-url --macos-version 14.5 --arch arm64
"""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path

import click

from setup_macports import __version__
from setup_macports.core.observability.logging_config import setup_logging

logger = logging.getLogger("setup_macports")


@click.group()
@click.version_option(version=__version__, prog_name="setup-macports")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--inputs-file",
    "-i",
    "inputs_file",
    type=click.Path(exists=False),
    default=None,
    help="YAML file of step inputs (INPUT_* variables take precedence).",
)
@click.option(
    "--state-file",
    "state_file",
    type=click.Path(exists=False),
    default=None,
    help="Cross-phase state file (default: $RUNNER_TEMP/setup-macports/state.json).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    inputs_file: str | None,
    state_file: str | None,
) -> None:
    """Install and configure MacPorts on a macOS CI runner."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["inputs_file"] = Path(inputs_file) if inputs_file else None
    ctx.obj["state_file"] = Path(state_file) if state_file else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("SETUP_MACPORTS_LOG_LEVEL", "INFO")

    setup_logging(
        level=level,
        log_file=os.environ.get("SETUP_MACPORTS_LOG_FILE"),
        log_file_level=os.environ.get("SETUP_MACPORTS_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
        actions=os.environ.get("GITHUB_ACTIONS") == "true",
    )


def _fail(message: str) -> None:
    logger.error(message)
    sys.exit(1)


def _platform_from_options(macos_version: str | None, arch: str | None):
    """PlatformInfo from explicit options, or detected from this host."""
    from setup_macports.adapters.shell.command import ShellCommandRunner
    from setup_macports.core.models.platform import PlatformInfo
    from setup_macports.core.services.platform_detector import PlatformDetector, release_name

    if macos_version:
        return PlatformInfo(
            version=release_name(macos_version) or "Unknown",
            version_number=macos_version,
            architecture=arch or "unknown",
        )
    platform = PlatformDetector(ShellCommandRunner()).detect()
    if arch:
        platform = platform.model_copy(update={"architecture": arch})
    return platform


def platform_options(fn):
    """--macos-version and --arch, for running off the target host."""
    fn = click.option(
        "--arch",
        type=click.Choice(["arm64", "x86_64"]),
        default=None,
        help="CPU architecture (default: detect).",
    )(fn)
    return click.option("--macos-version", default=None, help="macOS version number (default: detect).")(fn)


# ── Phases ──────────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def run(ctx: click.Context, as_json: bool) -> None:
    """Run the main phase: install (or restore) and configure MacPorts."""
    from setup_macports.core.use_cases.setup import run_setup

    result = run_setup(inputs_file=ctx.obj.get("inputs_file"), state_path=ctx.obj.get("state_file"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    if result.error:
        _fail(result.error)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def post(ctx: click.Context, as_json: bool) -> None:
    """Run the post phase: clean up after the main phase."""
    from setup_macports.core.use_cases.cleanup import run_cleanup

    result = run_cleanup(state_path=ctx.obj.get("state_file"))
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))


# ── Inspection ──────────────────────────────────────────────────


@cli.command("cache-key")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@platform_options
@click.pass_context
def cache_key(ctx: click.Context, as_json: bool, macos_version: str | None, arch: str | None) -> None:
    """Print the cache keys for the current inputs."""
    from setup_macports.core.config.inputs import InputError
    from setup_macports.core.services.cache_keys import (
        CacheContext,
        generate_cache_key,
        generate_improved_cache_key,
        generate_ports_cache_key,
        generate_setup_cache_key,
    )
    from setup_macports.core.services.platform_detector import UnsupportedPlatformError
    from setup_macports.core.use_cases.setup import load_settings

    try:
        settings = load_settings(os.environ, ctx.obj.get("inputs_file"))
        platform = _platform_from_options(macos_version, arch)
    except (InputError, UnsupportedPlatformError) as e:
        _fail(str(e))
        return

    keys = generate_improved_cache_key(settings, platform, CacheContext.from_env(os.environ))
    data = {
        "cache_key": keys.cache_key,
        "restore_keys": keys.restore_keys,
        "setup_key": generate_setup_cache_key(settings, platform),
        "ports_key": generate_ports_cache_key(settings, platform),
        "legacy_key": generate_cache_key(settings, platform),
    }

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    click.echo(f"Cache key:   {data['cache_key']}")
    for key in data["restore_keys"]:
        click.echo(f"Restore key: {key}")
    click.echo(f"Setup key:   {data['setup_key']}")
    click.echo(f"Ports key:   {data['ports_key']}")
    click.echo(f"Legacy key:  {data['legacy_key']}")


@cli.command("resolve-version")
@click.argument("version", default="latest")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def resolve_version(version: str, as_json: bool) -> None:
    """Resolve VERSION ('latest' or a version number)."""
    from setup_macports.core.services.version_resolver import VersionResolver

    resolution = VersionResolver().resolve(version)
    if as_json:
        click.echo(json.dumps(resolution.model_dump(), indent=2))
        return
    click.echo(resolution.version)


@cli.command("package-url")
@platform_options
@click.pass_context
def package_url(ctx: click.Context, macos_version: str | None, arch: str | None) -> None:
    """Print the installer package URL for the current inputs."""
    from setup_macports.core.config.inputs import InputError
    from setup_macports.core.services.package_builder import PackageBuilder
    from setup_macports.core.services.platform_detector import UnsupportedPlatformError
    from setup_macports.core.use_cases.setup import load_settings

    try:
        settings = load_settings(os.environ, ctx.obj.get("inputs_file"))
        platform = _platform_from_options(macos_version, arch)
        click.echo(PackageBuilder().build_url(settings, platform))
    except (InputError, UnsupportedPlatformError) as e:
        _fail(str(e))


if __name__ == "__main__":
    cli()
