"""
Input parsing — raw CI input strings into a validated Settings model.

Inputs arrive as a flat mapping of input name → string. They are read
from the GitHub Actions input channel (``INPUT_<NAME>`` environment
variables) and may be layered over an optional YAML inputs file:

    defaults  <  inputs file  <  environment

Legacy input shapes are normalized here and never leave this module:
``use-git-sources`` (boolean) becomes ``sources_provider`` and a
boolean ``signature-check`` becomes the strict/disabled mode.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from setup_macports.core.models.settings import (
    DEFAULT_GIT_REPOSITORY,
    DEFAULT_PREFIX,
    DEFAULT_RSYNC_URL,
    SIGNATURE_CHECK_MODES,
    SOURCES_PROVIDERS,
    PortConfig,
    Settings,
    VariantConfig,
)

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")

# Every input the action understands, with its default value.
DEFAULT_INPUTS: dict[str, str] = {
    "macports-version": "latest",
    "installation-prefix": DEFAULT_PREFIX,
    "variants": "",
    "sources": "",
    "use-git-sources": "",
    "sources-provider": "",
    "git-repository": "",
    "git-ref": "",
    "rsync-url": "",
    "install-ports": "",
    "prepend-path": "true",
    "verbose": "false",
    "signature-check": "strict",
    "skip-signature-check": "",
    "debug": "false",
    "cache": "true",
    "prefer-copy": "false",
    "github-token": "",
}


class InputError(Exception):
    """Raised when an input value is malformed or missing."""


# ── Scalar parsers ──────────────────────────────────────────────


def parse_boolean_input(value: str) -> bool:
    """Parse 'true'/'1'/'yes' (any case, surrounding whitespace ignored)."""
    return value.strip().lower() in ("true", "1", "yes")


def parse_variants_input(value: str) -> VariantConfig:
    """Parse ``+variant -variant`` tokens into a VariantConfig.

    Raises:
        InputError: If a token has neither a ``+`` nor a ``-`` prefix.
    """
    variants = VariantConfig()
    if not value or not value.strip():
        return variants

    for part in _WHITESPACE.split(value.strip()):
        if part.startswith("+"):
            variants.select.append(part[1:])
        elif part.startswith("-"):
            variants.deselect.append(part[1:])
        else:
            raise InputError(
                f'Invalid variant syntax: "{part}". '
                "Use +variant to enable or -variant to disable."
            )
    return variants


def parse_sources_input(value: str) -> list[str]:
    """One source per line; blank lines dropped, each line trimmed."""
    if not value or not value.strip():
        return []
    return [line.strip() for line in value.splitlines() if line.strip()]


def parse_install_ports_input(value: str) -> list[PortConfig]:
    """Parse the install-ports input.

    Two formats are accepted:

    - JSON array: ``[{"name": "db48", "variants": "+tcl -java"}, ...]``
    - whitespace-separated names: ``"git-lfs wget"``

    Input that starts with ``[`` but is not valid JSON falls through to
    the whitespace format.
    """
    if not value or not value.strip():
        return []

    trimmed = value.strip()
    if trimmed.startswith("["):
        try:
            parsed = json.loads(trimmed)
        except json.JSONDecodeError as e:
            logger.debug("install-ports is not JSON (%s), treating as a name list", e)
        else:
            if isinstance(parsed, list):
                return [_port_from_json(item) for item in parsed]

    return [PortConfig(name=name) for name in _WHITESPACE.split(trimmed) if name]


def _port_from_json(item: Any) -> PortConfig:
    if not isinstance(item, dict) or not item.get("name"):
        raise InputError(f"Invalid install-ports entry (needs a 'name'): {item!r}")
    variants = item.get("variants")
    return PortConfig(name=str(item["name"]), variants=str(variants) if variants else None)


def parse_sources_provider(provider: str, use_git_sources: str) -> str:
    """Pick the sources provider, honouring the legacy use-git-sources flag.

    Precedence: sources-provider > use-git-sources > ``auto``.
    """
    if provider:
        if provider not in SOURCES_PROVIDERS:
            raise InputError(
                f'Invalid sources-provider: "{provider}". '
                f"Must be one of: {', '.join(SOURCES_PROVIDERS)}"
            )
        return provider

    if use_git_sources:
        converted = "git" if parse_boolean_input(use_git_sources) else "rsync"
        logger.debug(
            'Converted use-git-sources="%s" to sources-provider="%s"',
            use_git_sources,
            converted,
        )
        return converted

    return "auto"


def parse_signature_check(value: str) -> str:
    """Map the signature-check input onto strict/permissive/disabled.

    ``true``/``1`` and ``false``/``0`` are the legacy boolean spellings.
    Anything unrecognised is treated as ``strict``.
    """
    normalized = value.strip().lower()
    if normalized in ("true", "1"):
        return "strict"
    if normalized in ("false", "0"):
        return "disabled"
    if normalized in SIGNATURE_CHECK_MODES:
        return normalized
    if normalized:
        logger.warning('Unknown signature-check value "%s", using "strict"', value)
    return "strict"


# ── Input channel ───────────────────────────────────────────────


def input_env_name(name: str) -> str:
    """Environment variable GitHub Actions uses for an input."""
    return f"INPUT_{name.replace(' ', '_').upper()}"


def load_inputs_file(path: Path) -> dict[str, str]:
    """Load a YAML mapping of input name → value.

    Raises:
        InputError: If the file is missing, unreadable, or not a mapping.
    """
    if not path.is_file():
        raise InputError(f"Inputs file not found: {path}")

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise InputError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise InputError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InputError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The file may wrap everything under a "with" key, as in a workflow step
    data = data.get("with", data) if isinstance(data.get("with"), dict) else data

    return {str(k): _stringify(v) for k, v in data.items() if v is not None}


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return "\n".join(str(v) for v in value)
    return str(value)


def read_inputs(
    env: Mapping[str, str],
    inputs_file: Path | None = None,
) -> dict[str, str]:
    """Collect raw inputs from defaults, an optional file, and the environment."""
    inputs = dict(DEFAULT_INPUTS)

    if inputs_file is not None:
        logger.debug("Loading inputs from %s", inputs_file)
        inputs.update(load_inputs_file(inputs_file))

    for name in DEFAULT_INPUTS:
        value = env.get(input_env_name(name), "")
        if value.strip():
            inputs[name] = value

    return inputs


# ── Settings ────────────────────────────────────────────────────


def get_inputs(inputs: Mapping[str, str]) -> Settings:
    """Validate raw inputs into a Settings model.

    Raises:
        InputError: On any missing or malformed input.
    """

    def get(name: str) -> str:
        return (inputs.get(name) or "").strip()

    version = get("macports-version")
    prefix = get("installation-prefix")

    if not version:
        raise InputError("macports-version is required")
    if not prefix:
        raise InputError("installation-prefix is required")
    if not prefix.startswith("/"):
        raise InputError(f'installation-prefix must be an absolute path: "{prefix}"')

    if _WHITESPACE.search(prefix):
        logger.warning(
            'installation-prefix contains spaces: "%s". This may cause issues with MacPorts.',
            prefix,
        )
    if prefix != DEFAULT_PREFIX:
        logger.warning(
            'Using custom prefix: "%s". This is experimental. '
            "Many MacPorts ports assume %s and may not work correctly.",
            prefix,
            DEFAULT_PREFIX,
        )

    skip_packages = get("skip-signature-check")

    try:
        return Settings(
            version=version,
            prefix=prefix,
            variants=parse_variants_input(get("variants")),
            sources=parse_sources_input(inputs.get("sources") or ""),
            ports=parse_install_ports_input(get("install-ports")),
            sources_provider=parse_sources_provider(
                get("sources-provider"), get("use-git-sources")
            ),
            git_repository=get("git-repository") or DEFAULT_GIT_REPOSITORY,
            git_ref=get("git-ref") or None,
            rsync_url=get("rsync-url") or DEFAULT_RSYNC_URL,
            prepend_path=parse_boolean_input(get("prepend-path")),
            verbose=parse_boolean_input(get("verbose")),
            debug=parse_boolean_input(get("debug")),
            cache=parse_boolean_input(get("cache")),
            prefer_copy=parse_boolean_input(get("prefer-copy")),
            signature_check=parse_signature_check(get("signature-check")),
            signature_skip_packages=_WHITESPACE.split(skip_packages) if skip_packages else [],
            github_token=get("github-token") or None,
        )
    except ValidationError as e:
        raise InputError(f"Invalid inputs: {e}") from e
