"""
Tests for input parsing — scalar parsers, legacy shims, and get_inputs.
"""

import logging
import textwrap
from pathlib import Path

import pytest

from setup_macports.core.config.inputs import (
    DEFAULT_INPUTS,
    InputError,
    get_inputs,
    input_env_name,
    load_inputs_file,
    parse_boolean_input,
    parse_install_ports_input,
    parse_signature_check,
    parse_sources_input,
    parse_sources_provider,
    parse_variants_input,
    read_inputs,
)
from setup_macports.core.models.settings import DEFAULT_GIT_REPOSITORY, DEFAULT_RSYNC_URL


def _inputs(**overrides: str) -> dict[str, str]:
    values = dict(DEFAULT_INPUTS)
    for key, value in overrides.items():
        values[key.replace("_", "-")] = value
    return values


class TestScalarParsers:
    @pytest.mark.parametrize("value", ["true", "TRUE", " yes ", "1", "Yes"])
    def test_truthy(self, value):
        assert parse_boolean_input(value) is True

    @pytest.mark.parametrize("value", ["false", "0", "", "no", "on"])
    def test_falsy(self, value):
        assert parse_boolean_input(value) is False

    def test_variants(self):
        variants = parse_variants_input("+universal -x11  +quartz")
        assert variants.select == ["universal", "quartz"]
        assert variants.deselect == ["x11"]

    def test_variants_empty(self):
        variants = parse_variants_input("   ")
        assert variants.select == []
        assert variants.deselect == []

    def test_variants_bad_token(self):
        with pytest.raises(InputError, match="universal"):
            parse_variants_input("+x11 universal")

    def test_sources_lines(self):
        sources = parse_sources_input("\n  rsync://a/ports [default]\n\nfile:///b  \n")
        assert sources == ["rsync://a/ports [default]", "file:///b"]


class TestInstallPorts:
    def test_whitespace_list(self):
        ports = parse_install_ports_input("git-lfs   wget\ncurl")
        assert [p.name for p in ports] == ["git-lfs", "wget", "curl"]
        assert all(p.variants is None for p in ports)

    def test_json_list(self):
        ports = parse_install_ports_input(
            '[{"name": "db48", "variants": "+tcl -java"}, {"name": "wget"}]'
        )
        assert ports[0].name == "db48"
        assert ports[0].variants == "+tcl -java"
        assert ports[1].variants is None

    def test_invalid_json_falls_back_to_names(self):
        ports = parse_install_ports_input("[not json")
        assert [p.name for p in ports] == ["[not", "json"]

    def test_json_entry_without_name(self):
        with pytest.raises(InputError):
            parse_install_ports_input('[{"variants": "+tcl"}]')

    def test_empty(self):
        assert parse_install_ports_input("") == []


class TestLegacyShims:
    def test_provider_wins_over_use_git_sources(self):
        assert parse_sources_provider("rsync", "true") == "rsync"

    def test_use_git_sources_true(self):
        assert parse_sources_provider("", "true") == "git"

    def test_use_git_sources_false(self):
        assert parse_sources_provider("", "false") == "rsync"

    def test_default_is_auto(self):
        assert parse_sources_provider("", "") == "auto"

    def test_unknown_provider(self):
        with pytest.raises(InputError, match="svn"):
            parse_sources_provider("svn", "")

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("true", "strict"),
            ("1", "strict"),
            ("false", "disabled"),
            ("0", "disabled"),
            ("permissive", "permissive"),
            ("Disabled", "disabled"),
            ("", "strict"),
            ("sometimes", "strict"),
        ],
    )
    def test_signature_check(self, value, expected):
        assert parse_signature_check(value) == expected


class TestGetInputs:
    def test_defaults(self):
        settings = get_inputs(DEFAULT_INPUTS)
        assert settings.version == "latest"
        assert settings.prefix == "/opt/local"
        assert settings.sources_provider == "auto"
        assert settings.git_repository == DEFAULT_GIT_REPOSITORY
        assert settings.git_ref is None
        assert settings.rsync_url == DEFAULT_RSYNC_URL
        assert settings.prepend_path is True
        assert settings.cache is True
        assert settings.signature_check == "strict"
        assert settings.github_token is None

    def test_full(self):
        settings = get_inputs(_inputs(
            macports_version="2.10.5",
            variants="+aqua -x11",
            install_ports="wget",
            sources_provider="git",
            git_ref="release-2.10",
            signature_check="permissive",
            skip_signature_check="wget  curl",
            prefer_copy="true",
            github_token="ghp_x",
        ))
        assert settings.version == "2.10.5"
        assert settings.variants.select == ["aqua"]
        assert settings.ports[0].name == "wget"
        assert settings.sources_provider == "git"
        assert settings.git_ref == "release-2.10"
        assert settings.signature_skip_packages == ["wget", "curl"]
        assert settings.prefer_copy is True
        assert settings.github_token == "ghp_x"
        assert "ghp_x" not in repr(settings)

    def test_relative_prefix_rejected(self):
        with pytest.raises(InputError, match="absolute"):
            get_inputs(_inputs(installation_prefix="opt/local"))

    def test_empty_version_rejected(self):
        with pytest.raises(InputError, match="macports-version"):
            get_inputs(_inputs(macports_version="  "))

    def test_custom_prefix_warns(self, caplog):
        caplog.set_level(logging.WARNING)
        get_inputs(_inputs(installation_prefix="/Users/runner/macports"))
        assert "custom prefix" in caplog.text

    def test_prefix_with_spaces_warns(self, caplog):
        caplog.set_level(logging.WARNING)
        get_inputs(_inputs(installation_prefix="/opt/mac ports"))
        assert "contains spaces" in caplog.text


class TestInputChannel:
    def test_env_name(self):
        assert input_env_name("macports-version") == "INPUT_MACPORTS-VERSION"
        assert input_env_name("some input") == "INPUT_SOME_INPUT"

    def test_env_overrides_defaults(self):
        inputs = read_inputs({"INPUT_MACPORTS-VERSION": "2.9.3", "INPUT_CACHE": " "})
        assert inputs["macports-version"] == "2.9.3"
        assert inputs["cache"] == "true"

    def test_file_then_env(self, tmp_path: Path):
        path = tmp_path / "inputs.yml"
        path.write_text(textwrap.dedent("""\
            with:
              macports-version: 2.9.3
              variants: +aqua
              cache: false
              sources:
                - rsync://one [default]
                - file:///two
        """))
        inputs = read_inputs({"INPUT_VARIANTS": "-x11"}, path)
        assert inputs["macports-version"] == "2.9.3"
        assert inputs["variants"] == "-x11"
        assert inputs["cache"] == "false"
        assert inputs["sources"] == "rsync://one [default]\nfile:///two"

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(InputError, match="not found"):
            load_inputs_file(tmp_path / "nope.yml")

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "bad.yml"
        path.write_text("key: [unclosed")
        with pytest.raises(InputError, match="Invalid YAML"):
            load_inputs_file(path)

    def test_not_a_mapping(self, tmp_path: Path):
        path = tmp_path / "list.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(InputError, match="mapping"):
            load_inputs_file(path)

    def test_empty_file(self, tmp_path: Path):
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert load_inputs_file(path) == {}
