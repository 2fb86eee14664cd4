"""
Tests for sources resolution — repository parsing and provider dispatch.
"""

import logging
from pathlib import Path

import pytest

from setup_macports.adapters.base import CommandError
from setup_macports.adapters.mock import MockCommandRunner
from setup_macports.adapters.vcs.git import GitSourcesFetcher
from setup_macports.core.models.settings import DEFAULT_RSYNC_URL, Settings
from setup_macports.core.services.sources_provider import (
    InvalidRepositoryError,
    SourcesConfigError,
    SourcesResolver,
    parse_repository,
    repository_directory,
    validate_custom_sources,
)


def _settings(tmp_path: Path, **kwargs) -> Settings:
    return Settings(version="2.10.5", prefix=str(tmp_path / "opt" / "local"), **kwargs)


class TestParseRepository:
    def test_owner_repo(self):
        assert parse_repository("macports/macports-ports") == "https://github.com/macports/macports-ports.git"

    @pytest.mark.parametrize(
        "url",
        [
            "https://github.com/macports/macports-ports.git",
            "https://gitlab.example.com/a/b",
            "git@github.com:macports/macports-ports.git",
        ],
    )
    def test_urls_verbatim(self, url):
        assert parse_repository(url) == url

    @pytest.mark.parametrize("value", ["http://github.com/a/b", "ssh://git@github.com/a/b", "file:///srv/ports"])
    def test_other_schemes_rejected(self, value):
        with pytest.raises(InvalidRepositoryError):
            parse_repository(value)

    @pytest.mark.parametrize("value", ["macports", "a/b/c", "", "own er/repo"])
    def test_malformed(self, value):
        with pytest.raises(InvalidRepositoryError):
            parse_repository(value)


class TestRepositoryDirectory:
    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("https://github.com/macports/macports-ports.git", ("macports", "macports-ports")),
            ("https://github.com/me/ports", ("me", "ports")),
            ("git@github.com:me/ports.git", ("me", "ports")),
            ("https://GitHub.com/me/ports.git", ("me", "ports")),
        ],
    )
    def test_github(self, url, expected):
        assert repository_directory(url) == expected

    @pytest.mark.parametrize(
        "url",
        [
            "https://evil.example/github.com/x/y",
            "https://github.com.evil.example/x/y",
            "https://gitlab.com/me/ports.git",
            "git@gitlab.com:me/ports.git",
            "https://github.com/only-owner",
        ],
    )
    def test_placeholder(self, url):
        assert repository_directory(url) == ("custom", "repository")


class TestCustomSources:
    def test_single_default(self):
        sources = ["file:///a [default]", "rsync://b"]
        assert validate_custom_sources(sources) == sources

    def test_two_defaults_rejected(self):
        with pytest.raises(SourcesConfigError, match="found 2"):
            validate_custom_sources(["file:///a [default]", "rsync://b [default]"])

    def test_no_default_warns(self, caplog):
        caplog.set_level(logging.WARNING)
        validate_custom_sources(["file:///a"])
        assert "[default]" in caplog.text

    def test_empty_uses_default_rsync(self, caplog):
        caplog.set_level(logging.WARNING)
        assert validate_custom_sources([]) == [f"{DEFAULT_RSYNC_URL} [default]"]
        assert "no sources were given" in caplog.text


class TestResolver:
    def _resolver(self, runner: MockCommandRunner) -> SourcesResolver:
        return SourcesResolver(GitSourcesFetcher(runner))

    def test_rsync(self, tmp_path, runner):
        settings = _settings(tmp_path, sources_provider="rsync", rsync_url="rsync://mirror/ports.tar")
        resolution = self._resolver(runner).resolve(settings)
        assert resolution.uses_git_sources is False
        assert resolution.sources_conf_lines == ["rsync://mirror/ports.tar [default]"]
        assert runner.call_count == 0

    def test_custom(self, tmp_path, runner):
        sources = ["file:///srv/ports [default]", "rsync://mirror/ports.tar"]
        settings = _settings(tmp_path, sources_provider="custom", sources=sources)
        resolution = self._resolver(runner).resolve(settings)
        assert resolution.sources_conf_lines == sources
        assert runner.call_count == 0

    def test_custom_two_defaults(self, tmp_path, runner):
        settings = _settings(
            tmp_path,
            sources_provider="custom",
            sources=["file:///a [default]", "file:///b [default]"],
        )
        with pytest.raises(SourcesConfigError):
            self._resolver(runner).resolve(settings)

    def test_git(self, tmp_path, runner):
        settings = _settings(tmp_path, sources_provider="git", git_ref="release-2.10")
        resolution = self._resolver(runner).resolve(settings)

        expected = str(tmp_path / "opt/local/var/macports/sources/github.com/macports/macports-ports")
        assert resolution.uses_git_sources is True
        assert resolution.git_source_path == expected
        assert resolution.sources_conf_lines == [f"file://{expected}/ [default]"]
        assert runner.commands == [
            ["git", "init", expected],
            ["git", "remote", "add", "origin", "https://github.com/macports/macports-ports.git"],
            ["git", "fetch", "--depth=1", "origin", "release-2.10"],
            ["git", "checkout", "-b", "release-2.10", "origin/release-2.10"],
        ]
        assert all(call["cwd"] == expected for call in runner.call_log[1:])

    def test_git_default_ref_is_master(self, tmp_path, runner):
        settings = _settings(tmp_path, sources_provider="git")
        self._resolver(runner).resolve(settings)
        assert ["git", "fetch", "--depth=1", "origin", "master"] in runner.commands

    def test_git_non_github_host_gets_placeholder_dir(self, tmp_path, runner):
        settings = _settings(
            tmp_path, sources_provider="git", git_repository="https://gitlab.com/me/ports.git"
        )
        resolution = self._resolver(runner).resolve(settings)
        assert resolution.git_source_path.endswith("var/macports/sources/git/custom/repository")

    def test_git_failure_propagates(self, tmp_path, runner):
        runner.set_failure("git", first_arg="fetch", error="fatal: couldn't find remote ref")
        settings = _settings(tmp_path, sources_provider="git")
        with pytest.raises(CommandError, match="remote ref"):
            self._resolver(runner).resolve(settings)

    def test_git_invalid_repository(self, tmp_path, runner):
        settings = _settings(tmp_path, sources_provider="git", git_repository="http://github.com/a/b")
        with pytest.raises(InvalidRepositoryError):
            self._resolver(runner).resolve(settings)
        assert runner.call_count == 0

    def test_auto_uses_git_when_it_works(self, tmp_path, runner):
        settings = _settings(tmp_path, sources_provider="auto")
        resolution = self._resolver(runner).resolve(settings)
        assert resolution.uses_git_sources is True
        assert resolution.fallback_reason == ""

    def test_auto_falls_back_to_rsync(self, tmp_path, runner, caplog):
        caplog.set_level(logging.WARNING)
        runner.set_failure("git", first_arg="fetch", error="network unreachable")
        settings = _settings(tmp_path, sources_provider="auto", rsync_url="rsync://ignored/ports.tar")
        resolution = self._resolver(runner).resolve(settings)

        assert resolution.uses_git_sources is False
        assert resolution.sources_conf_lines == [f"{DEFAULT_RSYNC_URL} [default]"]
        assert "network unreachable" in resolution.fallback_reason
        assert "Falling back to rsync" in caplog.text

    def test_auto_falls_back_on_invalid_repository(self, tmp_path, runner):
        settings = _settings(tmp_path, sources_provider="auto", git_repository="nonsense")
        resolution = self._resolver(runner).resolve(settings)
        assert resolution.uses_git_sources is False

    def test_fetch_replaces_existing_checkout(self, tmp_path, runner):
        target = tmp_path / "sources"
        stale = target / "ports" / "stale.txt"
        stale.parent.mkdir(parents=True)
        stale.write_text("old")
        GitSourcesFetcher(runner).fetch(str(target), "https://github.com/a/ports.git", "ports")
        assert not stale.exists()
        assert (target / "ports").is_dir()


class TestPortIndex:
    def test_success(self, runner):
        assert GitSourcesFetcher(runner).initialize_port_index("/src/ports", "/opt/local/bin/port")
        assert runner.commands == [["/opt/local/bin/port", "index", "/src/ports"]]

    def test_failure_is_not_fatal(self, runner):
        runner.set_failure("/opt/local/bin/port", first_arg="index")
        assert not GitSourcesFetcher(runner).initialize_port_index("/src/ports", "/opt/local/bin/port")
