"""
Shared test fixtures and configuration.
"""

import logging
from pathlib import Path

import pytest

from setup_macports.adapters.mock import MockCommandRunner
from setup_macports.core.models.platform import PlatformInfo
from setup_macports.core.models.settings import Settings


@pytest.fixture
def runner() -> MockCommandRunner:
    """A command runner where every command succeeds."""
    return MockCommandRunner()


@pytest.fixture
def platform() -> PlatformInfo:
    """An Apple silicon Sonoma host."""
    return PlatformInfo(version="Sonoma", version_number="14.5", architecture="arm64")


@pytest.fixture
def settings() -> Settings:
    """Settings as the input parser produces them from defaults."""
    return Settings(version="2.10.5")


@pytest.fixture
def prefix_settings(tmp_path: Path) -> Settings:
    """Settings whose prefix is a writable temporary directory."""
    return Settings(version="2.10.5", prefix=str(tmp_path / "opt" / "local"), cache=False)


@pytest.fixture
def tmp_state_dir(tmp_path: Path) -> Path:
    """Return a temporary directory for state files."""
    state_dir = tmp_path / "state"
    state_dir.mkdir()
    return state_dir


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """setup_logging() replaces root handlers; put them back after each test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
