"""
Domain models — Pydantic types for the MacPorts setup.

All models are re-exported here for convenient access:

    from setup_macports.core.models import Settings, PlatformInfo, RunState
"""

from setup_macports.core.models.install import (
    CacheKeyResult,
    ConfigurationInfo,
    InstallInfo,
)
from setup_macports.core.models.platform import PlatformInfo
from setup_macports.core.models.settings import PortConfig, Settings, VariantConfig
from setup_macports.core.models.state import RunState
from setup_macports.core.models.version import Release, VersionResolution

__all__ = [
    # install.py
    "CacheKeyResult",
    "ConfigurationInfo",
    "InstallInfo",
    # platform.py
    "PlatformInfo",
    # settings.py
    "PortConfig",
    # version.py
    "Release",
    # state.py
    "RunState",
    "Settings",
    "VariantConfig",
    "VersionResolution",
]
