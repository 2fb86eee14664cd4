"""
Cache store — a local key/value cache of directory trees.

Each entry is one gzipped tarball under the cache root:

    {root}/{key}.tar.gz     the archived paths (stored relative to /)
    {root}/{key}.lock       present while the entry is being written

Lookup is exact key first, then the newest entry whose key starts with
each restore key, in order. Keys are never overwritten.
"""

from __future__ import annotations

import logging
import os
import re
import tarfile
import tempfile
from collections.abc import Mapping
from pathlib import Path

logger = logging.getLogger(__name__)

CACHE_DIR_ENV = "SETUP_MACPORTS_CACHE_DIR"
ARCHIVE_SUFFIX = ".tar.gz"
LOCK_SUFFIX = ".lock"

_UNSAFE = re.compile(r"[^\w.-]")


class ReservedCacheKeyError(Exception):
    """Raised when saving to a key that already exists or is being written."""

    def __init__(self, key: str):
        super().__init__(f"Unable to reserve cache with key {key}, another job may be creating this cache.")
        self.key = key


def default_cache_dir(env: Mapping[str, str] | None = None) -> Path:
    """Cache root: $SETUP_MACPORTS_CACHE_DIR, else ~/.cache/setup-macports."""
    env = os.environ if env is None else env
    override = env.get(CACHE_DIR_ENV)
    if override:
        return Path(override)
    return Path.home() / ".cache" / "setup-macports"


def entry_name(key: str) -> str:
    """File-system safe name of the entry stored under ``key``."""
    return _UNSAFE.sub("_", key)


class CacheStore:
    """Save and restore directory trees by key."""

    def __init__(self, root: Path | str | None = None):
        self.root = Path(root) if root is not None else default_cache_dir()

    def archive_path(self, key: str) -> Path:
        return self.root / f"{entry_name(key)}{ARCHIVE_SUFFIX}"

    def lock_path(self, key: str) -> Path:
        return self.root / f"{entry_name(key)}{LOCK_SUFFIX}"

    def keys(self) -> list[str]:
        """Entry names, newest first."""
        if not self.root.is_dir():
            return []
        archives = [p for p in self.root.iterdir() if p.name.endswith(ARCHIVE_SUFFIX)]
        archives.sort(key=lambda p: p.stat().st_mtime, reverse=True)
        return [p.name[: -len(ARCHIVE_SUFFIX)] for p in archives]

    def lookup(self, key: str, restore_keys: list[str] | None = None) -> str | None:
        """Entry name matching ``key`` or one of ``restore_keys``."""
        available = self.keys()
        exact = entry_name(key)
        if exact in available:
            return exact
        for prefix in restore_keys or []:
            wanted = entry_name(prefix)
            for name in available:
                if name.startswith(wanted):
                    return name
        return None

    def restore(self, paths: list[str], key: str, restore_keys: list[str] | None = None) -> str | None:
        """Restore ``paths`` from the best matching entry.

        Returns:
            The matched key, or None on a miss.
        """
        matched = self.lookup(key, restore_keys)
        if matched is None:
            logger.debug("No cache entry for %s", key)
            return None

        wanted = {_arcname(p) for p in paths}
        archive = self.root / f"{matched}{ARCHIVE_SUFFIX}"
        logger.info("Restoring cache entry %s", matched)
        with tarfile.open(archive, "r:gz") as tar:
            members = [
                m for m in tar.getmembers()
                if any(m.name == w or m.name.startswith(w + "/") for w in wanted)
            ]
            # Entries are written by save() alone; absolute symlinks such as
            # those `port select` creates must survive the round trip
            tar.extractall(path="/", members=members, filter="tar")
        logger.debug("Restored %d entries from %s", len(members), archive)
        return matched

    def save(self, paths: list[str], key: str) -> Path:
        """Archive ``paths`` under ``key``.

        Raises:
            ReservedCacheKeyError: If the key exists or is locked.
            FileNotFoundError: If none of the paths exist.
        """
        existing = [p for p in paths if Path(p).exists()]
        if not existing:
            raise FileNotFoundError(f"Path Validation Error: none of {paths} exist")

        self.root.mkdir(parents=True, exist_ok=True)
        archive = self.archive_path(key)
        if archive.exists():
            raise ReservedCacheKeyError(key)

        lock = self.lock_path(key)
        try:
            fd = os.open(lock, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError as e:
            raise ReservedCacheKeyError(key) from e
        os.close(fd)

        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.root, prefix=".cache_", suffix=".tmp")
            os.close(fd)
            tmp = Path(tmp_path)
            try:
                with tarfile.open(tmp, "w:gz") as tar:
                    for p in existing:
                        tar.add(p, arcname=_arcname(p))
                tmp.replace(archive)
            except Exception:
                tmp.unlink(missing_ok=True)
                raise
        finally:
            lock.unlink(missing_ok=True)

        logger.info("Cache saved with key: %s (%d bytes)", key, archive.stat().st_size)
        return archive


def _arcname(path: str) -> str:
    return str(Path(path).resolve()).lstrip("/")
