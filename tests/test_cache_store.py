"""
Tests for the local cache store — save, restore, and key reservation.
"""

import os
import shutil
import time
from pathlib import Path

import pytest

from setup_macports.core.services.cache_store import (
    CacheStore,
    ReservedCacheKeyError,
    default_cache_dir,
)


def _tree(root: Path) -> Path:
    (root / "bin").mkdir(parents=True)
    (root / "bin" / "port").write_text("#!/bin/sh\n")
    (root / "etc").mkdir()
    (root / "etc" / "macports.conf").write_text("prefix /opt/local\n")
    return root


class TestCacheStore:
    def test_save_and_restore_exact(self, tmp_path: Path):
        staging = _tree(tmp_path / "staging")
        store = CacheStore(tmp_path / "cache")
        archive = store.save([str(staging)], "macports-2.10.5-arm64-14-aaaa-bbbb")
        assert archive.is_file()

        for f in (staging / "bin" / "port", staging / "etc" / "macports.conf"):
            f.unlink()
        matched = store.restore([str(staging)], "macports-2.10.5-arm64-14-aaaa-bbbb")

        assert matched == "macports-2.10.5-arm64-14-aaaa-bbbb"
        assert (staging / "etc" / "macports.conf").read_text() == "prefix /opt/local\n"

    def test_absolute_symlink_round_trip(self, tmp_path: Path):
        staging = _tree(tmp_path / "staging")
        target = staging / "bin" / "python3.12"
        target.write_text("#!/bin/sh\n")
        absolute = target.resolve()
        (staging / "bin" / "python3").symlink_to(absolute)
        store = CacheStore(tmp_path / "cache")
        store.save([str(staging)], "k")

        shutil.rmtree(staging)
        assert store.restore([str(staging)], "k") == "k"

        link = staging / "bin" / "python3"
        assert link.is_symlink()
        assert os.readlink(link) == str(absolute)
        assert link.read_text() == "#!/bin/sh\n"

    def test_miss(self, tmp_path: Path):
        store = CacheStore(tmp_path / "cache")
        assert store.restore([str(tmp_path / "staging")], "macports-x", ["macports-"]) is None

    def test_restore_key_prefix(self, tmp_path: Path):
        staging = _tree(tmp_path / "staging")
        store = CacheStore(tmp_path / "cache")
        store.save([str(staging)], "macports-2.10.5-arm64-14-aaaa-1111")

        matched = store.restore(
            [str(staging)],
            "macports-2.10.5-arm64-14-aaaa-2222",
            ["macports-2.10.5-arm64-14-aaaa-", "macports-2.10.5-arm64-"],
        )
        assert matched == "macports-2.10.5-arm64-14-aaaa-1111"

    def test_restore_keys_in_order_newest_first(self, tmp_path: Path):
        staging = _tree(tmp_path / "staging")
        store = CacheStore(tmp_path / "cache")
        older = store.save([str(staging)], "macports-2.10.5-arm64-14-cfg-old")
        store.save([str(staging)], "macports-2.10.5-arm64-14-cfg-new")
        store.save([str(staging)], "macports-2.10.5-arm64-14-other-x")
        past = time.time() - 3600
        os.utime(older, (past, past))

        assert store.lookup("nope", ["macports-2.10.5-arm64-14-cfg-"]) == "macports-2.10.5-arm64-14-cfg-new"
        assert store.lookup("nope", ["macports-9-", "macports-2.10.5-arm64-14-other-"]) == (
            "macports-2.10.5-arm64-14-other-x"
        )

    def test_save_existing_key_reserved(self, tmp_path: Path):
        staging = _tree(tmp_path / "staging")
        store = CacheStore(tmp_path / "cache")
        store.save([str(staging)], "k")
        with pytest.raises(ReservedCacheKeyError):
            store.save([str(staging)], "k")

    def test_save_locked_key_reserved(self, tmp_path: Path):
        staging = _tree(tmp_path / "staging")
        store = CacheStore(tmp_path / "cache")
        store.root.mkdir(parents=True)
        store.lock_path("k").write_text("")
        with pytest.raises(ReservedCacheKeyError):
            store.save([str(staging)], "k")
        assert store.keys() == []

    def test_save_missing_paths(self, tmp_path: Path):
        store = CacheStore(tmp_path / "cache")
        with pytest.raises(FileNotFoundError):
            store.save([str(tmp_path / "nope")], "k")

    def test_lock_released_after_save(self, tmp_path: Path):
        staging = _tree(tmp_path / "staging")
        store = CacheStore(tmp_path / "cache")
        store.save([str(staging)], "k")
        assert not store.lock_path("k").exists()
        assert list(store.root.glob(".cache_*.tmp")) == []

    def test_default_dir_from_env(self, tmp_path: Path):
        assert default_cache_dir({"SETUP_MACPORTS_CACHE_DIR": str(tmp_path)}) == tmp_path

    def test_default_dir_home(self):
        assert default_cache_dir({}) == Path.home() / ".cache" / "setup-macports"
