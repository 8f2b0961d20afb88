"""Tests for the per-index sync lock."""

from __future__ import annotations

import os
import time
from pathlib import Path

import pytest

from snapindex.core.errors import ErrorCode, SyncInProgressError
from snapindex.index._internal.sync import SyncLock
from snapindex.index._internal.sync.lock import LOCK_GRACE_SECONDS

DEAD_PID = 2**22 + 12345


def _age(path: Path, seconds: float) -> None:
    past = time.time() - seconds
    os.utime(path, (past, past))


class TestSyncLock:
    """Tests for SyncLock."""

    def test_acquire_writes_pid_and_release_removes(self, tmp_path: Path) -> None:
        lock = SyncLock(tmp_path / "sync.lock")
        lock.acquire()
        assert lock.held
        assert (tmp_path / "sync.lock").read_text() == str(os.getpid())

        lock.release()
        assert not lock.held
        assert not (tmp_path / "sync.lock").exists()

    def test_context_manager(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "sync.lock"
        with SyncLock(path) as lock:
            assert lock.held
            assert path.exists()
        assert not path.exists()

    def test_released_on_exception(self, tmp_path: Path) -> None:
        path = tmp_path / "sync.lock"
        with pytest.raises(RuntimeError), SyncLock(path):
            raise RuntimeError("boom")
        assert not path.exists()

    def test_live_holder_blocks(self, tmp_path: Path) -> None:
        path = tmp_path / "sync.lock"
        with SyncLock(path):
            with pytest.raises(SyncInProgressError) as exc_info:
                SyncLock(path).acquire()
        assert exc_info.value.code == ErrorCode.SYNC_IN_PROGRESS
        assert exc_info.value.details["pid"] == os.getpid()

    def test_stale_lock_taken_over(self, tmp_path: Path) -> None:
        path = tmp_path / "sync.lock"
        path.write_text(str(DEAD_PID))
        lock = SyncLock(path)
        lock.acquire()
        assert lock.held
        assert path.read_text() == str(os.getpid())
        lock.release()

    def test_old_garbage_lock_taken_over(self, tmp_path: Path) -> None:
        path = tmp_path / "sync.lock"
        path.write_text("not a pid")
        _age(path, LOCK_GRACE_SECONDS + 5)
        with SyncLock(path) as lock:
            assert lock.held
            assert path.read_text() == str(os.getpid())

    @pytest.mark.parametrize("content", ["", "not a pid"])
    def test_fresh_lock_without_pid_blocks(self, tmp_path: Path, content: str) -> None:
        """A holder between create and pid write still owns the lock."""
        path = tmp_path / "sync.lock"
        path.write_text(content)
        with pytest.raises(SyncInProgressError) as exc_info:
            SyncLock(path).acquire()
        assert exc_info.value.details["pid"] is None
        assert path.read_text() == content

    def test_lost_takeover_race_raises(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        path = tmp_path / "sync.lock"
        path.write_text(str(DEAD_PID))
        take_over = SyncLock._take_over

        def _racing(self: SyncLock, observed: str) -> bool:
            # Another process replaces the stale lock first
            path.unlink()
            path.write_text(str(os.getpid()))
            return take_over(self, observed)

        monkeypatch.setattr(SyncLock, "_take_over", _racing)
        lock = SyncLock(path)
        with pytest.raises(SyncInProgressError):
            lock.acquire()
        assert not lock.held
        assert path.read_text() == str(os.getpid())

    def test_no_temp_files_left_behind(self, tmp_path: Path) -> None:
        path = tmp_path / "sync.lock"
        path.write_text(str(DEAD_PID))
        with SyncLock(path):
            assert [p.name for p in tmp_path.iterdir()] == ["sync.lock"]
        assert list(tmp_path.iterdir()) == []

    def test_release_without_acquire_is_noop(self, tmp_path: Path) -> None:
        path = tmp_path / "sync.lock"
        path.write_text("123")
        SyncLock(path).release()
        assert path.exists()
