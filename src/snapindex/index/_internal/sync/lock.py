"""Per-index sync lock: a pid file published with ``os.link``.

The pid is written to a private temp file first and hard-linked into place,
so the lock file is never visible without its pid. A lock whose pid no
longer exists is stale and is taken over. A lock without a readable pid is
treated as held until it is older than ``LOCK_GRACE_SECONDS``.
"""

from __future__ import annotations

import contextlib
import os
import time
from pathlib import Path
from types import TracebackType
from uuid import uuid4

import structlog

from snapindex.core.errors import SyncInProgressError

log = structlog.get_logger()

LOCK_GRACE_SECONDS = 30.0
_ATTEMPTS = 3


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text()
    except FileNotFoundError:
        return None


def _parse_pid(text: str | None) -> int | None:
    if text is None:
        return None
    try:
        return int(text.strip())
    except ValueError:
        return None


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but owned by another user
        return True
    except OSError:
        return False
    return True


def _lock_age(path: Path) -> float | None:
    try:
        return time.time() - path.stat().st_mtime
    except FileNotFoundError:
        return None


class SyncLock:
    """Exclusive lock for one index directory.

    Usage::

        with SyncLock(index_dir / "sync.lock"):
            ...

    Raises:
        SyncInProgressError: A live process holds the lock, or a takeover of
            a stale lock lost the race to another process.
    """

    def __init__(self, path: Path, *, grace_seconds: float = LOCK_GRACE_SECONDS) -> None:
        self._path = Path(path)
        self._grace = grace_seconds
        self._held = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        for _ in range(_ATTEMPTS):
            if self._publish():
                self._held = True
                log.debug("sync.lock_acquired", path=str(self._path))
                return

            observed = _read_text(self._path)
            if observed is None:
                continue
            pid = _parse_pid(observed)
            if pid is not None and _pid_alive(pid):
                raise SyncInProgressError.locked(str(self._path), pid)
            if pid is None:
                age = _lock_age(self._path)
                if age is None:
                    continue
                if age < self._grace:
                    raise SyncInProgressError.locked(str(self._path), None)

            log.warning("sync.stale_lock", path=str(self._path), pid=pid)
            if not self._take_over(observed):
                break
        raise SyncInProgressError.locked(str(self._path), _parse_pid(_read_text(self._path)))

    def _publish(self) -> bool:
        """Link a temp file holding our pid into place; False if the lock exists."""
        tmp = self._path.with_name(f"{self._path.name}.{os.getpid()}.{uuid4().hex[:8]}.tmp")
        try:
            tmp.write_text(str(os.getpid()))
            try:
                os.link(tmp, self._path)
            except FileExistsError:
                return False
            return True
        finally:
            tmp.unlink(missing_ok=True)

    def _take_over(self, observed: str) -> bool:
        """Move a stale lock aside; False if it was replaced by a live one first."""
        aside = self._path.with_name(f"{self._path.name}.{uuid4().hex[:8]}.stale")
        try:
            os.rename(self._path, aside)
        except FileNotFoundError:
            return True
        try:
            if _read_text(aside) == observed:
                return True
            # Another process took the lock between our read and the rename
            with contextlib.suppress(FileExistsError):
                os.link(aside, self._path)
            return False
        finally:
            aside.unlink(missing_ok=True)

    def release(self) -> None:
        if not self._held:
            return
        with contextlib.suppress(FileNotFoundError):
            self._path.unlink()
        self._held = False
        log.debug("sync.lock_released", path=str(self._path))

    def __enter__(self) -> SyncLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
