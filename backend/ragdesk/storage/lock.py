"""Exclusive writer lock for an index."""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Dict, Optional

from ..core.errors import IndexBusy

logger = logging.getLogger(__name__)

_process_locks: Dict[str, threading.Lock] = {}
_registry_lock = threading.Lock()


def _process_lock(key: str) -> threading.Lock:
    with _registry_lock:
        lock = _process_locks.get(key)
        if lock is None:
            lock = _process_locks[key] = threading.Lock()
        return lock


def _pid_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except OSError:
        return False
    return True


class IndexLock:
    """Held by an ingestion run for its whole duration.

    Combines a lock shared by threads of this process with a lock file that
    other processes respect. Lock files left behind by dead processes are
    reclaimed.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._thread_lock = _process_lock(str(self.path.resolve()))
        self._held = False

    def acquire(self) -> None:
        if not self._thread_lock.acquire(blocking=False):
            raise IndexBusy(f"Index is locked by another ingestion run in this process ({self.path})", stage="lock")
        try:
            self._create_lock_file()
        except Exception:
            self._thread_lock.release()
            raise
        self._held = True

    def release(self) -> None:
        if not self._held:
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            logger.warning(f"Lock file {self.path} vanished before release")
        finally:
            self._held = False
            self._thread_lock.release()

    def _create_lock_file(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        for _ in range(2):
            try:
                fd = os.open(str(self.path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                holder = self._read_holder()
                if holder is not None and not _pid_alive(holder):
                    logger.warning(f"Removing stale index lock held by dead process {holder}")
                    try:
                        self.path.unlink()
                    except FileNotFoundError:
                        pass
                    continue
                raise IndexBusy(
                    f"Index is locked by process {holder} ({self.path})", stage="lock"
                )
            with os.fdopen(fd, "w") as f:
                f.write(str(os.getpid()))
            return
        raise IndexBusy(f"Could not acquire index lock {self.path}", stage="lock")

    def _read_holder(self) -> Optional[int]:
        try:
            text = self.path.read_text().strip()
            return int(text) if text else None
        except (OSError, ValueError):
            return None

    def __enter__(self) -> "IndexLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
