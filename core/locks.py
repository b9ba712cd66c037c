"""Mutual exclusion for read-modify-write cycles on one store file.

Two layers:

- a process-wide ``threading.Lock`` per store key, so every store object in
  this process that points at the same file shares one lock;
- a :mod:`filelock` lock beside the file when it lives on the local file
  system, so other processes are excluded too.

Acquisition timing out raises :class:`StorageIOError` before any read, so a
timed-out mutation leaves the file in its old state.
"""

from __future__ import annotations

import contextlib
import logging
import threading
import time
from collections.abc import Iterator
from pathlib import Path

from filelock import FileLock, Timeout

from core.errors import StorageIOError

logger = logging.getLogger(__name__)
logging.getLogger("filelock").setLevel(logging.INFO)

_registry_guard = threading.Lock()
_thread_locks: dict[str, threading.Lock] = {}


def _thread_lock_for(key: str) -> threading.Lock:
    with _registry_guard:
        lock = _thread_locks.get(key)
        if lock is None:
            lock = threading.Lock()
            _thread_locks[key] = lock
        return lock


class StoreLock:
    """Lock scoped to one store's backing path."""

    def __init__(self, key: str, *, local_path: Path | None = None, timeout: float = 10.0) -> None:
        self.key = key
        self.timeout = timeout
        self._thread_lock = _thread_lock_for(key)
        self._file_lock: FileLock | None = None
        if local_path is not None:
            self._file_lock = FileLock(str(local_path.with_name(local_path.name + ".lock")))

    @contextlib.contextmanager
    def hold(self) -> Iterator[None]:
        started = time.monotonic()
        if not self._thread_lock.acquire(timeout=self.timeout):
            logger.warning("Timed out after %.1fs waiting for store lock %s", self.timeout, self.key)
            raise StorageIOError(f"Timed out waiting for store lock on {self.key}", path=self.key)
        try:
            if self._file_lock is not None:
                remaining = max(self.timeout - (time.monotonic() - started), 0.0)
                try:
                    Path(self._file_lock.lock_file).parent.mkdir(parents=True, exist_ok=True)
                    self._file_lock.acquire(timeout=remaining)
                except Timeout as exc:
                    logger.warning("Timed out waiting for file lock %s", self._file_lock.lock_file)
                    raise StorageIOError(f"Timed out waiting for file lock on {self.key}", path=self.key) from exc
                except OSError as exc:
                    raise StorageIOError(f"Could not create lock file for {self.key}: {exc}", path=self.key) from exc
            try:
                yield
            finally:
                if self._file_lock is not None and self._file_lock.is_locked:
                    self._file_lock.release()
        finally:
            self._thread_lock.release()
