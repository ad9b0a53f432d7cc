"""
Reader/writer lock guarding a kinematic model.

Readers (pose queries) share the lock, writers (joint value updates) hold it
exclusively. A thread that holds the write lock may re-acquire it and may
take read locks, so joint-value propagation can call back into the model.
Read locks are re-entrant per thread. Upgrading a read lock to a write lock
is refused since two upgrading readers would deadlock.
"""

import threading
from contextlib import contextmanager
from typing import Iterator


class ReadWriteLock:
    """Writer-preferring, re-entrant reader/writer lock."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._read_depth: dict[int, int] = {}
        self._writer: int | None = None
        self._write_depth = 0
        self._waiting_writers = 0

    def acquire_read(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if self._writer == me:
                self._write_depth += 1
                return
            held = self._read_depth.get(me, 0)
            if not held:
                while self._writer is not None or self._waiting_writers:
                    self._cond.wait()
            self._read_depth[me] = held + 1
            self._readers += 1

    def release_read(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if self._writer == me:
                self._write_depth -= 1
                return
            held = self._read_depth.get(me, 0)
            if not held:
                raise RuntimeError("release_read() called without holding a read lock")
            if held == 1:
                del self._read_depth[me]
            else:
                self._read_depth[me] = held - 1
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if self._writer == me:
                self._write_depth += 1
                return
            if self._read_depth.get(me):
                raise RuntimeError("cannot upgrade a read lock to a write lock")
            self._waiting_writers += 1
            try:
                while self._writer is not None or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = me
            self._write_depth = 1

    def release_write(self) -> None:
        with self._cond:
            if self._writer != threading.get_ident():
                raise RuntimeError("release_write() called by a thread not owning the lock")
            self._write_depth -= 1
            if self._write_depth == 0:
                self._writer = None
                self._cond.notify_all()

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        """Hold a shared lock for the duration of the ``with`` block."""
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        """Hold the exclusive lock for the duration of the ``with`` block."""
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()

    @property
    def is_write_locked(self) -> bool:
        return self._writer is not None
