"""Reader/writer lock used to serialize repository access."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator, Optional


class ReadWriteLock:
    """Shared-read / exclusive-write lock.

    * Any number of threads may hold the read side at once.
    * The write side is exclusive and re-entrant for its owning thread.
    * The writing thread may also take the read side (reads nested in a
      transaction).
    * Waiting writers block new readers so writes cannot starve; a thread
      that already holds a read is let through to avoid self-deadlock.
    * Upgrading a held read to a write raises :class:`RuntimeError`.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers: dict[int, int] = {}
        self._writer: Optional[int] = None
        self._write_depth = 0
        self._writers_waiting = 0

    # -- read side ----------------------------------------------------------

    def acquire_read(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if self._writer == me or me in self._readers:
                self._readers[me] = self._readers.get(me, 0) + 1
                return
            while self._writer is not None or self._writers_waiting:
                self._cond.wait()
            self._readers[me] = 1

    def release_read(self) -> None:
        me = threading.get_ident()
        with self._cond:
            count = self._readers.get(me)
            if not count:
                raise RuntimeError("release_read() called without a held read lock")
            if count == 1:
                del self._readers[me]
                self._cond.notify_all()
            else:
                self._readers[me] = count - 1

    # -- write side ---------------------------------------------------------

    def acquire_write(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if self._writer == me:
                self._write_depth += 1
                return
            if me in self._readers:
                raise RuntimeError("cannot upgrade a read lock to a write lock")
            self._writers_waiting += 1
            try:
                while self._writer is not None or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = me
            self._write_depth = 1

    def release_write(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if self._writer != me:
                raise RuntimeError("release_write() called by a thread that does not own the lock")
            self._write_depth -= 1
            if self._write_depth == 0:
                self._writer = None
                self._cond.notify_all()

    @property
    def write_depth(self) -> int:
        """Nesting level of the calling thread's write hold (0 if not held)."""
        with self._cond:
            return self._write_depth if self._writer == threading.get_ident() else 0

    # -- context managers ---------------------------------------------------

    @contextmanager
    def read(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()
