import threading
from contextlib import contextmanager
from typing import Iterator, Optional


class LockTimeout(Exception):
    pass


class ReadWriteLock:
    """Many concurrent readers or a single writer.

    Waiting writers block new readers so a steady stream of queries cannot
    starve inserts.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read(self, timeout: Optional[float] = None) -> Iterator[None]:
        with self._cond:
            ok = self._cond.wait_for(
                lambda: not self._writer and not self._waiting_writers, timeout)
            if not ok:
                raise LockTimeout("timed out waiting for read access")
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self, timeout: Optional[float] = None) -> Iterator[None]:
        with self._cond:
            self._waiting_writers += 1
            try:
                ok = self._cond.wait_for(
                    lambda: not self._writer and not self._readers, timeout)
            finally:
                self._waiting_writers -= 1
            if not ok:
                self._cond.notify_all()
                raise LockTimeout("timed out waiting for write access")
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()
