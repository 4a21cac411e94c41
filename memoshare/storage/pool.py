"""Fixed-size pool of database connections shared by request handlers.

The pool opens all of its handles up front and never grows or shrinks. A
handle is held by at most one caller at a time; ``acquire`` blocks until one is
free. Waiters are not served in any particular order.
"""

import contextlib
import sqlite3
import threading
import time
from pathlib import Path
from typing import Callable, Generic, Iterator, TypeVar

from ..logging_config import get_logger

logger = get_logger("memoshare.pool")

T = TypeVar("T")


class PoolError(Exception):
    """Misuse of a connection pool (e.g. releasing a handle twice)."""


class PoolExhaustedError(PoolError):
    """No handle became free within the requested timeout."""


class PoolClosedError(PoolError):
    """The pool has been closed."""


def open_sqlite_connection(db_path: Path | str) -> sqlite3.Connection:
    """Open a SQLite handle suitable for pooling.

    Handles are passed between worker threads, so the same-thread check is
    disabled; the pool guarantees a single holder at a time.
    """
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA busy_timeout=5000")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


class ConnectionPool(Generic[T]):
    """Bounded pool of reusable handles.

    Args:
        factory: Callable returning a new handle. Called exactly ``size``
            times, at construction.
        size: Number of handles. Must be positive.
    """

    def __init__(self, factory: Callable[[], T], size: int):
        if size < 1:
            raise ValueError("Pool size must be at least 1")
        self._size = size
        self._cond = threading.Condition()
        self._idle: list[T] = [factory() for _ in range(size)]
        self._all_ids = frozenset(id(handle) for handle in self._idle)
        self._checked_out: set[int] = set()
        self._closed = False
        logger.debug(f"Opened pool with {size} connections")

    @classmethod
    def for_sqlite(cls, db_path: Path | str, size: int) -> "ConnectionPool[sqlite3.Connection]":
        return cls(lambda: open_sqlite_connection(db_path), size)

    @property
    def size(self) -> int:
        return self._size

    @property
    def available(self) -> int:
        with self._cond:
            return len(self._idle)

    @property
    def in_use(self) -> int:
        with self._cond:
            return len(self._checked_out)

    @property
    def closed(self) -> bool:
        return self._closed

    def acquire(self, timeout: float | None = None) -> T:
        """Take a handle, blocking until one is free.

        Args:
            timeout: Seconds to wait. ``None`` waits indefinitely.

        Raises:
            PoolExhaustedError: ``timeout`` elapsed with no free handle.
            PoolClosedError: The pool was closed before or while waiting.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            waited = False
            while not self._idle and not self._closed:
                if not waited:
                    logger.debug(f"All {self._size} connections in use, waiting")
                    waited = True
                if deadline is None:
                    self._cond.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.warning(f"Connection pool exhausted after {timeout}s wait")
                    raise PoolExhaustedError(f"No connection available within {timeout}s")
                self._cond.wait(remaining)
            if self._closed:
                raise PoolClosedError("Connection pool is closed")
            handle = self._idle.pop()
            self._checked_out.add(id(handle))
            return handle

    def release(self, handle: T) -> None:
        """Return a handle taken with ``acquire``.

        Raises:
            PoolError: The handle is not currently checked out of this pool.
        """
        with self._cond:
            key = id(handle)
            if key not in self._checked_out:
                if key in self._all_ids:
                    raise PoolError("Connection released twice")
                raise PoolError("Connection does not belong to this pool")
            self._checked_out.discard(key)
            if self._closed:
                self._close_handle(handle)
                return
            self._idle.append(handle)
            self._cond.notify()

    @contextlib.contextmanager
    def connection(self, timeout: float | None = None) -> Iterator[T]:
        """Hold a handle for the duration of the block."""
        handle = self.acquire(timeout)
        try:
            yield handle
        finally:
            self.release(handle)

    def close(self) -> None:
        """Close idle handles now and checked-out handles as they come back."""
        with self._cond:
            if self._closed:
                return
            self._closed = True
            idle, self._idle = self._idle, []
            self._cond.notify_all()
        for handle in idle:
            self._close_handle(handle)
        logger.debug("Connection pool closed")

    @staticmethod
    def _close_handle(handle) -> None:
        close = getattr(handle, "close", None)
        if close is None:
            return
        try:
            close()
        except Exception as e:
            logger.warning(f"Error closing pooled connection: {e}")
