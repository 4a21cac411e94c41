"""Tests for the bounded connection pool."""

import sqlite3
import threading
import time
from unittest.mock import MagicMock

import pytest

from memoshare.storage import (
    ConnectionPool,
    PoolClosedError,
    PoolError,
    PoolExhaustedError,
)


class Handle:
    """Stand-in for a database connection."""

    def __init__(self, n):
        self.n = n
        self.closed = False

    def close(self):
        self.closed = True


def make_pool(size):
    counter = iter(range(1000))
    return ConnectionPool(lambda: Handle(next(counter)), size)


class TestConstruction:
    """Pool construction."""

    def test_factory_called_once_per_slot(self):
        factory = MagicMock(side_effect=lambda: object())
        pool = ConnectionPool(factory, 4)
        assert factory.call_count == 4
        assert pool.size == 4
        assert pool.available == 4
        assert pool.in_use == 0

    def test_size_must_be_positive(self):
        with pytest.raises(ValueError):
            ConnectionPool(object, 0)

    def test_sqlite_pool(self, db_path):
        pool = ConnectionPool.for_sqlite(db_path, 2)
        try:
            with pool.connection() as conn:
                row = conn.execute("SELECT version FROM schema_version").fetchone()
                assert isinstance(row, sqlite3.Row)
                assert row["version"] >= 1
        finally:
            pool.close()


class TestAcquireRelease:
    """Acquire and release bookkeeping."""

    def test_distinct_handles_until_exhausted(self):
        pool = make_pool(3)
        handles = [pool.acquire() for _ in range(3)]
        assert len({h.n for h in handles}) == 3
        assert pool.available == 0
        assert pool.in_use == 3
        for h in handles:
            pool.release(h)
        assert pool.available == 3

    def test_released_handle_is_reused(self):
        pool = make_pool(1)
        first = pool.acquire()
        pool.release(first)
        assert pool.acquire() is first

    def test_double_release_rejected(self):
        pool = make_pool(2)
        h = pool.acquire()
        pool.release(h)
        with pytest.raises(PoolError, match="twice"):
            pool.release(h)
        assert pool.available == 2

    def test_foreign_handle_rejected(self):
        pool = make_pool(2)
        with pytest.raises(PoolError, match="does not belong"):
            pool.release(Handle(99))
        assert pool.available == 2

    def test_timeout_raises_exhausted(self):
        pool = make_pool(1)
        pool.acquire()
        start = time.monotonic()
        with pytest.raises(PoolExhaustedError):
            pool.acquire(timeout=0.05)
        assert time.monotonic() - start >= 0.04

    def test_context_manager_releases_on_error(self):
        pool = make_pool(1)
        with pytest.raises(RuntimeError):
            with pool.connection():
                assert pool.in_use == 1
                raise RuntimeError("handler failed")
        assert pool.in_use == 0
        assert pool.available == 1


class TestConcurrency:
    """Behaviour with several threads competing for handles."""

    def test_blocked_acquirer_wakes_on_release(self):
        """Capacity 2: a third acquirer waits until one handle comes back."""
        pool = make_pool(2)
        a = pool.acquire()
        pool.acquire()
        got = threading.Event()
        result = {}

        def third():
            result["handle"] = pool.acquire()
            got.set()

        t = threading.Thread(target=third)
        t.start()
        assert not got.wait(0.2)

        pool.release(a)
        assert got.wait(2)
        t.join(2)
        assert result["handle"] is a

    def test_never_more_holders_than_size(self):
        pool = make_pool(3)
        lock = threading.Lock()
        holders = set()
        peak = [0]
        errors = []

        def worker():
            for _ in range(20):
                with pool.connection() as h:
                    with lock:
                        if h.n in holders:
                            errors.append(f"handle {h.n} held twice")
                        holders.add(h.n)
                        peak[0] = max(peak[0], len(holders))
                    time.sleep(0.001)
                    with lock:
                        holders.discard(h.n)

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(10)

        assert errors == []
        assert peak[0] <= 3
        # Quiescent: every handle is back
        assert pool.available == 3
        assert pool.in_use == 0


class TestClose:
    """Shutting the pool down."""

    def test_close_closes_idle_handles(self):
        pool = make_pool(2)
        handles = [pool.acquire() for _ in range(2)]
        for h in handles:
            pool.release(h)
        pool.close()
        assert pool.closed
        assert all(h.closed for h in handles)

    def test_acquire_after_close(self):
        pool = make_pool(1)
        pool.close()
        with pytest.raises(PoolClosedError):
            pool.acquire()

    def test_checked_out_handle_closed_on_release(self):
        pool = make_pool(1)
        h = pool.acquire()
        pool.close()
        assert not h.closed
        pool.release(h)
        assert h.closed

    def test_close_wakes_waiters(self):
        pool = make_pool(1)
        pool.acquire()
        errors = []

        def waiter():
            try:
                pool.acquire()
            except PoolClosedError as e:
                errors.append(e)

        t = threading.Thread(target=waiter)
        t.start()
        time.sleep(0.05)
        pool.close()
        t.join(2)
        assert not t.is_alive()
        assert len(errors) == 1

    def test_close_is_idempotent(self):
        pool = make_pool(1)
        pool.close()
        pool.close()
        assert pool.closed
