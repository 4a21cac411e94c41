"""Storage layer for memoshare: connection pool, schema and memo queries."""

from .base import Memo, Siblings, User, first_line, utc_now
from .pool import (
    ConnectionPool,
    PoolClosedError,
    PoolError,
    PoolExhaustedError,
    open_sqlite_connection,
)
from .repository import MemoRepository, can_view, page_bounds
from .schema import SCHEMA_VERSION, init_db

__all__ = [
    "ConnectionPool",
    "Memo",
    "MemoRepository",
    "PoolClosedError",
    "PoolError",
    "PoolExhaustedError",
    "SCHEMA_VERSION",
    "Siblings",
    "User",
    "can_view",
    "first_line",
    "init_db",
    "open_sqlite_connection",
    "page_bounds",
    "utc_now",
]
