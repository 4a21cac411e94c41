"""Database dependencies for request handlers.

Each request that touches storage holds exactly one pooled connection, taken
after the session is loaded and returned when the handler finishes, whatever
the outcome.

Waiting for a connection happens on threads from ``app.state.acquire_limiter``,
never on the handler thread pool. A request that holds a connection therefore
never competes for a thread with requests still waiting for one.
"""

import sqlite3
from functools import partial
from typing import Annotated, AsyncIterator

import anyio.to_thread
from fastapi import Depends, Request

from .config import Settings
from .storage import ConnectionPool, MemoRepository


async def get_pool(request: Request) -> ConnectionPool:
    """The application's connection pool, built once at startup."""
    return request.app.state.pool


async def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_connection(
    request: Request,
    pool: Annotated[ConnectionPool, Depends(get_pool)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> AsyncIterator[sqlite3.Connection]:
    """FastAPI dependency: hold one connection for the rest of the request.

    Blocks until a connection is free (or ``db_pool_timeout`` elapses, when
    set).
    """
    conn = await anyio.to_thread.run_sync(
        partial(pool.acquire, settings.db_pool_timeout),
        limiter=request.app.state.acquire_limiter,
    )
    try:
        yield conn
    finally:
        pool.release(conn)


# Type aliases for dependency injection
AppSettings = Annotated[Settings, Depends(get_app_settings)]
Connection = Annotated[sqlite3.Connection, Depends(get_connection)]


async def get_memo_repository(conn: Connection) -> MemoRepository:
    return MemoRepository(conn)


Memos = Annotated[MemoRepository, Depends(get_memo_repository)]
